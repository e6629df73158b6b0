"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_LINK_PREFIX = "引用"


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling settings for a single generation call."""

    temperature: float
    max_output_tokens: int = 4096


@dataclass(frozen=True)
class RenderConfig:
    """Markdown post-processing settings."""

    model_name: str = DEFAULT_MODEL
    link_prefix: str = DEFAULT_LINK_PREFIX


@dataclass(frozen=True)
class DigestConfig:
    """Scheduled digest settings for the batch dispatcher."""

    concurrency_limit: int = 2
    retention_per_tenant: int = 3000
    activity_window_hours: float = 24
    min_active_messages: int = 10
    digest_window_hours: float = 24
    min_digest_messages: int = 10
    temperature: float = 0.5
    max_output_tokens: int = 4096


@dataclass(frozen=True)
class CommandConfig:
    """Interactive command settings."""

    temperature: float = 0.4
    max_output_tokens: int = 4096
    ask_context_messages: int = 1000
    query_limit: int = 50
