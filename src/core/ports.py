"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, generation, and chat delivery
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.config import GenerationOptions
from core.models import Message


class StoragePort(Protocol):
    """Message log operations required by the core pipeline.

    Methods are synchronous; the core runs them in a worker thread.
    """

    def insert_or_replace(self, message: Message) -> None:
        ...

    def query_by_tenant_since(self, tenant_id: int, since_ts: int) -> list[Message]:
        """Messages at or after ``since_ts``, timestamp ascending."""
        ...

    def query_latest_n(self, tenant_id: int, n: int) -> list[Message]:
        """The ``n`` most recent messages, timestamp descending."""
        ...

    def query_by_glob_pattern(self, tenant_id: int, pattern: str, limit: int) -> list[Message]:
        ...

    def delete_except_latest_n_per_tenant(self, n: int) -> int:
        ...

    def list_active_tenants(self, since_ts: int, min_count: int) -> list[int]:
        ...


class GeneratorPort(Protocol):
    """Single-shot text generation."""

    model_name: str

    async def generate(
        self,
        system_prompt: Optional[str],
        content_parts: Sequence[str],
        options: GenerationOptions,
    ) -> str:
        ...


class TransportPort(Protocol):
    """Outbound chat delivery."""

    async def send_message(self, tenant_id: int, text: str, parse_mode: Optional[str] = None) -> int:
        ...

    async def edit_message(
        self,
        tenant_id: int,
        message_id: int,
        text: str,
        parse_mode: Optional[str] = None,
    ) -> None:
        ...
