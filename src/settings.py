"""Static configuration for chatdigest.

All user-editable settings (storage, model, digest schedule, logging) live in a
single JSON file for quick edits without touching Python. Secrets stay in the
environment (.env).
"""

import json
import os

from core.config import DEFAULT_LINK_PREFIX, DEFAULT_MODEL, CommandConfig, DigestConfig, RenderConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.environ.get("CHATDIGEST_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Where to store the SQLite database.
_storage = _CONFIG.get("storage", {})
DB_PATH = _resolve_path(_storage.get("db_path", "chatdigest.db"))

# Generation settings shared by commands and the scheduled digest.
_generation = _CONFIG.get("generation", {})
MODEL = _generation.get("model", DEFAULT_MODEL)
MAX_OUTPUT_TOKENS = int(_generation.get("max_output_tokens", 4096))

# Label used for self-referential links, e.g. [引用¹](url).
_render = _CONFIG.get("render", {})
RENDER = RenderConfig(
    model_name=MODEL,
    link_prefix=_render.get("link_prefix", DEFAULT_LINK_PREFIX),
)

# Interactive commands.
_commands = _CONFIG.get("commands", {})
COMMANDS = CommandConfig(
    temperature=float(_commands.get("temperature", 0.4)),
    max_output_tokens=MAX_OUTPUT_TOKENS,
    ask_context_messages=int(_commands.get("ask_context_messages", 1000)),
    query_limit=int(_commands.get("query_limit", 50)),
)

# Scheduled digest.
# - concurrency_limit: digest jobs in flight per batch
# - retention_per_tenant: messages kept per chat by the cleanup step
# - interval_minutes: in-process schedule for `run`; 0 leaves scheduling to cron
_digest = _CONFIG.get("digest", {})
DIGEST = DigestConfig(
    concurrency_limit=int(_digest.get("concurrency_limit", 2)),
    retention_per_tenant=int(_digest.get("retention_per_tenant", 3000)),
    activity_window_hours=float(_digest.get("activity_window_hours", 24)),
    min_active_messages=int(_digest.get("min_active_messages", 10)),
    digest_window_hours=float(_digest.get("window_hours", 24)),
    min_digest_messages=int(_digest.get("min_messages", 10)),
    temperature=float(_digest.get("temperature", 0.5)),
    max_output_tokens=MAX_OUTPUT_TOKENS,
)
DIGEST_INTERVAL_MINUTES = int(_digest.get("interval_minutes", 0))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
