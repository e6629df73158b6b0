"""Client factories for chatdigest.

We read secrets via python-dotenv to keep them out of the repo and fail fast
on anything missing, to avoid ambiguous errors deep inside a request.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from google import genai
from telethon import TelegramClient


def require_env(name: str) -> str:
    load_dotenv()
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing {name} in environment")
    return value


def build_client() -> TelegramClient:
    """Create a Telethon client for the bot session.

    The session name defaults to "chatdigest" to create a local .session file.
    The caller starts it with the bot token.
    """

    api_id = require_env("API_ID")
    api_hash = require_env("API_HASH")
    session_name = os.getenv("SESSION_NAME", "chatdigest")

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(session_name, int(api_id), api_hash)


def build_genai_client() -> genai.Client:
    """Create a Gemini client from GEMINI_API_KEY."""

    return genai.Client(api_key=require_env("GEMINI_API_KEY"))
