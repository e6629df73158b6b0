"""Telegram Bot API transport adapter.

Delivers MarkdownV2 replies and digests through the Bot API; Telethon's own
parse modes do not cover MarkdownV2.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional
import urllib.error
import urllib.request

from core.errors import TransportFailure

LOGGER = logging.getLogger(__name__)

API_ROOT = "https://api.telegram.org"


class TelegramBotTransport:
    """TransportPort implementation using the Telegram Bot API."""

    def __init__(self, bot_token: str, timeout: float = 30) -> None:
        self._bot_token = bot_token
        self._timeout = timeout

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{API_ROOT}/bot{self._bot_token}/{method}"

    def _call_sync(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise TransportFailure(
                f"Bot API {method} rejected with {e.code}",
                reason="rejected",
                body=body,
                cause=e,
                service_status=e.code,
            ) from e
        except (urllib.error.URLError, OSError) as e:
            raise TransportFailure(
                f"Bot API {method} unreachable",
                reason="unreachable",
                cause=e,
            ) from e

        try:
            decoded = json.loads(body)
        except ValueError as e:
            raise TransportFailure(
                f"Bot API {method} returned invalid JSON",
                reason="rejected",
                body=body,
                cause=e,
            ) from e
        if not decoded.get("ok", False):
            raise TransportFailure(
                f"Bot API {method} returned ok=false",
                reason="rejected",
                body=body,
                service_status=decoded.get("error_code"),
            )
        return decoded

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        # urllib blocks, so each call runs in a worker thread to keep concurrent
        # digest jobs in flight.
        return await asyncio.to_thread(self._call_sync, method, payload)

    async def send_message(self, tenant_id: int, text: str, parse_mode: Optional[str] = None) -> int:
        payload: dict[str, Any] = {"chat_id": tenant_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        decoded = await self._call("sendMessage", payload)
        message_id = int(decoded.get("result", {}).get("message_id", 0))
        LOGGER.debug("Sent message %s to %s", message_id, tenant_id)
        return message_id

    async def edit_message(
        self,
        tenant_id: int,
        message_id: int,
        text: str,
        parse_mode: Optional[str] = None,
    ) -> None:
        payload: dict[str, Any] = {"chat_id": tenant_id, "message_id": message_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        await self._call("editMessageText", payload)
