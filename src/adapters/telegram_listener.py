"""Routes Telethon updates to ingestion and commands.

A single router keeps the Telethon integration minimal and defers all
behaviour to the core services for consistency and testability.
"""

from __future__ import annotations

import logging
from typing import Optional

from adapters.telegram_mapper import build_incoming, parse_command
from core.commands import CommandService
from core.ingestion import Ingestor
from core.ports import TransportPort
from core.prompts import PRIVATE_CHAT_REPLY

LOGGER = logging.getLogger(__name__)


class UpdateRouter:
    """Dispatches new and edited messages."""

    def __init__(
        self,
        ingestor: Ingestor,
        commands: CommandService,
        transport: TransportPort,
        bot_username: Optional[str] = None,
    ) -> None:
        self._ingestor = ingestor
        self._commands = commands
        self._transport = transport
        self._bot_username = bot_username
        self._handlers = {
            "status": lambda tenant_id, _arg: self._commands.status(tenant_id),
            "query": self._commands.query,
            "summary": self._commands.summary,
            "ask": self._commands.ask,
        }

    async def handle_message(self, message) -> None:
        text = message.raw_text or ""
        command = parse_command(text, self._bot_username)
        if command is not None:
            name, argument = command
            handler = self._handlers.get(name)
            if handler is not None:
                LOGGER.info("Command /%s in %s", name, message.chat_id)
                await handler(message.chat_id, argument)
            return

        if getattr(message, "is_private", False):
            await self._transport.send_message(message.chat_id, PRIVATE_CHAT_REPLY)
            return

        # Media-only messages without captions are not stored.
        if not text.strip():
            return
        stored = await self._ingestor.ingest(build_incoming(message))
        LOGGER.debug("Stored %s", stored.id)

    async def handle_edit(self, message) -> None:
        if getattr(message, "is_private", False) or not (message.raw_text or "").strip():
            return
        await self._ingestor.ingest_edit(build_incoming(message))
