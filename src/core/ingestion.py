"""Message ingestion into the per-tenant log."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from core.context_window import now_ms
from core.deep_links import build_deep_link
from core.models import IncomingMessage, Message
from core.ports import StoragePort
from core.prompts import FORWARDED_TEMPLATE, FORWARDED_UNKNOWN, REPLY_TEMPLATE

LOGGER = logging.getLogger(__name__)


def rewrite_content(incoming: IncomingMessage) -> str:
    """Embed forward/reply provenance in the stored text.

    Forwarding is applied first, so a forwarded reply reads
    ``回复 <link>: 转发自 <name>: <text>``.
    """

    content = incoming.text
    if incoming.is_forwarded:
        name = incoming.forwarded_from or FORWARDED_UNKNOWN
        content = FORWARDED_TEMPLATE.format(name=name, content=content)
    if incoming.reply_to_sequence_id is not None:
        link = build_deep_link(incoming.tenant_id, incoming.reply_to_sequence_id)
        content = REPLY_TEMPLATE.format(link=link, content=content)
    return content


class Ingestor:
    """Stores new and edited messages; edits overwrite the original row."""

    def __init__(self, storage: StoragePort, clock: Callable[[], int] = now_ms) -> None:
        self._storage = storage
        self._clock = clock

    def to_message(self, incoming: IncomingMessage, *, rewrite: bool = True) -> Message:
        content = rewrite_content(incoming) if rewrite else incoming.text
        return Message.create(
            tenant_id=incoming.tenant_id,
            sequence_id=incoming.sequence_id,
            timestamp=self._clock(),
            author=incoming.author,
            content=content,
            chat_title=incoming.chat_title,
        )

    async def ingest(self, incoming: IncomingMessage) -> Message:
        message = self.to_message(incoming)
        await asyncio.to_thread(self._storage.insert_or_replace, message)
        return message

    async def ingest_edit(self, incoming: IncomingMessage) -> Message:
        """Overwrite a stored message with its edited text (no provenance rewrite)."""

        message = self.to_message(incoming, rewrite=False)
        await asyncio.to_thread(self._storage.insert_or_replace, message)
        LOGGER.debug("Stored edit for %s", message.id)
        return message
