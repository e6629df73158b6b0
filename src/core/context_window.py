"""Context window construction.

Selects an ordered subset of a tenant's messages and packages it into the
speaker / content / link parts handed to the generator.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable

from core.deep_links import build_deep_link
from core.errors import InvalidSelector
from core.models import ContextEntry, ContextPack, Message
from core.ports import StoragePort
from core.selectors import CountSelector, HoursSelector, Selector

LOGGER = logging.getLogger(__name__)

HARD_CAP = 4000
MS_PER_HOUR = 3_600_000


def now_ms() -> int:
    return int(time.time() * 1000)


def hours_cutoff(now: int, hours: float) -> int:
    """Return the epoch-ms cutoff for a trailing window, never below 0."""

    window_ms = hours * MS_PER_HOUR
    if window_ms >= now:
        return 0
    return now - int(window_ms)


def package_messages(tenant_id: int, messages: Iterable[Message]) -> ContextPack:
    """Sort messages ascending by timestamp and turn them into a pack."""

    # sorted() is stable, so equal timestamps keep the storage order.
    ordered = sorted(messages, key=lambda message: message.timestamp)
    entries = tuple(
        ContextEntry(
            speaker=message.author,
            content=message.content,
            link=build_deep_link(message.tenant_id, message.sequence_id),
            timestamp=message.timestamp,
        )
        for message in ordered
    )
    return ContextPack(tenant_id=tenant_id, entries=entries)


class ContextWindowBuilder:
    """Build context packs from the message store. Read-only."""

    def __init__(self, storage: StoragePort, clock: Callable[[], int] = now_ms) -> None:
        self._storage = storage
        self._clock = clock

    async def build(self, tenant_id: int, selector: Selector) -> ContextPack:
        if isinstance(selector, HoursSelector):
            since_ts = hours_cutoff(self._clock(), selector.hours)
            messages = await asyncio.to_thread(
                self._storage.query_by_tenant_since, tenant_id, since_ts
            )
        elif isinstance(selector, CountSelector):
            limit = min(selector.count, HARD_CAP)
            # Newest first from storage; package_messages restores ascending order.
            messages = await asyncio.to_thread(self._storage.query_latest_n, tenant_id, limit)
        else:
            raise InvalidSelector(f"Unsupported selector: {selector!r}")

        pack = package_messages(tenant_id, messages)
        LOGGER.debug("Built context pack for %s with %s messages", tenant_id, len(pack))
        return pack
