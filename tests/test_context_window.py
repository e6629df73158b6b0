from __future__ import annotations

import asyncio
import random

from adapters.sqlite_storage import SQLiteStorage
from core.context_window import HARD_CAP, MS_PER_HOUR, ContextWindowBuilder, hours_cutoff
from core.models import Message
from core.selectors import CountSelector, HoursSelector

NOW = 1_700_000_000_000
TENANT = -100123


class FakeStorage:
    def __init__(self, messages: list[Message]) -> None:
        self.messages = list(messages)
        self.latest_calls: list[int] = []
        self.since_calls: list[int] = []

    def query_by_tenant_since(self, tenant_id: int, since_ts: int) -> list[Message]:
        self.since_calls.append(since_ts)
        rows = [m for m in self.messages if m.tenant_id == tenant_id and m.timestamp >= since_ts]
        return sorted(rows, key=lambda m: m.timestamp)

    def query_latest_n(self, tenant_id: int, n: int) -> list[Message]:
        self.latest_calls.append(n)
        rows = [m for m in self.messages if m.tenant_id == tenant_id]
        return sorted(rows, key=lambda m: m.timestamp, reverse=True)[:n]


def _message(sequence_id: int, timestamp: int, tenant_id: int = TENANT) -> Message:
    return Message.create(
        tenant_id=tenant_id,
        sequence_id=sequence_id,
        timestamp=timestamp,
        author=f"user{sequence_id}",
        content=f"message {sequence_id}",
    )


def _builder(messages: list[Message]) -> tuple[ContextWindowBuilder, FakeStorage]:
    storage = FakeStorage(messages)
    return ContextWindowBuilder(storage, clock=lambda: NOW), storage


def test_hours_selector_packs_recent_messages_ascending() -> None:
    # 15 messages spread across the last two hours, plus noise.
    recent = [_message(i, NOW - i * 8 * 60 * 1000) for i in range(1, 16)]
    old = [_message(100, NOW - 30 * MS_PER_HOUR)]
    other_tenant = [_message(200, NOW - 1000, tenant_id=-100999)]
    messages = recent + old + other_tenant
    random.Random(7).shuffle(messages)
    builder, _ = _builder(messages)

    pack = asyncio.run(builder.build(TENANT, HoursSelector(24)))

    cutoff = NOW - 24 * MS_PER_HOUR
    assert len(pack) == 15
    assert len(pack.text_parts()) == 45
    timestamps = [entry.timestamp for entry in pack.entries]
    assert timestamps == sorted(timestamps)
    assert all(ts >= cutoff for ts in timestamps)

    parts = pack.text_parts()
    assert parts[0] == "user15:"
    assert parts[1] == "message 15"
    assert parts[2] == "https://t.me/c/123/15"


def test_count_selector_resorts_latest_messages_ascending() -> None:
    messages = [_message(i, NOW - i * 1000) for i in range(1, 11)]
    builder, storage = _builder(messages)

    pack = asyncio.run(builder.build(TENANT, CountSelector(3)))

    assert storage.latest_calls == [3]
    assert [entry.link for entry in pack.entries] == [
        "https://t.me/c/123/3",
        "https://t.me/c/123/2",
        "https://t.me/c/123/1",
    ]
    timestamps = [entry.timestamp for entry in pack.entries]
    assert timestamps == sorted(timestamps)


def test_count_selector_is_capped() -> None:
    builder, storage = _builder([_message(1, NOW)])

    pack = asyncio.run(builder.build(TENANT, CountSelector(HARD_CAP + 1000)))

    assert storage.latest_calls == [HARD_CAP]
    assert len(pack) <= min(HARD_CAP + 1000, HARD_CAP)


def test_empty_window_yields_empty_pack() -> None:
    builder, _ = _builder([])

    pack = asyncio.run(builder.build(TENANT, HoursSelector(1)))

    assert not pack
    assert pack.text_parts() == []


def test_hours_cutoff_never_goes_below_zero() -> None:
    assert hours_cutoff(NOW, 1) == NOW - MS_PER_HOUR
    assert hours_cutoff(NOW, 1e13) == 0
    assert hours_cutoff(NOW, 1e308) == 0


def test_huge_hours_window_reads_from_the_beginning() -> None:
    builder, storage = _builder([_message(1, NOW - 1000)])

    pack = asyncio.run(builder.build(TENANT, HoursSelector(1e308)))

    assert storage.since_calls == [0]
    assert len(pack) == 1


def test_huge_hours_window_against_sqlite(tmp_path) -> None:
    storage = SQLiteStorage(str(tmp_path / "messages.db"))
    storage.init_db()
    storage.insert_or_replace(_message(1, NOW - 1000))
    builder = ContextWindowBuilder(storage, clock=lambda: NOW)

    for hours in (1e13, 1e308):
        pack = asyncio.run(builder.build(TENANT, HoursSelector(hours)))
        assert len(pack) == 1
