"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.deep_links import build_message_id

ANONYMOUS_AUTHOR = "anonymous"


@dataclass(frozen=True)
class Message:
    """One stored chat utterance.

    ``timestamp`` is epoch milliseconds; it orders messages within a tenant but
    is not unique.
    """

    id: str
    tenant_id: int
    timestamp: int
    author: str
    content: str
    sequence_id: int
    chat_title: str = ANONYMOUS_AUTHOR

    @classmethod
    def create(
        cls,
        *,
        tenant_id: int,
        sequence_id: int,
        timestamp: int,
        author: Optional[str],
        content: str,
        chat_title: Optional[str] = None,
    ) -> "Message":
        """Build a message whose id is derived from (tenant_id, sequence_id)."""

        return cls(
            id=build_message_id(tenant_id, sequence_id),
            tenant_id=tenant_id,
            timestamp=timestamp,
            author=author or ANONYMOUS_AUTHOR,
            content=content,
            sequence_id=sequence_id,
            chat_title=chat_title or ANONYMOUS_AUTHOR,
        )


@dataclass(frozen=True)
class ContextEntry:
    """Structured rendering of one message inside a context pack."""

    speaker: str
    content: str
    link: str
    timestamp: int

    def text_parts(self) -> tuple[str, str, str]:
        return (f"{self.speaker}:", self.content, self.link)


@dataclass(frozen=True)
class ContextPack:
    """Ordered (timestamp ascending) message window handed to the generator."""

    tenant_id: int
    entries: tuple[ContextEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def text_parts(self) -> list[str]:
        """Flatten entries into speaker/content/link parts, three per message."""

        parts: list[str] = []
        for entry in self.entries:
            parts.extend(entry.text_parts())
        return parts


@dataclass(frozen=True)
class IncomingMessage:
    """Platform-neutral view of a chat message as received by the listener."""

    tenant_id: int
    sequence_id: int
    text: str
    author: Optional[str]
    chat_title: Optional[str] = None
    forwarded_from: Optional[str] = None
    is_forwarded: bool = False
    reply_to_sequence_id: Optional[int] = None
