"""Helpers for Telegram chat ids, message ids, and deep links."""

from __future__ import annotations

SUPERGROUP_PREFIX = "-100"
DEEP_LINK_TEMPLATE = "https://t.me/c/{chat_id}/{sequence_id}"


def link_chat_id(tenant_id: int) -> int:
    """Return the channel id used inside t.me/c links.

    Supergroups and channels are addressed as -100<channel_id> by the Bot API,
    while deep links expect the bare <channel_id>.
    """

    if tenant_id >= 0:
        return tenant_id
    raw_text = str(tenant_id)
    if raw_text.startswith(SUPERGROUP_PREFIX):
        channel_part = raw_text[len(SUPERGROUP_PREFIX):]
        if channel_part.isdigit():
            return int(channel_part)
    # Basic groups: -<chat_id>
    return abs(tenant_id)


def build_deep_link(tenant_id: int, sequence_id: int) -> str:
    """Return a stable t.me/c link for one message."""

    return DEEP_LINK_TEMPLATE.format(chat_id=link_chat_id(tenant_id), sequence_id=sequence_id)


def build_message_id(tenant_id: int, sequence_id: int) -> str:
    """Return the storage id for a message.

    Pure in (tenant_id, sequence_id) so re-ingesting the same message overwrites.
    """

    return f"{tenant_id}:{sequence_id}"
