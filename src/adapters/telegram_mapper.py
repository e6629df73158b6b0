"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from telethon.tl.custom import Message

from core.models import IncomingMessage

_COMMAND_RE = re.compile(r"^/(?P<name>[A-Za-z0-9_]+)(?:@(?P<bot>[A-Za-z0-9_]+))?(?:\s+(?P<arg>.*))?$", re.DOTALL)


def parse_command(text: str, bot_username: Optional[str] = None) -> Optional[Tuple[str, str]]:
    """Return (command, argument) for ``/cmd[@bot] arg`` text, else None.

    Commands addressed to another bot are ignored.
    """

    match = _COMMAND_RE.match((text or "").strip())
    if not match:
        return None
    addressed = match.group("bot")
    if addressed and bot_username and addressed.lower() != bot_username.lower():
        return None
    return match.group("name").lower(), (match.group("arg") or "").strip()


def author_from_message(message: Message) -> Optional[str]:
    """Prefer the posting chat's title (anonymous admins, channels), then first name."""

    sender = getattr(message, "sender", None)
    title = getattr(sender, "title", None)
    if isinstance(title, str) and title:
        return title
    first_name = getattr(sender, "first_name", None)
    if isinstance(first_name, str) and first_name:
        return first_name
    return None


def _forward_origin(message: Message) -> Tuple[bool, Optional[str]]:
    forward = getattr(message, "forward", None)
    if forward is None:
        return False, None
    sender = getattr(forward, "sender", None)
    first_name = getattr(sender, "first_name", None)
    if isinstance(first_name, str) and first_name:
        return True, first_name
    # Only user origins carry a usable name; everything else is "unknown".
    return True, None


def _reply_to_id(message: Message) -> Optional[int]:
    reply_to = getattr(message, "reply_to", None)
    if not reply_to:
        return None
    # Forum topic roots are not real replies.
    if getattr(reply_to, "forum_topic", False) and not getattr(reply_to, "reply_to_top_id", None):
        return None
    return getattr(reply_to, "reply_to_msg_id", None)


def build_incoming(message: Message) -> IncomingMessage:
    """Build a core IncomingMessage from a Telethon Message."""

    is_forwarded, forwarded_from = _forward_origin(message)
    chat = getattr(message, "chat", None)
    return IncomingMessage(
        tenant_id=message.chat_id,
        sequence_id=message.id,
        text=message.raw_text or "",
        author=author_from_message(message),
        chat_title=getattr(chat, "title", None),
        forwarded_from=forwarded_from,
        is_forwarded=is_forwarded,
        reply_to_sequence_id=_reply_to_id(message),
    )
