"""Markdown post-processing for model output.

Raw model text goes through a fixed, explicit list of named stages:

1) dialect: loose markdown -> Telegram MarkdownV2, reserved characters escaped
   outside recognised constructs. Already escaped sequences are kept raw so the
   stage never escapes its own output twice.
2) link_canonicalize: self-referential links ``[url](url)`` get a short label
   with a superscript ordinal. Ordinals come from a LinkRegistry that lives for
   exactly one render call.
3) link_repair: the model keeps writing ``tme.cat`` for ``t.me/c``.
4) fold: wrap everything in an expandable block quote under a banner line.

Each stage is a plain ``(text, RenderContext) -> str`` function and can be
tested on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Callable, Optional, Sequence

from core.config import RenderConfig

RESERVED_CHARS = "_*[]()~`>#+-=|{}.!"

_ESCAPE_RE = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
_UNESCAPE_RE = re.compile(r"\\([_*\[\]()~`>#+\-=|{}.!\\])")
_CODE_ESCAPE_RE = re.compile(r"([`\\])")
_URL_ESCAPE_RE = re.compile(r"([)\\])")
_URL_UNESCAPE_RE = re.compile(r"\\([)\\])")

_SUPERSCRIPT = str.maketrans("0123456789", "⁰¹²³⁴⁵⁶⁷⁸⁹")

BANNER_TEMPLATE = "下面由免费 {model} 概括群聊信息"
SPOILER_OPEN = "**"
QUOTE_MARKER = ">"
SPOILER_CLOSE = "||"
BULLET = "•"


def escape_markdown_v2(text: str) -> str:
    """Backslash-escape every MarkdownV2 reserved character (and backslash)."""

    return _ESCAPE_RE.sub(r"\\\1", text)


def unescape_markdown_v2(text: str) -> str:
    return _UNESCAPE_RE.sub(r"\1", text)


def _escape_code(text: str) -> str:
    return _CODE_ESCAPE_RE.sub(r"\\\1", text)


def _escape_url(url: str) -> str:
    return _URL_ESCAPE_RE.sub(r"\\\1", _URL_UNESCAPE_RE.sub(r"\1", url))


def to_superscript(number: int) -> str:
    return str(number).translate(_SUPERSCRIPT)


class LinkRegistry:
    """URL -> ordinal map, assigned in first-seen order starting at 1."""

    def __init__(self) -> None:
        self._ordinals: dict[str, int] = {}

    def ordinal_for(self, url: str) -> int:
        if url not in self._ordinals:
            self._ordinals[url] = len(self._ordinals) + 1
        return self._ordinals[url]

    def __len__(self) -> int:
        return len(self._ordinals)

    def as_dict(self) -> dict[str, int]:
        return dict(self._ordinals)


@dataclass
class RenderContext:
    """Per-render state threaded through every stage."""

    model_name: str
    link_prefix: str
    registry: LinkRegistry = field(default_factory=LinkRegistry)


# --- stage 1: dialect ------------------------------------------------------

_FENCE_RE = re.compile(r"^\s*```(?P<lang>[\w+-]*)")
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(?P<body>.+?)\s*#*\s*$")
_BULLET_RE = re.compile(r"^(?P<indent>\s*)[-*+]\s+(?P<body>.*)$")

_INLINE_RE = re.compile(
    r"(?P<escaped>\\[_*\[\]()~`>#+\-=|{}.!\\])"
    r"|`(?P<code>[^`\n]+)`"
    r"|\[(?P<link_text>[^\]\n]+)\]\((?P<link_url>(?:\\[)\\]|[^)\s\\])+)\)"
    r"|\*\*(?P<bold>[^\n]+?)\*\*"
    r"|(?<!\w)__(?P<bold_u>[^\n]+?)__(?!\w)"
    r"|~~(?P<strike>[^\n]+?)~~"
    r"|\|\|(?P<spoiler>[^\n]+?)\|\|"
    r"|(?<![\w*\\])\*(?P<italic>[^*\s](?:[^*\n]*?[^*\s\\])?)\*(?![\w*])"
    r"|(?<![\w\\])_(?P<italic_u>[^_\s](?:[^_\n]*?[^_\s\\])?)_(?!\w)"
)


def _convert_inline(text: str) -> str:
    out: list[str] = []
    position = 0
    for match in _INLINE_RE.finditer(text):
        out.append(escape_markdown_v2(text[position:match.start()]))
        position = match.end()
        kind = match.lastgroup
        if kind == "escaped":
            out.append(match.group(0))
        elif kind == "code":
            out.append(f"`{_escape_code(match.group('code'))}`")
        elif kind == "link_url" or kind == "link_text":
            label = _convert_inline(match.group("link_text"))
            out.append(f"[{label}]({_escape_url(match.group('link_url'))})")
        elif kind in ("bold", "bold_u"):
            out.append(f"*{_convert_inline(match.group(kind))}*")
        elif kind == "strike":
            out.append(f"~{_convert_inline(match.group('strike'))}~")
        elif kind == "spoiler":
            out.append(f"||{_convert_inline(match.group('spoiler'))}||")
        else:
            out.append(f"_{_convert_inline(match.group(kind))}_")
    out.append(escape_markdown_v2(text[position:]))
    return "".join(out)


def _convert_line(line: str) -> str:
    heading = _HEADING_RE.match(line)
    if heading:
        # Headings become a bold line; inner bold markers would close it early.
        body = re.sub(r"\*\*|__", "", heading.group("body"))
        return f"*{_convert_inline(body)}*"

    bullet = _BULLET_RE.match(line)
    if bullet:
        return f"{bullet.group('indent')}{BULLET} {_convert_inline(bullet.group('body'))}"

    return _convert_inline(line)


def convert_dialect(text: str, context: Optional[RenderContext] = None) -> str:
    """Convert loose markdown into strict MarkdownV2.

    Contract: every reserved character outside code, links and emphasis is
    escaped exactly once; pre-escaped sequences are preserved as-is.
    """

    lines = text.replace("\r\n", "\n").split("\n")
    out: list[str] = []
    in_fence = False
    for line in lines:
        fence = _FENCE_RE.match(line)
        if fence:
            out.append("```" if in_fence else f"```{fence.group('lang')}")
            in_fence = not in_fence
            continue
        if in_fence:
            out.append(_escape_code(line))
            continue
        out.append(_convert_line(line))
    if in_fence:
        out.append("```")
    return "\n".join(out)


# --- stage 2: link canonicalization ---------------------------------------

_LINK_SCAN_RE = re.compile(
    r"(?s:```.*?```)"
    r"|`(?:\\.|[^`\\\n])*`"
    r"|\\."
    r"|\[(?P<text>(?:\\.|[^\]\\\n])+)\]\((?P<url>(?:\\.|[^)\\\s])+)\)"
)


def canonicalize_links(text: str, context: RenderContext) -> str:
    """Relabel links whose display text equals their URL.

    Contract: the same URL always gets the same ordinal within one render;
    links with any other display text, code, and escaped brackets are untouched.
    """

    prefix = escape_markdown_v2(context.link_prefix)

    def _replace(match: re.Match) -> str:
        if match.group("text") is None:
            return match.group(0)
        display = unescape_markdown_v2(match.group("text"))
        url = _URL_UNESCAPE_RE.sub(r"\1", match.group("url"))
        if display != url:
            return match.group(0)
        ordinal = context.registry.ordinal_for(url)
        return f"[{prefix}{to_superscript(ordinal)}]({match.group('url')})"

    return _LINK_SCAN_RE.sub(_replace, text)


# --- stage 3: link repair --------------------------------------------------

_BROKEN_DOMAIN_RE = re.compile(r"tme(\\?)\.cat")
_DOUBLED_SEGMENT_RE = re.compile(r"/c/c(?!\w)")


def repair_links(text: str, context: Optional[RenderContext] = None) -> str:
    """Rewrite ``tme.cat`` to ``t.me/c`` and collapse the ``/c/c`` it can create."""

    text = _BROKEN_DOMAIN_RE.sub(r"t\1.me/c", text)
    return _DOUBLED_SEGMENT_RE.sub("/c", text)


# --- stage 4: fold ---------------------------------------------------------


def fold_text(text: str) -> str:
    """Wrap text in an expandable block quote (``**>line ... >line||``)."""

    lines = text.strip("\n").split("\n")
    return SPOILER_OPEN + "\n".join(QUOTE_MARKER + line for line in lines) + SPOILER_CLOSE


def fold_with_banner(text: str, context: RenderContext) -> str:
    banner = escape_markdown_v2(BANNER_TEMPLATE.format(model=context.model_name))
    return f"{banner}\n{fold_text(text)}"


# --- pipeline --------------------------------------------------------------


@dataclass(frozen=True)
class Stage:
    name: str
    apply: Callable[[str, RenderContext], str]


DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage("dialect", convert_dialect),
    Stage("link_canonicalize", canonicalize_links),
    Stage("link_repair", repair_links),
    Stage("fold", fold_with_banner),
)


class MarkdownPostprocessor:
    """Run the stage list over raw model output."""

    def __init__(self, config: RenderConfig, stages: Sequence[Stage] = DEFAULT_STAGES) -> None:
        self._config = config
        self._stages = tuple(stages)

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    def new_context(self) -> RenderContext:
        return RenderContext(model_name=self._config.model_name, link_prefix=self._config.link_prefix)

    def render(self, raw_text: str, context: Optional[RenderContext] = None) -> str:
        """Return MarkdownV2 text ready to send.

        A fresh RenderContext (and LinkRegistry) is created per call unless the
        caller passes one in to inspect it afterwards.
        """

        context = context or self.new_context()
        text = raw_text
        for stage in self._stages:
            text = stage.apply(text, context)
        return text
