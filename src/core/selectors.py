"""Message window selectors.

A selector is decided once at the boundary (command argument parsing) and is
validated on construction, so the context window builder only ever sees
well-formed values.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Union

from core.errors import InvalidSelector

SELECTOR_HINT = "请输入要总结的时间范围或消息数量，例如：\n/summary 24h (最近24小时)\n/summary 500 (最近500条消息)"


@dataclass(frozen=True)
class HoursSelector:
    """Every message from the trailing ``hours``."""

    hours: float

    def __post_init__(self) -> None:
        if isinstance(self.hours, bool) or not isinstance(self.hours, (int, float)):
            raise InvalidSelector("小时数必须是正数。", hint=SELECTOR_HINT)
        if not math.isfinite(self.hours) or self.hours <= 0:
            raise InvalidSelector("小时数必须是正数。", hint=SELECTOR_HINT)


@dataclass(frozen=True)
class CountSelector:
    """The ``count`` most recent messages."""

    count: int

    def __post_init__(self) -> None:
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count <= 0:
            raise InvalidSelector("消息数量必须是有效的正整数。", hint=SELECTOR_HINT)


Selector = Union[HoursSelector, CountSelector]


def parse_selector(raw: str) -> Selector:
    """Parse ``"24h"`` into hours and ``"500"`` into a message count."""

    text = (raw or "").strip().lower()
    if not text:
        raise InvalidSelector("缺少参数。", hint=SELECTOR_HINT)

    if text.endswith("h"):
        try:
            hours = float(text[:-1])
        except ValueError as exc:
            raise InvalidSelector("小时数必须是正数。", hint=SELECTOR_HINT) from exc
        return HoursSelector(hours)

    try:
        count = int(text)
    except ValueError as exc:
        raise InvalidSelector("消息数量必须是有效的正整数。", hint=SELECTOR_HINT) from exc
    return CountSelector(count)
