"""Daily reboot window evaluation."""

import re
from dataclasses import dataclass
from datetime import time
from typing import Optional

_HHMM_RE = re.compile(r"^([0-9]{2}):([0-9]{2})$")


@dataclass(frozen=True)
class RebootWindow:
    """A time-of-day interval during which automatic reboots are allowed."""

    lower: time
    upper: time

    def __str__(self) -> str:
        return f"{self.lower:%H:%M}-{self.upper:%H:%M}"


def parse_time_of_day(value: str) -> time:
    """
    Parse a 24h ``"HH:MM"`` string into a ``datetime.time``.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    match = _HHMM_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"expected 'HH:MM', got {value!r}")
    hh, mm = int(match.group(1)), int(match.group(2))
    if hh > 23 or mm > 59:
        raise ValueError(f"time of day out of range: {value!r}")
    return time(hour=hh, minute=mm)


def is_within_window(window: Optional[RebootWindow], now: time) -> bool:
    """
    Return True if ``now`` falls inside ``window``.

    No window means no restriction. Both bounds are inclusive, and a window
    whose lower bound is later than its upper bound wraps past midnight
    (e.g. 22:00-02:00).
    """
    if window is None:
        return True
    now = now.replace(second=0, microsecond=0, tzinfo=None)
    lower, upper = window.lower, window.upper
    if lower <= upper:
        return lower <= now <= upper
    return now >= lower or now <= upper
