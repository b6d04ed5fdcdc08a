"""Duration string helpers ("10 seconds", "1 minutes", "2 hours", "500 ms")."""

from __future__ import annotations

import re

_DURATION_RE = re.compile(
    r"^(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>milliseconds?|millis|ms|seconds?|secs?|s|minutes?|mins?|m|hours?|hrs?|h)$",
    re.IGNORECASE,
)

_UNIT_MS = {
    "ms": 1,
    "millis": 1,
    "millisecond": 1,
    "milliseconds": 1,
    "s": 1000,
    "sec": 1000,
    "secs": 1000,
    "second": 1000,
    "seconds": 1000,
    "m": 60_000,
    "min": 60_000,
    "mins": 60_000,
    "minute": 60_000,
    "minutes": 60_000,
    "h": 3_600_000,
    "hr": 3_600_000,
    "hrs": 3_600_000,
    "hour": 3_600_000,
    "hours": 3_600_000,
}


def parse_duration_ms(text: str | None) -> int:
    """Return the duration in milliseconds, or 0 when empty/unparseable.

    Numeric consumers treat 0 as "no window configured".
    """
    if not text or not isinstance(text, str):
        return 0
    m = _DURATION_RE.match(text.strip())
    if not m:
        return 0
    value = float(m.group("value"))
    return round(value * _UNIT_MS[m.group("unit").lower()])


def format_elapsed(ms: int | None) -> str | None:
    """Render milliseconds compactly: 500ms, 45s, 2m, 1m 30s, 2h, 1h 5m."""
    if ms is None:
        return None
    if ms < 1000:
        return f"{int(ms)}ms"
    total = int(ms // 1000)
    if total < 60:
        return f"{total}s"
    if total < 3600:
        minutes, seconds = divmod(total, 60)
        return f"{minutes}m" if seconds == 0 else f"{minutes}m {seconds}s"
    hours, rest = divmod(total, 3600)
    minutes = rest // 60
    return f"{hours}h" if minutes == 0 else f"{hours}h {minutes}m"


def describe_duration(text: str | None) -> str | None:
    """Display form of a duration string.

    Unparseable input is echoed verbatim; only empty input yields None.
    """
    if not text or not text.strip():
        return None
    ms = parse_duration_ms(text)
    if not ms:
        return text
    return format_elapsed(ms)
