"""Token-based timestamp and date formats.

Two flavours are supported:

- timestamp formats (``yyyy-MM-dd HH:mm:ss.SSS``) used to pull a timestamp
  out of a log line; fields missing from the format default to
  2000-01-01 00:00:00.000 so time-of-day-only formats stay comparable.
- date formats (``'logs/'yyyy/MM/dd``) used to render "today's" path
  fragments, with single-quoted literals.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

_EPOCH_FIELDS = {
    "year": 2000,
    "month": 1,
    "day": 1,
    "hour": 0,
    "minute": 0,
    "second": 0,
    "millisecond": 0,
}

# (token, regex, field)
_TIMESTAMP_TOKENS: tuple[tuple[str, str, str], ...] = (
    ("yyyy", r"(\d{4})", "year"),
    ("MM", r"(\d{2})", "month"),
    ("dd", r"(\d{2})", "day"),
    ("HH", r"(\d{2})", "hour"),
    ("mm", r"(\d{2})", "minute"),
    ("ss", r"(\d{2})", "second"),
    ("SSS", r"(\d{3})", "millisecond"),
)

_DATE_TOKENS: tuple[tuple[str, Callable[[datetime], str]], ...] = (
    ("yyyy", lambda d: f"{d.year:04d}"),
    ("MM", lambda d: f"{d.month:02d}"),
    ("dd", lambda d: f"{d.day:02d}"),
    ("HH", lambda d: f"{d.hour:02d}"),
    ("mm", lambda d: f"{d.minute:02d}"),
    ("ss", lambda d: f"{d.second:02d}"),
)


@dataclass(frozen=True, slots=True)
class TimestampFormat:
    """Compiled timestamp format: extraction regex plus field mapping."""

    format: str
    regex: re.Pattern[str]
    fields: tuple[str, ...]  # field name per capture group, in order

    def parse_match(self, m: re.Match[str]) -> datetime | None:
        """Build a datetime from a regex match, or None if out of range."""
        parts = dict(_EPOCH_FIELDS)
        for idx, name in enumerate(self.fields, start=1):
            raw = m.group(idx)
            if raw is not None:
                parts[name] = int(raw)
        try:
            return datetime(
                parts["year"],
                parts["month"],
                parts["day"],
                parts["hour"],
                parts["minute"],
                parts["second"],
                parts["millisecond"] * 1000,
            )
        except ValueError:
            return None

    def search(self, text: str) -> datetime | None:
        """Find and parse the first timestamp occurring in `text`."""
        m = self.regex.search(text)
        if not m:
            return None
        return self.parse_match(m)


def compile_timestamp_format(fmt: str | None) -> TimestampFormat | None:
    """Compile a timestamp format; an empty format disables timestamps."""
    if not fmt:
        return None

    parts: list[str] = []
    fields: list[str] = []
    i = 0
    while i < len(fmt):
        for token, pattern, name in _TIMESTAMP_TOKENS:
            if fmt.startswith(token, i):
                parts.append(pattern)
                fields.append(name)
                i += len(token)
                break
        else:
            parts.append(re.escape(fmt[i]))
            i += 1

    return TimestampFormat(format=fmt, regex=re.compile("".join(parts)), fields=tuple(fields))


@dataclass(frozen=True, slots=True)
class DateFormat:
    """Compiled date format for rendering path fragments."""

    format: str
    segments: tuple[str | Callable[[datetime], str], ...]

    def render(self, when: datetime) -> str:
        return "".join(seg if isinstance(seg, str) else seg(when) for seg in self.segments)


def compile_date_format(fmt: str) -> DateFormat:
    """Compile a date format with quoted literals ('' is a literal quote)."""
    segments: list[str | Callable[[datetime], str]] = []
    i = 0
    while i < len(fmt):
        if fmt.startswith("''", i):
            segments.append("'")
            i += 2
            continue
        if fmt[i] == "'":
            i += 1
            literal: list[str] = []
            while i < len(fmt):
                if fmt[i] == "'" and i + 1 < len(fmt) and fmt[i + 1] == "'":
                    literal.append("'")
                    i += 2
                elif fmt[i] == "'":
                    i += 1
                    break
                else:
                    literal.append(fmt[i])
                    i += 1
            text = "".join(literal)
            segments.append(text)
            continue

        for token, render in _DATE_TOKENS:
            if fmt.startswith(token, i):
                segments.append(render)
                i += len(token)
                break
        else:
            segments.append(fmt[i])
            i += 1

    return DateFormat(format=fmt, segments=tuple(segments))


def has_date_tokens(text: str | None) -> bool:
    return bool(text) and any(token in text for token, _ in _DATE_TOKENS)


def resolve_date_tokens(text: str, when: datetime) -> str:
    """Render `text` as a date format if it contains any date token."""
    if not has_date_tokens(text):
        return text
    return compile_date_format(text).render(when)
