"""In-memory line buffer shared by one engine invocation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .timestamps import TimestampFormat, compile_timestamp_format


def split_lines(text: str | None) -> list[str]:
    """Split sample text on newlines.

    A single terminating newline does not produce a trailing empty line,
    and a trailing carriage return is stripped from every line.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


@dataclass(frozen=True, slots=True)
class LineBuffer:
    """Lines plus the timestamp extracted from each (None if absent)."""

    lines: list[str]
    timestamps: list[datetime | None]
    timestamp_format: TimestampFormat | None = None

    @classmethod
    def from_text(cls, text: str | None, timestamp_format: str | None = None) -> LineBuffer:
        return cls.from_lines(split_lines(text), timestamp_format)

    @classmethod
    def from_lines(cls, lines: list[str], timestamp_format: str | None = None) -> LineBuffer:
        fmt = compile_timestamp_format(timestamp_format)
        if fmt is None:
            stamps: list[datetime | None] = [None] * len(lines)
        else:
            stamps = [fmt.search(line) for line in lines]
        return cls(lines=lines, timestamps=stamps, timestamp_format=fmt)

    @property
    def has_timestamps(self) -> bool:
        return self.timestamp_format is not None

    def __len__(self) -> int:
        return len(self.lines)
