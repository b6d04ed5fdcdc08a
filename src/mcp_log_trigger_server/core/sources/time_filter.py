"""Drop lines whose log time goes backwards (a read watermark)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from ..config import LogSourceConfig
from ..lines import split_lines
from ..models import FilteredLine, FilterStatus, TimeFilterResult
from ..timestamps import TimestampFormat, compile_timestamp_format


@dataclass(slots=True)
class _Watermark:
    last_read: datetime | None = None
    passed: int = 0
    skipped: int = 0
    no_timestamp: int = 0


def _all_unmatched(lines: list[str], reason: str, errors: list[str]) -> TimeFilterResult:
    return TimeFilterResult(
        lines=[
            FilteredLine(i + 1, text, None, None, FilterStatus.NO_MATCH, reason)
            for i, text in enumerate(lines)
        ],
        passed=0,
        skipped=0,
        no_timestamp=len(lines),
        errors=errors,
    )


def _parse_extracted(extracted: str, fmt: TimestampFormat | None) -> datetime | None:
    if fmt is None:
        return None
    return fmt.search(extracted)


def filter_by_log_time(source: LogSourceConfig, text: str | None) -> TimeFilterResult:
    """Classify each line as pass, skip or no-match against a running watermark.

    The timestamp substring is the first capture group of
    `log_time_pattern` when it has one, otherwise the whole match. Lines
    whose time cannot be extracted or parsed pass through untouched and
    leave the watermark alone.
    """
    lines = split_lines(text)
    if not source.log_time_pattern:
        return _all_unmatched(lines, "pattern not set", ["log_time_pattern is not set"])
    try:
        pattern = re.compile(source.log_time_pattern)
    except re.error as exc:
        return _all_unmatched(lines, "invalid pattern", [f"log_time_pattern: {exc}"])

    fmt = compile_timestamp_format(source.log_time_format)
    mark = _Watermark()
    out: list[FilteredLine] = []

    for idx, line in enumerate(lines):
        m = pattern.search(line)
        if not m:
            mark.no_timestamp += 1
            out.append(
                FilteredLine(idx + 1, line, None, None, FilterStatus.NO_MATCH, "no time found (passed through)")
            )
            continue

        extracted = (m.group(1) if m.re.groups else None) or m.group(0)
        parsed = _parse_extracted(extracted, fmt)
        if parsed is None:
            mark.no_timestamp += 1
            out.append(
                FilteredLine(
                    idx + 1, line, extracted, None, FilterStatus.NO_MATCH, "time not parsed (passed through)"
                )
            )
            continue

        if mark.last_read is not None and parsed < mark.last_read:
            mark.skipped += 1
            out.append(
                FilteredLine(
                    idx + 1, line, extracted, parsed, FilterStatus.SKIP, f"{extracted} is older than last read time"
                )
            )
            continue

        reason = (
            f"same time {extracted} (sent)"
            if parsed == mark.last_read
            else f"new time {extracted} (sent, watermark advanced)"
        )
        mark.last_read = parsed
        mark.passed += 1
        out.append(FilteredLine(idx + 1, line, extracted, parsed, FilterStatus.PASS, reason))

    return TimeFilterResult(
        lines=out,
        passed=mark.passed,
        skipped=mark.skipped,
        no_timestamp=mark.no_timestamp,
        errors=[],
    )
