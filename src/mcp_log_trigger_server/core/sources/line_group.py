"""Fixed-size line grouping."""

from __future__ import annotations

import re

from ..config import LogSourceConfig
from ..lines import split_lines
from ..models import LineGroup, LineGroupResult, NumberedLine

GROUP_SEPARATOR = "<<EOL>>"


def group_lines(source: LogSourceConfig, text: str | None) -> LineGroupResult:
    """Buffer matching lines into groups of `line_group_count`.

    Lines that do not full-match `line_group_pattern` bypass the buffer
    and are reported as ungrouped. A partly filled buffer at the end is
    returned as `buffered`, never as a group.
    """
    lines = split_lines(text)
    pattern = None
    if source.line_group_pattern:
        try:
            pattern = re.compile(source.line_group_pattern)
        except re.error as exc:
            return LineGroupResult(
                groups=[],
                ungrouped=[],
                buffered=[],
                total_lines=len(lines),
                errors=[f"line_group_pattern: {exc}"],
            )

    count = source.line_group_count
    groups: list[LineGroup] = []
    ungrouped: list[NumberedLine] = []
    buffer: list[NumberedLine] = []

    for idx, line in enumerate(lines):
        entry = NumberedLine(idx + 1, line)
        if pattern is not None and not pattern.fullmatch(line):
            ungrouped.append(entry)
            continue
        buffer.append(entry)
        if len(buffer) >= count:
            groups.append(
                LineGroup(
                    group_num=len(groups) + 1,
                    lines=buffer,
                    grouped_text=GROUP_SEPARATOR.join(item.text for item in buffer),
                )
            )
            buffer = []

    return LineGroupResult(groups=groups, ungrouped=ungrouped, buffered=buffer, total_lines=len(lines))
