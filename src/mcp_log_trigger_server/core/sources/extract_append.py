"""Extract values from a file path and splice them into every line."""

from __future__ import annotations

import re

from ..config import LogSourceConfig
from ..lines import split_lines
from ..models import AppendedLine, ExtractAppendResult

MAX_PATH_GROUPS = 5

# Characters that form a meaningful escape after a backslash. x, u, p and
# c are left out: in Windows paths they start directory names (\xml,
# \users, \programs, \config), so `\x41`-style escapes are not supported.
_REGEX_ESCAPES = frozenset("dDwWsSnrtfvbB0123456789.*+?(){}[]|^$\\/")


def escape_stray_backslashes(pattern: str) -> str:
    r"""Double backslashes that do not start a regex escape.

    Lets Windows paths typed with single separators (``D:\Logs\app``)
    match literally while ``\d``, ``\.`` and friends keep their meaning.
    """
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            nxt = pattern[i + 1]
            out.append("\\" + nxt if nxt in _REGEX_ESCAPES else "\\\\" + nxt)
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def render_append_format(template: str, groups: list[str]) -> str:
    """Replace ``@1``..``@5`` with captured values (missing ones become "")."""
    resolved = template
    for idx in range(MAX_PATH_GROUPS):
        value = groups[idx] if idx < len(groups) else ""
        resolved = resolved.replace(f"@{idx + 1}", value)
    return resolved


def splice(line: str, text: str, pos: int) -> str:
    if pos <= 0:
        return text + line
    if pos >= len(line):
        return line + text
    return line[:pos] + text + line[pos:]


def apply_extract_append(
    source: LogSourceConfig,
    file_path: str | None,
    text: str | None,
) -> ExtractAppendResult:
    """Full-match the path pattern against `file_path`, then splice the rendered format into each line."""
    errors: list[str] = []
    pattern = escape_stray_backslashes(source.path_pattern) if source.path_pattern else ""

    groups: list[str] = []
    matched = False
    if pattern:
        try:
            regex = re.compile(pattern)
        except re.error as exc:
            errors.append(f"pathPattern: {exc}")
        else:
            m = regex.fullmatch(file_path or "") if file_path else None
            if m:
                matched = True
                groups = [g or "" for g in m.groups()[:MAX_PATH_GROUPS]]

    resolved = render_append_format(source.append_format, groups)
    lines = [
        AppendedLine(
            line_num=idx + 1,
            original=line,
            result=splice(line, resolved, source.append_pos) if matched and resolved else line,
        )
        for idx, line in enumerate(split_lines(text) or [""])
    ]
    return ExtractAppendResult(
        pattern=pattern,
        matched=matched,
        groups=groups,
        append_format=source.append_format,
        resolved=resolved,
        append_pos=source.append_pos,
        lines=lines,
        errors=errors,
    )
