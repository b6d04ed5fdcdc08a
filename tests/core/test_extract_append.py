from __future__ import annotations

import pytest

from mcp_log_trigger_server.core.config import LogSourceConfig
from mcp_log_trigger_server.core.sources import apply_extract_append, escape_stray_backslashes
from mcp_log_trigger_server.core.sources.extract_append import render_append_format, splice


def test_windows_path_pattern() -> None:
    src = LogSourceConfig.model_validate(
        {"pathPattern": r"D:\Logs\app_(\d+)\.log", "appendFormat": "[@1] ", "appendPos": 0}
    )
    result = apply_extract_append(src, r"D:\Logs\app_42.log", "hello\nworld\n")

    assert result.matched
    assert result.groups == ["42"]
    assert result.resolved == "[42] "
    assert [line.result for line in result.lines] == ["[42] hello", "[42] world"]
    assert result.errors == []


def test_unmatched_path_leaves_lines_unchanged() -> None:
    src = LogSourceConfig.model_validate({"pathPattern": r"/logs/(\w+)\.log", "appendFormat": "@1 "})
    result = apply_extract_append(src, "/other/app.log", "line\n")

    assert not result.matched
    assert result.resolved == " "
    assert result.lines[0].result == "line"


def test_invalid_path_pattern_is_reported() -> None:
    src = LogSourceConfig.model_validate({"pathPattern": "(", "appendFormat": "x"})
    result = apply_extract_append(src, "/a.log", "line\n")

    assert not result.matched
    assert result.errors[0].startswith("pathPattern:")
    assert result.lines[0].result == "line"


def test_escape_stray_backslashes() -> None:
    assert escape_stray_backslashes(r"C:\Logs\x\d") == r"C:\\Logs\\x\d"
    assert escape_stray_backslashes(r"a\.b") == r"a\.b"


def test_render_append_format_blanks_missing_groups() -> None:
    assert render_append_format("@1-@2-@6", ["a"]) == "a--@6"


@pytest.mark.parametrize(
    ("pos", "expected"),
    [(0, "XYabc"), (-1, "XYabc"), (2, "abXYc"), (3, "abcXY"), (99, "abcXY")],
)
def test_splice_positions(pos: int, expected: str) -> None:
    assert splice("abc", "XY", pos) == expected


def test_empty_text_is_one_empty_line() -> None:
    src = LogSourceConfig.model_validate(
        {"pathPattern": r"/logs/(\w+)\.log", "appendFormat": "[@1]", "appendPos": 0}
    )
    result = apply_extract_append(src, "/logs/web.log", "")

    assert [(line.line_num, line.original, line.result) for line in result.lines] == [(1, "", "[web]")]
