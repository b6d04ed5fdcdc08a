from __future__ import annotations

import json
from pathlib import Path

import pytest

from mcp_log_trigger_server.resources.registry import SAMPLE_LOG, SAMPLE_TRIGGER, help_text
from mcp_log_trigger_server.tools import trigger_tools

TS = "yyyy-MM-dd HH:mm:ss"


def test_sample_trigger_fires_on_sample_log() -> None:
    out = trigger_tools.test_trigger_impl(trigger=SAMPLE_TRIGGER, log_text=SAMPLE_LOG, timestamp_format=TS)

    assert out["triggered"] is True
    assert out["message"] == "all steps completed -> @notify (1 firing(s), within limit)"
    assert [s["outcome"] for s in out["steps"]] == ["fired", "timed_out"]
    assert out["steps"][0]["matches"][0]["groups"] == {"user": "alice", "attempts": "3"}
    assert out["limitation"]["allowed_firings"] == 1
    assert out["firings"][-1]["incomplete"] is True
    # Everything must survive the MCP JSON response encoder.
    json.dumps(out)


def test_single_trigger_omits_limitation_keys() -> None:
    out = trigger_tools.test_trigger_impl(
        trigger={"recipe": [{"name": "a", "trigger": ".*X.*"}]},
        log_text="X\n",
    )
    assert out["triggered"] is True
    assert "firings" not in out
    assert "is_multi" not in out


def test_multi_result_hides_runtime_state() -> None:
    out = trigger_tools.test_trigger_impl(
        trigger={
            "class": "MULTI",
            "recipe": [
                {"name": "open", "trigger": r".*start (<<id>>\w+)", "next": "close"},
                {"name": "close", "trigger": ".*end @<<id>>@"},
            ],
        },
        log_text="start A\nend A\n",
    )
    assert out["is_multi"] is True
    assert out["multi_summary"]["fired"] == 1
    instance = out["instances"][0]
    assert instance["status"] == "fired"
    assert "pending" not in instance
    assert "current_step_index" not in instance


@pytest.mark.parametrize("bad", [["not", "a", "dict"], {"recipe": "oops"}])
def test_invalid_trigger_raises_value_error(bad) -> None:
    with pytest.raises(ValueError):
        trigger_tools.test_trigger_impl(trigger=bad, log_text="x\n")


@pytest.mark.asyncio
async def test_trigger_files_reports_file_and_line(tmp_path: Path, monkeypatch, write_log) -> None:
    monkeypatch.setenv("LOG_TRIGGER_BASE_DIR", str(tmp_path))
    write_log(tmp_path / "a.log", ["ok", "ok"])
    write_log(tmp_path / "b.log", ["ERROR boom"])

    out = await trigger_tools.test_trigger_files_impl(
        trigger={"recipe": [{"name": "err", "trigger": ".*ERROR.*"}]},
        log_paths=["a.log", "b.log"],
    )

    assert out["triggered"] is True
    match = out["steps"][0]["matches"][0]
    assert (match["file_name"], match["line_num"], match["global_line_num"]) == ("b.log", 1, 3)
    assert out["files"] == [
        {"name": "a.log", "line_count": 2, "truncated": False},
        {"name": "b.log", "line_count": 1, "truncated": False},
    ]


@pytest.mark.asyncio
async def test_trigger_files_requires_paths() -> None:
    with pytest.raises(ValueError, match="log_paths"):
        await trigger_tools.test_trigger_files_impl(trigger={"recipe": []}, log_paths=[])


def test_source_path_tool() -> None:
    out = trigger_tools.test_source_path_impl(
        source={"directory": "/logs", "prefix": "app_yyyyMMdd"},
        file_path="/logs/app_20260214.log",
        now="2026-02-14T09:00:00",
    )
    assert out["matched"] is True
    assert out["steps"][0] == {"label": "directory", "passed": True, "detail": "'/logs' matched"}

    with pytest.raises(ValueError, match="ISO-8601"):
        trigger_tools.test_source_path_impl(source={"suffix": ".log"}, file_path="a.log", now="yesterday")


def test_multiline_tool_summary() -> None:
    out = trigger_tools.test_multiline_impl(
        source={"start_pattern": "S.*"},
        log_text="noise\nS1\na\nS2\n",
    )
    assert out["summary"] == {"total_lines": 4, "block_count": 2, "skipped_count": 1}
    assert out["blocks"][0]["line_count"] == 2
    assert out["blocks"][0]["terminated_by"] == "startPattern"


def test_extract_append_tool() -> None:
    out = trigger_tools.test_extract_append_impl(
        source={"pathPattern": r"/logs/(\w+)/(\w+)\.log", "appendFormat": "@1/@2 ", "appendPos": 0},
        file_path="/logs/web/access.log",
        log_text="GET /\n",
    )
    assert out["extraction"]["groups"] == ["web", "access"]
    assert out["formatting"]["resolved"] == "web/access "
    assert out["lines"][0]["result"] == "web/access GET /"
    assert out["summary"] == {"total_lines": 1, "group_count": 2}


def test_time_filter_tool() -> None:
    out = trigger_tools.test_log_time_filter_impl(
        source={"log_time_pattern": r"^(\d\d:\d\d:\d\d)", "log_time_format": "HH:mm:ss"},
        log_text="10:00:00 a\n09:00:00 b\nno time\n",
    )
    assert out["summary"] == {"total": 3, "passed": 1, "skipped": 1, "no_timestamp": 1}
    assert [line["status"] for line in out["lines"]] == ["pass", "skip", "no-match"]


def test_line_group_tool() -> None:
    out = trigger_tools.test_line_group_impl(source={"line_group_count": 2}, log_text="a\nb\nc\n")
    assert out["summary"] == {
        "total_lines": 3,
        "group_count": 1,
        "ungrouped_count": 0,
        "incomplete_group": True,
    }
    assert out["groups"][0]["grouped_text"] == "a<<EOL>>b"


def test_help_text_lists_resources(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOG_TRIGGER_BASE_DIR", str(tmp_path))
    text = help_text()
    assert "app://log-trigger/examples/sample-trigger" in text
    assert "@notify" in text
    assert str(tmp_path.resolve()) in text
