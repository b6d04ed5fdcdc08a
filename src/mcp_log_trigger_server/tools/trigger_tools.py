"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from mcp_log_trigger_server.core.config import LogSourceConfig, TriggerConfig
from mcp_log_trigger_server.core.engine import evaluate_trigger
from mcp_log_trigger_server.core.models import (
    ExtractAppendResult,
    LineGroupResult,
    MultilineResult,
    PathMatchResult,
    TimeFilterResult,
    TriggerResult,
)
from mcp_log_trigger_server.core.samples import evaluate_trigger_files, load_sample_files
from mcp_log_trigger_server.core.sources import (
    apply_extract_append,
    assemble_blocks,
    filter_by_log_time,
    group_lines,
    match_source_path,
)

# Runtime-only bookkeeping that is never part of a trace.
_HIDDEN_FIELDS = frozenset({"pending", "prev_step_timestamp", "current_step_index"})


def to_jsonable(value: Any) -> Any:
    """Convert trace dataclasses into plain JSON-ready values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in fields(value)
            if f.name not in _HIDDEN_FIELDS
        }
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def _validate(model: type[BaseModel], raw: Any, label: str) -> Any:
    if not isinstance(raw, Mapping):
        raise ValueError(f"{label} must be a JSON object.")
    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:
        raise ValueError(f"Invalid {label}: {exc}") from exc


def parse_trigger(raw: Any) -> TriggerConfig:
    """Validate a raw trigger definition."""
    return _validate(TriggerConfig, raw, "trigger definition")


def parse_source(raw: Any) -> LogSourceConfig:
    """Validate a raw log source definition."""
    return _validate(LogSourceConfig, raw, "log source definition")


def _parse_now(now: str | None) -> datetime | None:
    if not now:
        return None
    try:
        return datetime.fromisoformat(now)
    except ValueError as exc:
        raise ValueError(f"now must be an ISO-8601 datetime (e.g., 2026-02-14T09:00:00): {now}") from exc


def trigger_result_to_dict(result: TriggerResult) -> dict[str, Any]:
    d: dict[str, Any] = {
        "triggered": result.triggered,
        "message": result.message,
        "steps": to_jsonable(result.steps),
        "regex_errors": list(result.regex_errors),
    }
    if result.limitation is not None:
        d["firings"] = to_jsonable(result.firings)
        d["limitation"] = to_jsonable(result.limitation)
    if result.is_multi:
        d["is_multi"] = True
        d["instances"] = to_jsonable(result.instances)
        d["multi_summary"] = to_jsonable(result.multi_summary)
    return d


def test_trigger_impl(
    *,
    trigger: Mapping[str, Any],
    log_text: str,
    timestamp_format: str | None = None,
) -> dict[str, Any]:
    """Implementation for the `test_trigger` MCP tool."""
    cfg = parse_trigger(trigger)
    return trigger_result_to_dict(evaluate_trigger(cfg, log_text, timestamp_format))


async def test_trigger_files_impl(
    *,
    trigger: Mapping[str, Any],
    log_paths: Sequence[str],
    timestamp_format: str | None = None,
) -> dict[str, Any]:
    """Implementation for the `test_trigger_files` MCP tool."""
    if not log_paths:
        raise ValueError("log_paths must contain at least one file.")
    cfg = parse_trigger(trigger)
    samples = await load_sample_files(log_paths)
    result = evaluate_trigger_files(cfg, samples, timestamp_format)
    d = trigger_result_to_dict(result)
    d["files"] = [
        {"name": s.name, "line_count": len(s.lines), "truncated": s.truncated} for s in samples
    ]
    return d


def _path_result_to_dict(result: PathMatchResult) -> dict[str, Any]:
    return {"matched": result.matched, "steps": to_jsonable(result.steps)}


def test_source_path_impl(
    *,
    source: Mapping[str, Any],
    file_path: str,
    now: str | None = None,
) -> dict[str, Any]:
    """Implementation for the `test_source_path` MCP tool."""
    cfg = parse_source(source)
    return _path_result_to_dict(match_source_path(cfg, file_path, _parse_now(now)))


def _multiline_to_dict(result: MultilineResult) -> dict[str, Any]:
    blocks = []
    for block in result.blocks:
        d = to_jsonable(block)
        d["line_count"] = block.line_count
        blocks.append(d)
    return {
        "blocks": blocks,
        "skipped_lines": to_jsonable(result.skipped_lines),
        "summary": {
            "total_lines": result.total_lines,
            "block_count": len(result.blocks),
            "skipped_count": len(result.skipped_lines),
        },
        "errors": list(result.errors),
    }


def test_multiline_impl(*, source: Mapping[str, Any], log_text: str) -> dict[str, Any]:
    """Implementation for the `test_multiline` MCP tool."""
    cfg = parse_source(source)
    return _multiline_to_dict(assemble_blocks(cfg, log_text))


def _extract_append_to_dict(result: ExtractAppendResult) -> dict[str, Any]:
    return {
        "extraction": {
            "pattern": result.pattern,
            "matched": result.matched,
            "groups": list(result.groups),
        },
        "formatting": {
            "append_format": result.append_format,
            "resolved": result.resolved,
            "append_pos": result.append_pos,
        },
        "lines": to_jsonable(result.lines),
        "summary": {"total_lines": len(result.lines), "group_count": len(result.groups)},
        "errors": list(result.errors),
    }


def test_extract_append_impl(
    *,
    source: Mapping[str, Any],
    file_path: str,
    log_text: str,
) -> dict[str, Any]:
    """Implementation for the `test_extract_append` MCP tool."""
    cfg = parse_source(source)
    return _extract_append_to_dict(apply_extract_append(cfg, file_path, log_text))


def _time_filter_to_dict(result: TimeFilterResult) -> dict[str, Any]:
    return {
        "lines": to_jsonable(result.lines),
        "summary": {
            "total": len(result.lines),
            "passed": result.passed,
            "skipped": result.skipped,
            "no_timestamp": result.no_timestamp,
        },
        "errors": list(result.errors),
    }


def test_log_time_filter_impl(*, source: Mapping[str, Any], log_text: str) -> dict[str, Any]:
    """Implementation for the `test_log_time_filter` MCP tool."""
    cfg = parse_source(source)
    return _time_filter_to_dict(filter_by_log_time(cfg, log_text))


def _line_group_to_dict(result: LineGroupResult) -> dict[str, Any]:
    return {
        "groups": to_jsonable(result.groups),
        "ungrouped": to_jsonable(result.ungrouped),
        "buffered": to_jsonable(result.buffered),
        "summary": {
            "total_lines": result.total_lines,
            "group_count": len(result.groups),
            "ungrouped_count": len(result.ungrouped),
            "incomplete_group": result.incomplete_group,
        },
        "errors": list(result.errors),
    }


def test_line_group_impl(*, source: Mapping[str, Any], log_text: str) -> dict[str, Any]:
    """Implementation for the `test_line_group` MCP tool."""
    cfg = parse_source(source)
    return _line_group_to_dict(group_lines(cfg, log_text))
