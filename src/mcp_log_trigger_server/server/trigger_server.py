"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: dry-run a trigger or log source definition against sample logs
- Resources: help text, examples, JSON schemas and sandboxed file reads
- Prompts: reusable conversation templates that clients can invoke

Run locally (stdio):
    python -m mcp_log_trigger_server.server.trigger_server
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_trigger_server.core.settings import resolve_settings
from mcp_log_trigger_server.prompts.registry import register_prompts
from mcp_log_trigger_server.resources.registry import register_resources
from mcp_log_trigger_server.tools import trigger_tools

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure a reasonable default logging setup.

    The MCP client typically captures stderr; keeping logs concise makes them easier to consume.
    """
    level_name = resolve_settings().log_level
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("log-trigger", json_response=True)

register_resources(mcp)
register_prompts(mcp)


@mcp.tool()
def test_trigger(
    trigger: dict[str, Any],
    log_text: str,
    timestamp_format: str | None = None,
) -> dict[str, Any]:
    """Evaluate a trigger definition against sample log text.

    Parameters
    ----------
    trigger:
        Trigger definition: {"name", "source", "recipe": [...], "limitation", "class"}.
        Each recipe step has name, type (regex|delay), trigger patterns, times,
        duration and next.
    log_text:
        Sample log lines separated by newlines.
    timestamp_format:
        Token format used to read a timestamp from each line
        (e.g., "yyyy-MM-dd HH:mm:ss"). Required for duration windows.

    Returns
    -------
    dict:
        {"triggered": bool, "message": str, "steps": [...], "regex_errors": [...]}
        plus "firings"/"limitation" when a limitation is set, and
        "instances"/"multi_summary" for class MULTI.
    """
    return trigger_tools.test_trigger_impl(
        trigger=trigger,
        log_text=log_text,
        timestamp_format=timestamp_format,
    )


@mcp.tool()
async def test_trigger_files(
    trigger: dict[str, Any],
    log_paths: Sequence[str],
    timestamp_format: str | None = None,
) -> dict[str, Any]:
    """Evaluate a trigger across one or more log files read as a single stream.

    Paths are resolved inside LOG_TRIGGER_BASE_DIR; plain text and .gz are
    supported. Every match carries file_name, the file-local line_num and
    global_line_num.
    """
    return await trigger_tools.test_trigger_files_impl(
        trigger=trigger,
        log_paths=list(log_paths),
        timestamp_format=timestamp_format,
    )


@mcp.tool()
def test_source_path(
    source: dict[str, Any],
    file_path: str,
    now: str | None = None,
) -> dict[str, Any]:
    """Check whether a file path would be collected by a log source.

    `now` (ISO-8601, local time) pins the date used for date tokens in
    date_subdir_format, prefix, suffix and wildcard.
    """
    return trigger_tools.test_source_path_impl(source=source, file_path=file_path, now=now)


@mcp.tool()
def test_multiline(source: dict[str, Any], log_text: str) -> dict[str, Any]:
    """Show how start_pattern/end_pattern/line_count split text into blocks."""
    return trigger_tools.test_multiline_impl(source=source, log_text=log_text)


@mcp.tool()
def test_extract_append(source: dict[str, Any], file_path: str, log_text: str) -> dict[str, Any]:
    """Extract pathPattern groups from a file path and splice appendFormat into each line."""
    return trigger_tools.test_extract_append_impl(
        source=source,
        file_path=file_path,
        log_text=log_text,
    )


@mcp.tool()
def test_log_time_filter(source: dict[str, Any], log_text: str) -> dict[str, Any]:
    """Show which lines the log time watermark would pass, skip or ignore."""
    return trigger_tools.test_log_time_filter_impl(source=source, log_text=log_text)


@mcp.tool()
def test_line_group(source: dict[str, Any], log_text: str) -> dict[str, Any]:
    """Show how lines are grouped by line_group_count and line_group_pattern."""
    return trigger_tools.test_line_group_impl(source=source, log_text=log_text)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
