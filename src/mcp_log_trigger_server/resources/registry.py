"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

import asyncio
import gzip
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_log_trigger_server.core.config import TERMINAL_ACTIONS, LogSourceConfig, TriggerConfig
from mcp_log_trigger_server.core.settings import BASE_DIR_ENV, resolve_settings

ALLOWED_FILE_SUFFIXES = {".log", ".txt", ".json"}
TEXT_ERRORS = "replace"

SAMPLE_TRIGGER: dict[str, Any] = {
    "name": "login_failure_burst",
    "source": "auth_log",
    "recipe": [
        {
            "name": "failures",
            "type": "regex",
            "trigger": [
                {
                    "syntax": r".*login failed user=<<user>> attempts=(<<attempts>>\d+)",
                    "params": "ParamComparisionMatcher1@3,GTE,attempts",
                }
            ],
            "times": 2,
            "duration": "1 minute",
            "next": "quiet",
        },
        {
            "name": "quiet",
            "type": "delay",
            "trigger": [r".*login ok user=\S+"],
            "duration": "30 seconds",
            "next": "@notify",
        },
    ],
    "limitation": {"times": 1, "duration": "10 minutes"},
}

SAMPLE_LOG = (
    "2026-02-14 09:00:01 INFO auth started\n"
    "2026-02-14 09:00:05 WARN login failed user=alice attempts=3\n"
    "2026-02-14 09:00:20 WARN login failed user=alice attempts=4\n"
    "2026-02-14 09:00:40 INFO heartbeat\n"
    "2026-02-14 09:01:10 INFO heartbeat\n"
)


def _base_dir() -> Path:
    """Return the resolved base directory for file resources."""
    return resolve_settings().base_dir


def _safe_resolve(path: str) -> Path:
    """Resolve a path under the configured base directory."""
    base = _base_dir()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError("Path escapes base dir")
    return p


def _allowed_suffix(path: Path) -> str:
    """Return the effective suffix for allowlist checks."""
    suffix = path.suffix.lower()
    if suffix == ".gz":
        suffix = path.with_suffix("").suffix.lower()
    return suffix


def _ensure_allowed_suffix(path: Path) -> None:
    """Validate the file suffix against the allowlist."""
    suffix = _allowed_suffix(path)
    if suffix not in ALLOWED_FILE_SUFFIXES:
        allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
        raise ValueError(f"File type not allowed. Allowed: {allowed}.")


def _resolve_resource_path(path: str) -> Path:
    """Resolve and validate a resource file path."""
    resolved = _safe_resolve(path)
    if not resolved.is_file():
        raise FileNotFoundError(f"File not found: {resolved}")
    _ensure_allowed_suffix(resolved)
    return resolved


def _open_text(path: Path) -> str:
    """Read text from a file, supporting optional gzip compression."""
    encoding = resolve_settings().text_encoding
    if path.suffix.lower() == ".gz":
        with gzip.open(path, mode="rt", encoding=encoding, errors=TEXT_ERRORS) as f:
            return f.read()
    return path.read_text(encoding=encoding, errors=TEXT_ERRORS)


def help_text() -> str:
    allowed = ", ".join(sorted(ALLOWED_FILE_SUFFIXES))
    actions = ", ".join(sorted(TERMINAL_ACTIONS))
    return (
        "Resources:\n"
        "- app://log-trigger/help\n"
        "- app://log-trigger/examples/sample-trigger\n"
        "- app://log-trigger/examples/sample-log\n"
        "- app://log-trigger/schemas/trigger\n"
        "- app://log-trigger/schemas/log-source\n"
        f"- file://{{path}} (restricted to {BASE_DIR_ENV}; allowed: {allowed}, .gz)\n"
        "- log://{path} (same rules as file://; intended for logs)\n"
        "\nPattern syntax:\n"
        "- <<name>> captures non-whitespace as name\n"
        "- (<<name>>regex) captures regex as name\n"
        "- @<<name>>@ reuses a value captured earlier (class MULTI)\n"
        "- patterns must match the whole line\n"
        f"\nTerminal actions for next: {actions}\n"
        f"\nBase directory: {_base_dir()}\n"
    )


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://log-trigger/help")
    def help_resource() -> str:
        """Return the resource list and a pattern syntax cheat sheet."""
        return help_text()

    @mcp.resource("app://log-trigger/examples/sample-trigger")
    def sample_trigger() -> dict[str, Any]:
        """Return a two-step trigger with params, a delay and a limitation."""
        return SAMPLE_TRIGGER

    @mcp.resource("app://log-trigger/examples/sample-log")
    def sample_log() -> str:
        """Return a tiny sample log that fires the sample trigger."""
        return SAMPLE_LOG

    @mcp.resource("app://log-trigger/schemas/trigger")
    def trigger_schema() -> dict[str, Any]:
        """Return the JSON schema for trigger definitions."""
        return TriggerConfig.model_json_schema()

    @mcp.resource("app://log-trigger/schemas/log-source")
    def log_source_schema() -> dict[str, Any]:
        """Return the JSON schema for log source definitions."""
        return LogSourceConfig.model_json_schema()

    @mcp.resource("file://{path}")
    async def read_file(path: str) -> str:
        """Read a text file from within LOG_TRIGGER_BASE_DIR."""
        p = _resolve_resource_path(path)
        return await asyncio.to_thread(_open_text, p)

    @mcp.resource("log://{path}")
    async def read_log(path: str) -> str:
        """Return the full log contents."""
        p = _resolve_resource_path(path)
        return await asyncio.to_thread(_open_text, p)
