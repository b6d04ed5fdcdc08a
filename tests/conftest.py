from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from mcp_log_trigger_server.core.config import TriggerConfig

TS_FORMAT = "yyyy-MM-dd HH:mm:ss"


@pytest.fixture
def make_trigger() -> Callable[..., TriggerConfig]:
    def _make(*steps: dict[str, Any], **extra: Any) -> TriggerConfig:
        return TriggerConfig.model_validate({"name": "t", "recipe": list(steps), **extra})

    return _make


@pytest.fixture
def stamped() -> Callable[..., str]:
    """Build log text from (time, message) pairs on 2026-02-14."""

    def _stamped(*rows: tuple[str, str]) -> str:
        return "".join(f"2026-02-14 {hhmmss} {msg}\n" for hhmmss, msg in rows)

    return _stamped


@pytest.fixture
def write_log() -> Callable[[Path, list[str]], None]:
    def _write(path: Path, lines: list[str]) -> None:
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    return _write
