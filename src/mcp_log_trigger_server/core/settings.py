"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import codecs
import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR_ENV = "LOG_TRIGGER_BASE_DIR"
LOG_LEVEL_ENV = "LOG_TRIGGER_LOG_LEVEL"
MAX_SAMPLE_LINES_ENV = "LOG_TRIGGER_MAX_SAMPLE_LINES"
TEXT_ENCODING_ENV = "LOG_TRIGGER_TEXT_ENCODING"


@dataclass(frozen=True, slots=True)
class Settings:
    base_dir: Path
    log_level: str = "INFO"
    max_sample_lines: int = 50_000
    text_encoding: str = "utf-8"
    decode_errors: str = "replace"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 1:
        raise ValueError(f"{name} must be >= 1")
    return value


def _env_encoding(name: str, default: str) -> str:
    raw = os.getenv(name) or default
    try:
        codecs.lookup(raw)
    except LookupError as exc:
        raise ValueError(f"{name} names an unknown encoding: {raw}") from exc
    return raw


def resolve_settings() -> Settings:
    """Build Settings from LOG_TRIGGER_* variables, validating each one."""
    base = Path(os.getenv(BASE_DIR_ENV) or os.getcwd()).expanduser().resolve()
    return Settings(
        base_dir=base,
        log_level=(os.getenv(LOG_LEVEL_ENV) or "INFO").upper(),
        max_sample_lines=_env_int(MAX_SAMPLE_LINES_ENV, 50_000),
        text_encoding=_env_encoding(TEXT_ENCODING_ENV, "utf-8"),
    )
