from __future__ import annotations

from pathlib import Path

import pytest

from mcp_log_trigger_server.core.settings import resolve_settings


def test_defaults(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "LOG_TRIGGER_BASE_DIR",
        "LOG_TRIGGER_LOG_LEVEL",
        "LOG_TRIGGER_MAX_SAMPLE_LINES",
        "LOG_TRIGGER_TEXT_ENCODING",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = resolve_settings()
    assert settings.base_dir == tmp_path.resolve()
    assert settings.log_level == "INFO"
    assert settings.max_sample_lines == 50_000
    assert settings.text_encoding == "utf-8"


def test_env_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOG_TRIGGER_BASE_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_TRIGGER_LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_TRIGGER_MAX_SAMPLE_LINES", "10")
    monkeypatch.setenv("LOG_TRIGGER_TEXT_ENCODING", "latin-1")

    settings = resolve_settings()
    assert settings.base_dir == tmp_path.resolve()
    assert settings.log_level == "DEBUG"
    assert settings.max_sample_lines == 10
    assert settings.text_encoding == "latin-1"


@pytest.mark.parametrize("value", ["0", "-3", "many"])
def test_invalid_max_sample_lines(monkeypatch, value: str) -> None:
    monkeypatch.setenv("LOG_TRIGGER_MAX_SAMPLE_LINES", value)
    with pytest.raises(ValueError, match="LOG_TRIGGER_MAX_SAMPLE_LINES"):
        resolve_settings()


def test_unknown_encoding(monkeypatch) -> None:
    monkeypatch.setenv("LOG_TRIGGER_TEXT_ENCODING", "no-such-codec")
    with pytest.raises(ValueError, match="unknown encoding"):
        resolve_settings()
