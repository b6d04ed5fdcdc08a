from __future__ import annotations

from datetime import datetime

from mcp_log_trigger_server.core.config import LogSourceConfig
from mcp_log_trigger_server.core.sources import match_source_path

NOW = datetime(2026, 2, 14, 9, 0, 0)


def _source(**fields) -> LogSourceConfig:
    return LogSourceConfig.model_validate(fields)


def test_plain_match_records_every_check() -> None:
    src = _source(directory="/var/log/app", prefix="app", suffix=".log", exclude_suffix=".gz")
    result = match_source_path(src, "/var/log/app/app_1.log", NOW)

    assert result.matched
    assert [s.label for s in result.steps] == ["directory", "prefix", "suffix", "exclude"]
    assert result.steps[-1].detail == "not excluded"


def test_windows_separators_are_normalized() -> None:
    src = _source(directory="C:\\logs", suffix=".log")
    result = match_source_path(src, "C:\\logs\\app.log", NOW)
    assert result.matched
    assert result.steps[-1].detail == "no exclude list"


def test_wrong_directory_stops_early() -> None:
    result = match_source_path(_source(directory="/srv", suffix=".log"), "/var/log/a.log", NOW)
    assert not result.matched
    assert [s.label for s in result.steps] == ["directory"]


def test_filename_filter_required() -> None:
    result = match_source_path(_source(directory="/logs"), "/logs/a.log", NOW)
    assert not result.matched
    assert result.steps[-1].label == "filename filter"


def test_unexpected_subdirectory() -> None:
    result = match_source_path(_source(directory="/logs", suffix=".log"), "/logs/old/a.log", NOW)
    assert not result.matched
    assert result.steps[-1].label == "subdirectory"


def test_date_subdirectory_resolves_against_now() -> None:
    src = _source(directory="/logs", suffix=".log", date_subdir_format="yyyy/MM/dd")

    today = match_source_path(src, "/logs/2026/02/14/app.log", NOW)
    assert today.matched
    assert today.steps[1].label == "date subdirectory"

    yesterday = match_source_path(src, "/logs/2026/02/13/app.log", NOW)
    assert not yesterday.matched
    assert yesterday.steps[-1].label == "date subdirectory"


def test_date_tokens_in_prefix() -> None:
    src = _source(directory="/logs", prefix="app_yyyyMMdd")

    result = match_source_path(src, "/logs/app_20260214.log", NOW)
    assert result.matched
    assert "app_yyyyMMdd" in result.steps[1].detail

    assert not match_source_path(src, "/logs/app_20260101.log", NOW).matched


def test_excluded_suffix() -> None:
    src = _source(directory="/logs", prefix="app", exclude_suffix=".gz,.bak")
    result = match_source_path(src, "/logs/app.log.gz", NOW)
    assert not result.matched
    assert result.steps[-1].label == "exclude"
    assert "'.gz'" in result.steps[-1].detail
