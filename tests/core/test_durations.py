from __future__ import annotations

import pytest

from mcp_log_trigger_server.core.durations import describe_duration, format_elapsed, parse_duration_ms


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("10 seconds", 10_000),
        ("1 second", 1_000),
        ("1 minutes", 60_000),
        ("5min", 300_000),
        ("2 Hours", 7_200_000),
        ("1.5 m", 90_000),
        ("60000 ms", 60_000),
    ],
)
def test_parse_duration_ms(text: str, expected: int) -> None:
    assert parse_duration_ms(text) == expected


@pytest.mark.parametrize("text", [None, "", "soon", "10 days", "minutes"])
def test_unparseable_duration_is_zero(text: str | None) -> None:
    assert parse_duration_ms(text) == 0


def test_describe_duration_echoes_unparseable_text() -> None:
    assert describe_duration("10 seconds") == "10s"
    assert describe_duration("90 seconds") == "1m 30s"
    assert describe_duration("whenever") == "whenever"
    assert describe_duration("  ") is None


def test_format_elapsed() -> None:
    assert format_elapsed(500) == "500ms"
    assert format_elapsed(45_000) == "45s"
    assert format_elapsed(120_000) == "2m"
    assert format_elapsed(3_900_000) == "1h 5m"
    assert format_elapsed(None) is None
