from __future__ import annotations

from datetime import datetime

from mcp_log_trigger_server.core.engine import (
    MAX_FIRINGS,
    evaluate_trigger,
    execute_chain,
    is_suppressed,
    run_limited,
)
from mcp_log_trigger_server.core.lines import LineBuffer
from mcp_log_trigger_server.core.models import Firing

TS = "yyyy-MM-dd HH:mm:ss"


def _limited(make_trigger, times=1, duration="60000 ms", **step):
    definition = {"name": "err", "trigger": [".* ERROR.*"], **step}
    return make_trigger(definition, limitation={"times": times, "duration": duration})


def test_second_firing_inside_window_is_suppressed(make_trigger, stamped) -> None:
    trig = _limited(make_trigger)
    text = stamped(("00:00:00", "ERROR a"), ("00:00:10", "ERROR b"), ("00:01:20", "ERROR c"))
    result = evaluate_trigger(trig, text, TS)

    assert result.triggered
    assert [f.suppressed for f in result.firings] == [False, True, False]
    assert result.limitation is not None
    assert result.limitation.total_firings == 3
    assert result.limitation.allowed_firings == 2
    assert result.limitation.suppressed_firings == 1
    assert result.limitation.duration_ms == 60_000
    assert "1 suppressed" in result.message


def test_firings_outside_window_are_all_allowed(make_trigger, stamped) -> None:
    trig = _limited(make_trigger)
    text = stamped(("00:00:00", "ERROR a"), ("00:01:10", "ERROR b"))
    result = evaluate_trigger(trig, text, TS)

    assert result.limitation is not None
    assert result.limitation.suppressed_firings == 0
    assert "within limit" in result.message


def test_first_pass_matches_single_chain(make_trigger, stamped) -> None:
    trig = _limited(make_trigger)
    buf = LineBuffer.from_text(stamped(("00:00:00", "x"), ("00:00:05", "ERROR a")), TS)

    firings = run_limited(trig, buf)
    assert firings[0].steps == execute_chain(trig, buf, 0).steps


def test_trailing_pass_is_recorded_incomplete(make_trigger) -> None:
    trig = _limited(make_trigger, trigger=[".*ERROR.*"])
    firings = run_limited(trig, LineBuffer.from_text("ERROR\nfoo\n"))

    assert len(firings) == 2
    assert firings[0].fired and not firings[0].incomplete
    assert firings[1].incomplete and not firings[1].fired


def test_firing_ceiling(make_trigger) -> None:
    trig = _limited(make_trigger, trigger=[".*ERROR.*"])
    firings = run_limited(trig, LineBuffer.from_lines(["ERROR"] * 150))

    assert len(firings) == MAX_FIRINGS
    # No timestamps: nothing can be counted against the window.
    assert not any(f.suppressed for f in firings)


def test_limited_messages_without_completion(make_trigger) -> None:
    trig = _limited(make_trigger, trigger=[".*ERROR.*"])

    waiting = evaluate_trigger(trig, "foo\n")
    assert not waiting.triggered
    assert waiting.message == "waiting at err (0/1 matches)"

    empty = evaluate_trigger(trig, "")
    assert empty.message == "no log lines to evaluate"
    assert empty.steps == []


def test_is_suppressed_ignores_suppressed_and_untimed_firings() -> None:
    base = datetime(2026, 2, 14, 0, 0, 0)
    prior = [
        Firing(steps=[], fired=True, suppressed=True, firing_timestamp=base),
        Firing(steps=[], fired=True, suppressed=False, firing_timestamp=None),
    ]
    assert not is_suppressed(base, prior, 1, 60_000)
    assert not is_suppressed(None, prior, 1, 60_000)
    assert not is_suppressed(base, prior, None, 60_000)


def test_terminal_action_is_named_in_message(make_trigger) -> None:
    trig = make_trigger({"name": "a", "trigger": [".*X.*"], "next": "@notify"})
    result = evaluate_trigger(trig, "X\n")
    assert result.triggered
    assert result.message == "all steps completed -> @notify"
    assert result.limitation is None
    assert len(result.firings) == 1


def test_empty_recipe(make_trigger) -> None:
    result = evaluate_trigger(make_trigger(), "anything\n")
    assert not result.triggered
    assert result.message == "recipe has no steps"
