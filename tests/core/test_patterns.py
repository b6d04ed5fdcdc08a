from __future__ import annotations

import pytest

from mcp_log_trigger_server.core.patterns import (
    convert_syntax,
    evaluate_params,
    match_line,
    parse_params,
    substitute_captures,
)


def test_convert_syntax_placeholders() -> None:
    assert convert_syntax("code: (<<code>>[A-Z0-9]+)") == "code: (?P<code>[A-Z0-9]+)"
    assert convert_syntax("user=<<user>> ok") == r"user=(?P<user>[^\s]+) ok"
    assert convert_syntax(r"id=(?<id>\d+)") == r"id=(?P<id>\d+)"


def test_capture_and_back_reference_round_trip() -> None:
    first = match_line("code: ABC1", "code: (<<code>>[A-Z0-9]+)")
    assert first.matched
    assert first.groups == {"code": "ABC1"}

    again = match_line("code: ABC1", "code: @<<code>>@", captured=first.groups)
    assert again.matched
    assert not match_line("code: ABC2", "code: @<<code>>@", captured=first.groups).matched


def test_back_reference_escapes_metacharacters() -> None:
    captured = {"id": "a.b+c"}
    assert substitute_captures("id=@<<id>>@", captured) == r"id=a\.b\+c"
    assert match_line("id=a.b+c", "id=@<<id>>@", captured=captured).matched
    assert not match_line("id=aXbbc", "id=@<<id>>@", captured=captured).matched


def test_unknown_back_reference_left_untouched() -> None:
    assert substitute_captures("x=@<<nope>>@", {"id": "1"}) == "x=@<<nope>>@"


def test_match_is_whole_line() -> None:
    assert not match_line("xx ERROR yy", "ERROR").matched
    assert match_line("xx ERROR yy", ".*ERROR.*").matched


def test_compile_error_is_reported_not_raised() -> None:
    result = match_line("anything", "(<<a>>[")
    assert not result.matched
    assert result.error is not None
    assert result.error.startswith("(<<a>>[: ")


def test_params_accept_and_reject() -> None:
    syntax = r"took (<<ms>>\d+) ms"
    params = "ParamComparisionMatcher1@1000,GT,ms"

    ok = match_line("took 1500 ms", syntax, params)
    assert ok.matched
    assert ok.params is not None and ok.params.passed

    low = match_line("took 500 ms", syntax, params)
    assert not low.matched
    assert low.rejected
    assert low.rejection_reason == "params_failed"


def test_malformed_params_reject_the_match() -> None:
    result = match_line("took 1500 ms", r"took (<<ms>>\d+) ms", "1000,BIGGER,ms")
    assert not result.matched
    assert result.rejection_reason == "params_invalid"


def test_parse_params_multiple_conditions_case_insensitive() -> None:
    conds = parse_params("ParamComparisionMatcher7@10,gte,a;-2.5,LT,b")
    assert [(c.compare_value, c.op, c.name) for c in conds] == [(10.0, "gte", "a"), (-2.5, "lt", "b")]


def test_parse_params_malformed_raises() -> None:
    with pytest.raises(ValueError):
        parse_params("abc")
    with pytest.raises(ValueError):
        parse_params("ParamComparisionMatcher1@")


def test_non_numeric_capture_fails_condition() -> None:
    result = evaluate_params("1,EQ,n", {"n": "one"})
    assert result.valid
    assert not result.passed
    assert result.details[0].extracted_value is None
