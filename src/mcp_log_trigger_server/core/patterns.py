"""Trigger pattern syntax.

Patterns are regular expressions extended with capture placeholders:

- ``<<name>>`` captures a run of non-whitespace as ``name``
- ``(<<name>>inner)`` captures ``inner`` as ``name``
- ``@<<name>>@`` (MULTI recipes) is replaced by the escaped value captured
  earlier under ``name``

Matching is whole-line: a partial match never counts.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache

from .models import ConditionResult, ParamsResult

logger = logging.getLogger(__name__)

_WRAPPED_CAPTURE_RE = re.compile(r"\(<<(\w+)>>([^)]*)\)")
_CAPTURE_RE = re.compile(r"<<(\w+)>>")
_SINGLE_BRACKET_RE = re.compile(r"\(<<(\w+)>")
_FOREIGN_NAMED_GROUP_RE = re.compile(r"\(\?<(?![=!])(\w+)>")
_BACKREF_RE = re.compile(r"@<<(\w+)>>@")

_PARAMS_RE = re.compile(r"^(?:ParamComparisionMatcher(?P<id>\d+)@)?(?P<body>.+)$")
_CONDITION_RE = re.compile(r"^(?P<value>-?\d+(?:\.\d+)?),(?P<op>EQ|NEQ|GT|GTE|LT|LTE),(?P<name>\w+)$", re.IGNORECASE)

_OPS = {
    "eq": lambda a, b: a == b,
    "neq": lambda a, b: a != b,
    "gt": lambda a, b: a > b,
    "gte": lambda a, b: a >= b,
    "lt": lambda a, b: a < b,
    "lte": lambda a, b: a <= b,
}


def convert_syntax(syntax: str) -> str:
    """Translate placeholder syntax into a Python regular expression."""
    if not syntax:
        return syntax
    out = _WRAPPED_CAPTURE_RE.sub(r"(?P<\1>\2)", syntax)
    out = _CAPTURE_RE.sub(r"(?P<\1>[^\\s]+)", out)
    out = _SINGLE_BRACKET_RE.sub(r"(?P<\1>", out)
    return _FOREIGN_NAMED_GROUP_RE.sub(r"(?P<\1>", out)


def substitute_captures(syntax: str, captured: Mapping[str, str] | None) -> str:
    """Replace ``@<<name>>@`` references with escaped captured values.

    Must run before `convert_syntax`. Unknown names are left untouched.
    """
    if not syntax:
        return ""
    if not captured:
        return syntax

    def _replace(m: re.Match[str]) -> str:
        value = captured.get(m.group(1))
        if value is None:
            return m.group(0)
        return re.escape(str(value))

    return _BACKREF_RE.sub(_replace, syntax)


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A pattern ready for whole-line matching (regex is None on error)."""

    syntax: str
    source: str
    regex: re.Pattern[str] | None
    error: str | None = None

    @property
    def diagnostic(self) -> str | None:
        if self.error is None:
            return None
        return f"{self.syntax}: {self.error}"


@lru_cache(maxsize=1024)
def compile_pattern(syntax: str) -> CompiledPattern:
    """Compile placeholder syntax; failures are captured, never raised."""
    source = convert_syntax(syntax)
    try:
        regex = re.compile(source)
    except re.error as exc:
        logger.debug("Pattern %r failed to compile: %s", syntax, exc)
        return CompiledPattern(syntax=syntax, source=source, regex=None, error=str(exc))
    return CompiledPattern(syntax=syntax, source=source, regex=regex)


@dataclass(frozen=True, slots=True)
class Condition:
    compare_value: float
    op: str
    name: str


def parse_params(expression: str) -> tuple[Condition, ...]:
    """Parse a `params` expression; raises ValueError when malformed."""
    m = _PARAMS_RE.match(expression.strip())
    if not m:
        raise ValueError(f"empty params expression: {expression!r}")
    conditions: list[Condition] = []
    for chunk in m.group("body").split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        cm = _CONDITION_RE.match(chunk)
        if not cm:
            raise ValueError(f"malformed condition {chunk!r} in {expression!r}")
        conditions.append(
            Condition(
                compare_value=float(cm.group("value")),
                op=cm.group("op").lower(),
                name=cm.group("name"),
            )
        )
    if not conditions:
        raise ValueError(f"no conditions in {expression!r}")
    return tuple(conditions)


def _to_number(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def evaluate_params(expression: str, groups: Mapping[str, str | None]) -> ParamsResult:
    """Evaluate post-conditions against named captures.

    A malformed expression fails as a whole.
    """
    try:
        conditions = parse_params(expression)
    except ValueError:
        return ParamsResult(expression=expression, valid=False, passed=False)

    details: list[ConditionResult] = []
    for c in conditions:
        value = _to_number(groups.get(c.name))
        ok = value is not None and _OPS[c.op](value, c.compare_value)
        details.append(
            ConditionResult(
                name=c.name,
                op=c.op,
                compare_value=c.compare_value,
                extracted_value=value,
                passed=ok,
            )
        )
    return ParamsResult(
        expression=expression,
        valid=True,
        passed=all(d.passed for d in details),
        details=details,
    )


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Result of testing one line against one pattern item."""

    matched: bool
    groups: dict[str, str] | None = None
    params: ParamsResult | None = None
    error: str | None = None

    @property
    def rejected(self) -> bool:
        """Regex matched but post-conditions failed."""
        return not self.matched and self.groups is not None

    @property
    def rejection_reason(self) -> str | None:
        if not self.rejected:
            return None
        if self.params is not None and not self.params.valid:
            return "params_invalid"
        return "params_failed"


def match_line(
    line: str,
    syntax: str,
    params: str | None = None,
    captured: Mapping[str, str] | None = None,
) -> PatternMatch:
    """Whole-line match of `line` against a pattern item."""
    if not syntax:
        return PatternMatch(matched=False)
    if captured:
        syntax = substitute_captures(syntax, captured)

    compiled = compile_pattern(syntax)
    if compiled.regex is None:
        return PatternMatch(matched=False, error=compiled.diagnostic)

    m = compiled.regex.fullmatch(line)
    if not m:
        return PatternMatch(matched=False)

    groups = {k: v for k, v in m.groupdict().items() if v is not None}
    if not params:
        return PatternMatch(matched=True, groups=groups)

    result = evaluate_params(params, m.groupdict())
    return PatternMatch(matched=result.passed, groups=groups, params=result)
