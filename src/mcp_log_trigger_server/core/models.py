"""Core trace models produced by the trigger and log-source engines."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class StepOutcome(str, Enum):
    """How a single recipe step ended during a chain pass."""

    FIRED = "fired"
    CANCELLED = "cancelled"  # delay step: cancel pattern matched in time
    TIMED_OUT = "timed_out"  # delay step: nothing cancelled the chain
    WAITING = "waiting"  # lines ran out before the step completed


class InstanceStatus(str, Enum):
    """Lifecycle of a MULTI correlation instance."""

    ACTIVE = "active"
    FIRED = "fired"
    CANCELLED = "cancelled"
    INCOMPLETE = "incomplete"


class BlockTermination(str, Enum):
    """Why a multiline block was closed."""

    START_PATTERN = "startPattern"
    END_PATTERN = "endPattern"
    COUNT = "count"
    EMPTY_LINE = "emptyLine"
    EOF = "eof"


class FilterStatus(str, Enum):
    """Per-line verdict of the log time watermark filter."""

    PASS = "pass"
    SKIP = "skip"
    NO_MATCH = "no-match"


@dataclass(frozen=True, slots=True)
class ConditionResult:
    """Outcome of one numeric post-condition."""

    name: str
    op: str
    compare_value: float
    extracted_value: float | None
    passed: bool


@dataclass(frozen=True, slots=True)
class ParamsResult:
    """Outcome of a pattern's `params` post-conditions."""

    expression: str
    valid: bool
    passed: bool
    details: list[ConditionResult] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LineMatch:
    """A line accepted (or rejected) by one of a step's patterns."""

    line_num: int
    line: str
    pattern: str
    timestamp: datetime | None
    groups: dict[str, str]
    params: ParamsResult | None = None
    reason: str | None = None  # set on rejected matches only
    file_name: str | None = None
    global_line_num: int | None = None


@dataclass(frozen=True, slots=True)
class DurationCheck:
    """Window bookkeeping recorded on a step trace."""

    limit: str | None
    limit_ms: int
    elapsed_ms: int | None
    passed: bool
    reason: str


@dataclass(slots=True)
class StepResult:
    """Trace of one recipe step within a chain pass."""

    name: str
    type: str
    patterns: list[str]
    times: int
    duration: str | None
    outcome: StepOutcome
    next: str
    matches: list[LineMatch] = field(default_factory=list)
    rejected_matches: list[LineMatch] = field(default_factory=list)
    regex_errors: list[str] = field(default_factory=list)
    tested_line_count: int = 0
    duration_check: DurationCheck | None = None
    reference_timestamp: datetime | None = None
    reset_chain: bool = False

    @property
    def fired(self) -> bool:
        """True when a pattern completed the step (cancellations included)."""
        return self.outcome in (StepOutcome.FIRED, StepOutcome.CANCELLED)

    @property
    def cancelled(self) -> bool:
        return self.outcome == StepOutcome.CANCELLED

    @property
    def timed_out(self) -> bool:
        return self.outcome == StepOutcome.TIMED_OUT

    @property
    def completed(self) -> bool:
        return self.outcome in (StepOutcome.FIRED, StepOutcome.TIMED_OUT)

    @property
    def match_count(self) -> int:
        return len(self.matches)


@dataclass(frozen=True, slots=True)
class ChainResult:
    """Outcome of one chain pass (see `execute_chain`)."""

    steps: list[StepResult]
    fired: bool
    line_offset: int
    firing_timestamp: datetime | None
    reset_count: int = 0


@dataclass(frozen=True, slots=True)
class Firing:
    """One completed (or final incomplete) pass of the re-fire driver."""

    steps: list[StepResult]
    fired: bool
    suppressed: bool
    firing_timestamp: datetime | None
    incomplete: bool = False


@dataclass(frozen=True, slots=True)
class LimitationSummary:
    times: int | None
    duration: str | None
    duration_ms: int
    total_firings: int
    allowed_firings: int
    suppressed_firings: int


@dataclass(frozen=True, slots=True)
class InstanceEvent:
    """One entry of a MULTI instance's step trace."""

    name: str
    type: str
    outcome: StepOutcome
    line_num: int | None = None
    line: str | None = None
    timestamp: datetime | None = None
    groups: dict[str, str] | None = None
    message: str = ""
    file_name: str | None = None
    global_line_num: int | None = None


@dataclass(slots=True)
class MultiInstance:
    """Independently tracked chain keyed by a captured value."""

    id: int
    captured_key: str
    captured_groups: dict[str, str]
    start_line: int
    current_step_index: int
    status: InstanceStatus = InstanceStatus.ACTIVE
    steps: list[InstanceEvent] = field(default_factory=list)
    firing_timestamp: datetime | None = None
    prev_step_timestamp: datetime | None = None
    pending: list[LineMatch] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MultiSummary:
    total_created: int
    fired: int
    cancelled: int
    incomplete: int


@dataclass(frozen=True, slots=True)
class TriggerResult:
    """Top-level result of evaluating a trigger against sample text."""

    triggered: bool
    message: str
    steps: list[StepResult]
    firings: list[Firing]
    limitation: LimitationSummary | None = None
    is_multi: bool = False
    instances: list[MultiInstance] = field(default_factory=list)
    multi_summary: MultiSummary | None = None
    regex_errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PathCheck:
    """One labelled step of the path matcher trace."""

    label: str
    passed: bool
    detail: str


@dataclass(frozen=True, slots=True)
class PathMatchResult:
    matched: bool
    steps: list[PathCheck]


@dataclass(frozen=True, slots=True)
class NumberedLine:
    line_num: int
    text: str


@dataclass(frozen=True, slots=True)
class BlockLine:
    line_num: int
    text: str
    role: str  # start | content | end


@dataclass(slots=True)
class Block:
    block_num: int
    start_line: int
    end_line: int
    lines: list[BlockLine] = field(default_factory=list)
    terminated_by: BlockTermination | None = None

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


@dataclass(frozen=True, slots=True)
class MultilineResult:
    blocks: list[Block]
    skipped_lines: list[NumberedLine]
    total_lines: int
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class AppendedLine:
    line_num: int
    original: str
    result: str


@dataclass(frozen=True, slots=True)
class ExtractAppendResult:
    pattern: str
    matched: bool
    groups: list[str]
    append_format: str
    resolved: str
    append_pos: int
    lines: list[AppendedLine]
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FilteredLine:
    line_num: int
    text: str
    extracted: str | None
    parsed_time: datetime | None
    status: FilterStatus
    reason: str


@dataclass(frozen=True, slots=True)
class TimeFilterResult:
    lines: list[FilteredLine]
    passed: int
    skipped: int
    no_timestamp: int
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LineGroup:
    group_num: int
    lines: list[NumberedLine]
    grouped_text: str


@dataclass(frozen=True, slots=True)
class LineGroupResult:
    groups: list[LineGroup]
    ungrouped: list[NumberedLine]
    buffered: list[NumberedLine]
    total_lines: int
    errors: list[str] = field(default_factory=list)

    @property
    def incomplete_group(self) -> bool:
        return bool(self.buffered)
