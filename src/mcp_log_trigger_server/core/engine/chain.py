"""Single-pass chain executor.

Walks a trigger recipe step by step over a line buffer, starting at a given
line offset. A `regex` step completes when its patterns matched `times`
times (inside its duration window, if any). A `delay` step inverts that:
a match inside the window cancels the chain and resets it to the first
step, while the window elapsing without a match (a "timeout") lets the
chain continue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..config import Step, TriggerConfig
from ..durations import describe_duration, format_elapsed, parse_duration_ms
from ..lines import LineBuffer
from ..models import ChainResult, DurationCheck, LineMatch, StepOutcome, StepResult
from ..patterns import match_line

logger = logging.getLogger(__name__)

# Ceiling on delay-cancellation resets within one pass.
MAX_CHAIN_RESETS = 100


def _elapsed_ms(later: datetime, earlier: datetime) -> int:
    return int((later - earlier).total_seconds() * 1000)


def window_start(prev_ts: datetime | None, first_ts: datetime | None) -> datetime | None:
    """Later of the previous step's time and the first match in the window."""
    known = [ts for ts in (prev_ts, first_ts) if ts is not None]
    return max(known) if known else None


@dataclass(slots=True)
class ChainState:
    """Mutable state of one chain attempt."""

    step_index: int = 0
    line_offset: int = 0
    prev_step_timestamp: datetime | None = None
    reset_count: int = 0
    path_start: int = 0  # index in `steps` where the current path began
    steps: list[StepResult] = field(default_factory=list)


@dataclass(slots=True)
class StepScan:
    """Scratch state while scanning lines for a single step."""

    matches: list[LineMatch] = field(default_factory=list)
    rejected: list[LineMatch] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    outcome: StepOutcome = StepOutcome.WAITING
    check: DurationCheck | None = None
    tested: int = 0
    resume_at: int | None = None

    def error(self, diagnostic: str) -> None:
        if diagnostic not in self.errors:
            self.errors.append(diagnostic)


def match_step_line(
    step: Step,
    line_num: int,
    line: str,
    timestamp: datetime | None,
    scan: StepScan,
    captured: dict[str, str] | None = None,
) -> LineMatch | None:
    """Test one line against every pattern of a step; first match wins.

    Rejected matches and compile diagnostics are recorded on `scan`.
    """
    for item in step.trigger:
        if not item.syntax:
            continue
        result = match_line(line, item.syntax, item.params, captured)
        if result.matched:
            return LineMatch(
                line_num=line_num,
                line=line,
                pattern=item.syntax,
                timestamp=timestamp,
                groups=result.groups or {},
                params=result.params,
            )
        if result.rejected:
            scan.rejected.append(
                LineMatch(
                    line_num=line_num,
                    line=line,
                    pattern=item.syntax,
                    timestamp=timestamp,
                    groups=result.groups or {},
                    params=result.params,
                    reason=result.rejection_reason,
                )
            )
        if result.error:
            scan.error(result.error)
    return None


def _scan_step(step: Step, buffer: LineBuffer, offset: int, prev_ts: datetime | None) -> StepScan:
    scan = StepScan()
    duration_ms = parse_duration_ms(step.duration)
    limit = describe_duration(step.duration)
    windowed = bool(duration_ms) and buffer.has_timestamps

    def check(elapsed: int | None, passed: bool, reason: str) -> DurationCheck:
        return DurationCheck(
            limit=limit, limit_ms=duration_ms, elapsed_ms=elapsed, passed=passed, reason=reason
        )

    for li in range(offset, len(buffer)):
        line = buffer.lines[li]
        ts = buffer.timestamps[li]
        scan.tested += 1

        if step.is_delay and duration_ms and prev_ts is not None and ts is not None:
            elapsed = _elapsed_ms(ts, prev_ts)
            if elapsed > duration_ms:
                scan.outcome = StepOutcome.TIMED_OUT
                scan.check = check(elapsed, False, f"{format_elapsed(elapsed)} exceeded {limit}: timed out, chain continues")
                scan.resume_at = li  # line not consumed
                return scan

        hit = match_step_line(step, li + 1, line, ts, scan)
        if hit is None:
            continue
        scan.matches.append(hit)
        if len(scan.matches) < step.times:
            continue

        if not windowed:
            scan.outcome = StepOutcome.CANCELLED if step.is_delay else StepOutcome.FIRED
            scan.resume_at = li + 1
            return scan

        first_ts = scan.matches[len(scan.matches) - step.times].timestamp
        last_ts = scan.matches[-1].timestamp
        # Delay windows run from the previous step; regex windows from
        # whichever is later, the previous step or the oldest match kept.
        ref_ts = (prev_ts or first_ts) if step.is_delay else window_start(prev_ts, first_ts)
        if ref_ts is None or last_ts is None:
            scan.outcome = StepOutcome.CANCELLED if step.is_delay else StepOutcome.FIRED
            scan.check = check(None, True, "timestamp not found: window check skipped")
            scan.resume_at = li + 1
            return scan

        elapsed = _elapsed_ms(last_ts, ref_ts)
        if step.is_delay:
            if elapsed <= duration_ms:
                scan.outcome = StepOutcome.CANCELLED
                scan.check = check(elapsed, True, f"matched after {format_elapsed(elapsed)} within {limit}: chain reset")
                scan.resume_at = li + 1
            else:
                scan.outcome = StepOutcome.TIMED_OUT
                scan.check = check(elapsed, False, f"exceeded {limit}: timed out, chain continues")
                scan.resume_at = li
            return scan

        if elapsed <= duration_ms:
            scan.outcome = StepOutcome.FIRED
            scan.check = check(elapsed, True, f"matched in {format_elapsed(elapsed)} within {limit}")
            scan.resume_at = li + 1
            return scan

        # Oldest match fell out of the window; keep waiting for more.
        scan.matches.pop(0)
        scan.check = check(elapsed, False, f"{format_elapsed(elapsed)} exceeds {limit}: needs more matches")

    if step.is_delay:
        # Lines ran out without a cancelling match.
        scan.outcome = StepOutcome.TIMED_OUT
        scan.check = check(None, False, "end of log: timed out, chain continues")
    elif duration_ms and scan.matches and scan.check is None:
        scan.check = check(None, False, f"needs {step.times} matches within {limit}")
    return scan


def firing_timestamp(step: Step, result: StepResult) -> datetime | None:
    """Last match time for a fired step, timeout instant for a delay."""
    if result.outcome == StepOutcome.FIRED:
        return result.matches[-1].timestamp if result.matches else None
    if result.outcome == StepOutcome.TIMED_OUT:
        ref = result.reference_timestamp
        if ref is None:
            return None
        duration_ms = parse_duration_ms(step.duration)
        return ref + timedelta(milliseconds=duration_ms) if duration_ms else ref
    return None


def execute_chain(trigger: TriggerConfig, buffer: LineBuffer, start_offset: int = 0) -> ChainResult:
    """Run the recipe once from `start_offset`.

    The chain fires when every step since the last reset completed and
    the final step leads to a terminal action or the end of the chain.
    """
    recipe = trigger.recipe
    state = ChainState(line_offset=start_offset)
    chain_end = False
    last_step: Step | None = None
    # (step, offset, prev timestamp) fully determines a scan; a repeat
    # means delay steps are cycling without consuming lines.
    seen: set[tuple[int, int, datetime | None]] = set()

    while state.step_index < len(recipe) and state.line_offset <= len(buffer):
        key = (state.step_index, state.line_offset, state.prev_step_timestamp)
        if key in seen:
            logger.debug("Chain stopped cycling at step %s", recipe[state.step_index].name)
            break
        seen.add(key)

        step = last_step = recipe[state.step_index]
        scan = _scan_step(step, buffer, state.line_offset, state.prev_step_timestamp)
        result = StepResult(
            name=step.name,
            type=step.type,
            patterns=step.patterns,
            times=step.times,
            duration=step.duration,
            outcome=scan.outcome,
            next=step.next,
            matches=scan.matches,
            rejected_matches=scan.rejected,
            regex_errors=scan.errors,
            tested_line_count=scan.tested,
            duration_check=scan.check,
            reference_timestamp=state.prev_step_timestamp,
        )
        state.steps.append(result)
        if scan.resume_at is not None:
            state.line_offset = scan.resume_at

        if scan.outcome == StepOutcome.WAITING:
            break

        if scan.outcome == StepOutcome.CANCELLED:
            result.reset_chain = True
            state.reset_count += 1
            if state.reset_count > MAX_CHAIN_RESETS:
                logger.debug("Chain reset ceiling hit at line %s", state.line_offset)
                break
            state.step_index = 0
            state.prev_step_timestamp = None
            state.path_start = len(state.steps)
            continue

        # FIRED or TIMED_OUT: follow `next`.
        if not step.next or step.has_terminal_next:
            chain_end = True
            break
        next_index = trigger.step_index(step.next)
        if next_index is None:
            chain_end = True
            break
        if scan.outcome == StepOutcome.FIRED and result.matches and result.matches[-1].timestamp:
            state.prev_step_timestamp = result.matches[-1].timestamp
        state.step_index = next_index

    path = state.steps[state.path_start :]
    fired = chain_end and bool(path) and all(s.completed for s in path)
    firing_ts = None
    if fired and last_step is not None:
        firing_ts = firing_timestamp(last_step, path[-1])

    return ChainResult(
        steps=state.steps,
        fired=fired,
        line_offset=state.line_offset,
        firing_timestamp=firing_ts,
        reset_count=state.reset_count,
    )
