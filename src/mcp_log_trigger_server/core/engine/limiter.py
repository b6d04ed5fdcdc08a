"""Re-fire driver with rate limiting, and the top-level trigger evaluation."""

from __future__ import annotations

import logging
from datetime import datetime

from ..config import Limitation, TriggerConfig
from ..durations import describe_duration, parse_duration_ms
from ..lines import LineBuffer
from ..models import ChainResult, Firing, LimitationSummary, StepResult, TriggerResult
from .chain import execute_chain
from .multi import correlate_instances

logger = logging.getLogger(__name__)

# Hard ceiling on chain passes per evaluation.
MAX_FIRINGS = 100


def _regex_errors(steps: list[StepResult]) -> list[str]:
    out: list[str] = []
    for step in steps:
        for err in step.regex_errors:
            if err not in out:
                out.append(err)
    return out


def _waiting_message(steps: list[StepResult]) -> str:
    last = steps[-1]
    return f"waiting at {last.name} ({last.match_count}/{last.times} matches)"


def _action_suffix(trigger: TriggerConfig, steps: list[StepResult]) -> str:
    idx = trigger.step_index(steps[-1].name)
    if idx is None or not trigger.recipe[idx].has_terminal_next:
        return ""
    return f" -> {trigger.recipe[idx].next}"


def is_suppressed(
    firing_ts: datetime | None,
    prior: list[Firing],
    times: int | None,
    window_ms: int,
) -> bool:
    """True when `times` unsuppressed firings already fall within the window."""
    if times is None or not window_ms or firing_ts is None:
        return False
    recent = [
        f
        for f in prior
        if not f.suppressed
        and f.firing_timestamp is not None
        and (firing_ts - f.firing_timestamp).total_seconds() * 1000 <= window_ms
    ]
    return len(recent) >= times


def run_limited(trigger: TriggerConfig, buffer: LineBuffer) -> list[Firing]:
    """Re-run the chain across the whole buffer, marking suppressed firings.

    Stops when the lines are exhausted, a pass does not fire (recorded as
    an incomplete firing) or MAX_FIRINGS is reached.
    """
    limitation = trigger.limitation
    times = limitation.times if limitation else None
    window_ms = parse_duration_ms(limitation.duration) if limitation else 0

    firings: list[Firing] = []
    offset = 0
    while offset < len(buffer) and len(firings) < MAX_FIRINGS:
        chain: ChainResult = execute_chain(trigger, buffer, offset)
        if not chain.fired:
            firings.append(
                Firing(
                    steps=chain.steps,
                    fired=False,
                    suppressed=False,
                    firing_timestamp=None,
                    incomplete=True,
                )
            )
            break

        suppressed = is_suppressed(chain.firing_timestamp, firings, times, window_ms)
        firings.append(
            Firing(
                steps=chain.steps,
                fired=True,
                suppressed=suppressed,
                firing_timestamp=chain.firing_timestamp,
            )
        )
        offset = chain.line_offset if chain.line_offset > offset else offset + 1

    if len(firings) >= MAX_FIRINGS:
        logger.debug("Firing ceiling (%s) reached at line %s", MAX_FIRINGS, offset)
    return firings


def _evaluate_single(trigger: TriggerConfig, buffer: LineBuffer) -> TriggerResult:
    chain = execute_chain(trigger, buffer, 0)
    if not chain.steps:
        message = "recipe has no steps"
    elif chain.fired:
        suffix = _action_suffix(trigger, chain.steps)
        message = f"all steps completed{suffix}" if suffix else "all steps matched"
    else:
        message = _waiting_message(chain.steps)

    firings = []
    if chain.fired:
        firings.append(
            Firing(
                steps=chain.steps,
                fired=True,
                suppressed=False,
                firing_timestamp=chain.firing_timestamp,
            )
        )
    return TriggerResult(
        triggered=chain.fired,
        message=message,
        steps=chain.steps,
        firings=firings,
        regex_errors=_regex_errors(chain.steps),
    )


def _evaluate_limited(trigger: TriggerConfig, buffer: LineBuffer) -> TriggerResult:
    limitation = trigger.limitation or Limitation()
    firings = run_limited(trigger, buffer)

    completed = [f for f in firings if not f.incomplete]
    allowed = [f for f in completed if not f.suppressed]
    suppressed = [f for f in completed if f.suppressed]

    if not trigger.recipe:
        message = "recipe has no steps"
    elif not firings:
        message = "no log lines to evaluate"
    elif not completed:
        message = _waiting_message(firings[-1].steps)
    else:
        suffix = _action_suffix(trigger, firings[0].steps)
        if not suppressed:
            message = f"all steps completed{suffix} ({len(completed)} firing(s), within limit)"
        else:
            label = describe_duration(limitation.duration) or limitation.duration
            message = (
                f"all steps completed{suffix} ({len(completed)} detected, {len(allowed)} fired, "
                f"{len(suppressed)} suppressed; max {limitation.times} per {label})"
            )

    all_steps = [step for f in firings for step in f.steps]
    return TriggerResult(
        triggered=bool(allowed),
        message=message,
        steps=firings[0].steps if firings else [],
        firings=firings,
        limitation=LimitationSummary(
            times=limitation.times,
            duration=limitation.duration,
            duration_ms=parse_duration_ms(limitation.duration),
            total_firings=len(completed),
            allowed_firings=len(allowed),
            suppressed_firings=len(suppressed),
        ),
        regex_errors=_regex_errors(all_steps),
    )


def _evaluate_multi(trigger: TriggerConfig, buffer: LineBuffer) -> TriggerResult:
    outcome = correlate_instances(trigger, buffer)
    summary = outcome.summary
    if not outcome.instances:
        message = "no line matched the first step"
    elif summary.fired:
        message = f"{summary.fired} fired, {summary.cancelled} cancelled"
        if summary.incomplete:
            message += f", {summary.incomplete} incomplete"
    else:
        message = f"{summary.total_created} instance(s) created, none fired"

    return TriggerResult(
        triggered=summary.fired > 0,
        message=message,
        steps=[],
        firings=[],
        is_multi=True,
        instances=outcome.instances,
        multi_summary=summary,
        regex_errors=outcome.regex_errors,
    )


def evaluate_trigger(
    trigger: TriggerConfig,
    text: str | None,
    timestamp_format: str | None = None,
) -> TriggerResult:
    """Evaluate a trigger definition against sample log text."""
    buffer = LineBuffer.from_text(text, timestamp_format)
    return evaluate_buffer(trigger, buffer)


def evaluate_buffer(trigger: TriggerConfig, buffer: LineBuffer) -> TriggerResult:
    if trigger.is_multi:
        return _evaluate_multi(trigger, buffer)
    if trigger.has_limitation:
        return _evaluate_limited(trigger, buffer)
    return _evaluate_single(trigger, buffer)
