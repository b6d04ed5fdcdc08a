"""Multi-instance correlation for ``class: MULTI`` recipes.

The first step spawns one instance per distinct captured key. Every
instance then walks the remaining steps on its own, with ``@<<name>>@``
references in later patterns bound to the values it captured at spawn.
All instances advance in line order within a single pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..config import Step, TriggerConfig
from ..durations import describe_duration, parse_duration_ms
from ..lines import LineBuffer
from ..models import (
    InstanceEvent,
    InstanceStatus,
    LineMatch,
    MultiInstance,
    MultiSummary,
    StepOutcome,
)
from .chain import StepScan, match_step_line, window_start

logger = logging.getLogger(__name__)

# Ceiling on concurrently active instances.
MAX_MULTI_INSTANCES = 20


@dataclass(frozen=True, slots=True)
class MultiOutcome:
    instances: list[MultiInstance]
    summary: MultiSummary
    regex_errors: list[str]


def _elapsed_ms(later: datetime, earlier: datetime) -> int:
    return int((later - earlier).total_seconds() * 1000)


def _timeout_instant(inst: MultiInstance, step: Step) -> datetime | None:
    if inst.prev_step_timestamp is None:
        return None
    duration_ms = parse_duration_ms(step.duration)
    return inst.prev_step_timestamp + timedelta(milliseconds=duration_ms)


def _follow_next(
    trigger: TriggerConfig,
    inst: MultiInstance,
    step: Step,
    firing_ts: datetime | None,
) -> bool:
    """Move `inst` past a completed step; True if another step is pending."""
    inst.pending = []
    next_index = None if step.has_terminal_next else trigger.step_index(step.next)
    if next_index is None:
        inst.status = InstanceStatus.FIRED
        inst.firing_timestamp = firing_ts
        return False
    inst.current_step_index = next_index
    return True


def _event(step: Step, outcome: StepOutcome, message: str, hit: LineMatch | None = None) -> InstanceEvent:
    return InstanceEvent(
        name=step.name,
        type=step.type,
        outcome=outcome,
        line_num=hit.line_num if hit else None,
        line=hit.line if hit else None,
        timestamp=hit.timestamp if hit else None,
        groups=dict(hit.groups) if hit else None,
        message=message,
    )


def _advance_instance(
    trigger: TriggerConfig,
    inst: MultiInstance,
    line_num: int,
    line: str,
    ts: datetime | None,
    windowed: bool,
    scan: StepScan,
) -> None:
    """Feed one line to an active instance.

    A delay timeout does not consume the line, so the following step sees
    it too. Bounded by the recipe length to rule out delay cycles.
    """
    for _ in range(len(trigger.recipe)):
        step = trigger.recipe[inst.current_step_index]
        duration_ms = parse_duration_ms(step.duration)
        limit = describe_duration(step.duration)
        prev_ts = inst.prev_step_timestamp

        if step.is_delay and duration_ms and prev_ts is not None and ts is not None:
            if _elapsed_ms(ts, prev_ts) > duration_ms:
                inst.steps.append(
                    _event(step, StepOutcome.TIMED_OUT, f"exceeded {limit}: timed out")
                )
                if _follow_next(trigger, inst, step, _timeout_instant(inst, step)):
                    continue
                return

        hit = match_step_line(step, line_num, line, ts, scan, inst.captured_groups)
        if hit is None:
            return
        inst.pending.append(hit)
        if len(inst.pending) < step.times:
            return

        if step.is_delay:
            inst.steps.append(_event(step, StepOutcome.CANCELLED, "pattern matched: cancelled", hit))
            inst.status = InstanceStatus.CANCELLED
            inst.pending = []
            return

        first_ts = inst.pending[len(inst.pending) - step.times].timestamp
        ref_ts = window_start(prev_ts, first_ts)
        if windowed and duration_ms and ref_ts is not None and ts is not None:
            if _elapsed_ms(ts, ref_ts) > duration_ms:
                inst.pending.pop(0)
                return

        inst.steps.append(_event(step, StepOutcome.FIRED, "matched", hit))
        if ts is not None:
            inst.prev_step_timestamp = ts
        _follow_next(trigger, inst, step, ts)
        return


def _spawn(
    trigger: TriggerConfig,
    instances: list[MultiInstance],
    next_id: int,
    line_num: int,
    line: str,
    ts: datetime | None,
    scan: StepScan,
) -> MultiInstance | None:
    first = trigger.recipe[0]
    hit = match_step_line(first, line_num, line, ts, scan)
    if hit is None or not hit.groups:
        return None

    key = next(iter(hit.groups.values()))
    if any(i.captured_key == key and i.status == InstanceStatus.ACTIVE for i in instances):
        return None
    active = sum(1 for i in instances if i.status == InstanceStatus.ACTIVE)
    if active >= MAX_MULTI_INSTANCES:
        logger.debug("Instance ceiling (%s) reached at line %s", MAX_MULTI_INSTANCES, line_num)
        return None

    inst = MultiInstance(
        id=next_id,
        captured_key=key,
        captured_groups=dict(hit.groups),
        start_line=line_num,
        current_step_index=0,
        prev_step_timestamp=ts,
        steps=[_event(first, StepOutcome.FIRED, "matched", hit)],
    )
    _follow_next(trigger, inst, first, ts)
    return inst


def _close_at_end(trigger: TriggerConfig, inst: MultiInstance, total_lines: int) -> None:
    # Created on the last line: no later line could time its delay out.
    if inst.start_line >= total_lines and trigger.recipe[inst.current_step_index].is_delay:
        return
    for _ in range(len(trigger.recipe)):
        step = trigger.recipe[inst.current_step_index]
        if not step.is_delay:
            inst.status = InstanceStatus.INCOMPLETE
            return
        inst.steps.append(_event(step, StepOutcome.TIMED_OUT, "end of log: timed out"))
        if not _follow_next(trigger, inst, step, _timeout_instant(inst, step)):
            return
    inst.status = InstanceStatus.INCOMPLETE


def correlate_instances(trigger: TriggerConfig, buffer: LineBuffer) -> MultiOutcome:
    """Run a MULTI recipe over the buffer, one instance per captured key."""
    instances: list[MultiInstance] = []
    scan = StepScan()

    if trigger.recipe:
        windowed = buffer.has_timestamps
        for li, line in enumerate(buffer.lines):
            ts = buffer.timestamps[li]
            for inst in instances:
                if inst.status == InstanceStatus.ACTIVE:
                    _advance_instance(trigger, inst, li + 1, line, ts, windowed, scan)
            spawned = _spawn(trigger, instances, len(instances) + 1, li + 1, line, ts, scan)
            if spawned is not None:
                instances.append(spawned)

        for inst in instances:
            if inst.status == InstanceStatus.ACTIVE:
                _close_at_end(trigger, inst, len(buffer))

    summary = MultiSummary(
        total_created=len(instances),
        fired=sum(1 for i in instances if i.status == InstanceStatus.FIRED),
        cancelled=sum(1 for i in instances if i.status == InstanceStatus.CANCELLED),
        incomplete=sum(
            1
            for i in instances
            if i.status in (InstanceStatus.INCOMPLETE, InstanceStatus.ACTIVE)
        ),
    )
    return MultiOutcome(instances=instances, summary=summary, regex_errors=scan.errors)
