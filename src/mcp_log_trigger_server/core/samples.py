"""Sample log loading and multi-file trigger evaluation.

This is the only module of the core that performs I/O. Files are read
asynchronously (plain text or gzip) from inside the configured base
directory, then concatenated so one trigger evaluation can span several
files. Match line numbers are mapped back to their file afterwards.
"""

from __future__ import annotations

import asyncio
import gzip
import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from pathlib import Path

import aiofiles
from aiofiles.threadpool import wrap

from .config import TriggerConfig
from .engine import evaluate_buffer
from .lines import LineBuffer, split_lines
from .models import InstanceEvent, LineMatch, TriggerResult
from .settings import Settings, resolve_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _open_text(path: Path, *, encoding: str, decode_errors: str):
    """Open a sample file for async text reading (plain or gzip)."""
    if path.suffix.lower() == ".gz":
        f = gzip.open(path, mode="rt", encoding=encoding, errors=decode_errors)
        af = wrap(f)
        try:
            yield af
        finally:
            await af.close()
    else:
        async with aiofiles.open(path, encoding=encoding, errors=decode_errors) as f:
            yield f


@dataclass(frozen=True, slots=True)
class SampleFile:
    """Lines of one sample, named for trace output."""

    name: str
    lines: list[str]
    path: Path | None = None
    truncated: bool = False

    @classmethod
    def from_text(cls, name: str, text: str | None) -> SampleFile:
        return cls(name=name, lines=split_lines(text))


@dataclass(frozen=True, slots=True)
class FileSpan:
    name: str
    start: int  # 0-based index of the file's first line in the combined buffer
    count: int


def resolve_sample_path(path: str | Path, settings: Settings) -> Path:
    """Resolve a path under the base directory; raise if it escapes or is missing."""
    base = settings.base_dir
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError(f"Path escapes base dir: {path}")
    if not p.is_file():
        raise FileNotFoundError(f"Log file not found: {p}")
    return p


async def read_sample(path: str | Path, *, settings: Settings | None = None) -> SampleFile:
    """Read up to `max_sample_lines` lines from a sample file."""
    settings = settings or resolve_settings()
    resolved = resolve_sample_path(path, settings)

    lines: list[str] = []
    truncated = False
    async with _open_text(
        resolved, encoding=settings.text_encoding, decode_errors=settings.decode_errors
    ) as f:
        async for line in f:
            if len(lines) >= settings.max_sample_lines:
                truncated = True
                break
            lines.append(line.rstrip("\r\n"))

    if truncated:
        logger.warning(
            "Sample %s truncated to %s lines", resolved.name, settings.max_sample_lines
        )
    return SampleFile(name=resolved.name, lines=lines, path=resolved, truncated=truncated)


async def load_sample_files(
    paths: Sequence[str | Path],
    *,
    settings: Settings | None = None,
) -> list[SampleFile]:
    """Read several sample files concurrently, preserving order."""
    settings = settings or resolve_settings()
    return list(await asyncio.gather(*(read_sample(p, settings=settings) for p in paths)))


def combine_samples(samples: Sequence[SampleFile]) -> tuple[list[str], list[FileSpan]]:
    """Concatenate sample lines, remembering where each file starts."""
    lines: list[str] = []
    spans: list[FileSpan] = []
    for sample in samples:
        spans.append(FileSpan(name=sample.name, start=len(lines), count=len(sample.lines)))
        lines.extend(sample.lines)
    return lines, spans


def locate_line(spans: Sequence[FileSpan], global_line_num: int) -> tuple[str | None, int]:
    """Map a 1-based combined line number to (file name, file-local line number)."""
    idx = global_line_num - 1
    for span in spans:
        if span.start <= idx < span.start + span.count:
            return span.name, idx - span.start + 1
    return None, global_line_num


def _remap_match(m: LineMatch, spans: Sequence[FileSpan]) -> LineMatch:
    global_num = m.global_line_num or m.line_num
    name, local = locate_line(spans, global_num)
    return replace(m, file_name=name, line_num=local, global_line_num=global_num)


def _remap_event(e: InstanceEvent, spans: Sequence[FileSpan]) -> InstanceEvent:
    if e.line_num is None:
        return e
    global_num = e.global_line_num or e.line_num
    name, local = locate_line(spans, global_num)
    return replace(e, file_name=name, line_num=local, global_line_num=global_num)


def remap_result(result: TriggerResult, spans: Sequence[FileSpan]) -> TriggerResult:
    """Rewrite every match in `result` with file name and file-local line number."""
    steps = list(result.steps)
    for firing in result.firings:
        steps.extend(firing.steps)
    for step in steps:
        step.matches = [_remap_match(m, spans) for m in step.matches]
        step.rejected_matches = [_remap_match(m, spans) for m in step.rejected_matches]
    for inst in result.instances:
        inst.steps = [_remap_event(e, spans) for e in inst.steps]
    return result


def evaluate_trigger_files(
    trigger: TriggerConfig,
    samples: Sequence[SampleFile],
    timestamp_format: str | None = None,
) -> TriggerResult:
    """Evaluate a trigger over several samples as one continuous stream."""
    lines, spans = combine_samples(samples)
    buffer = LineBuffer.from_lines(lines, timestamp_format)
    result = evaluate_buffer(trigger, buffer)
    return remap_result(result, spans)
