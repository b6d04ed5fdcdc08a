"""Multiline block assembly.

A two-state machine over lines. While SCANNING, only a start-pattern
line opens a block; everything else is skipped. While COLLECTING, a line
is classified with precedence start > end > other and dispatched through
the transition table below.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ..config import LogSourceConfig
from ..lines import split_lines
from ..models import Block, BlockLine, BlockTermination, MultilineResult, NumberedLine


class AssemblerState(str, Enum):
    SCANNING = "scanning"
    COLLECTING = "collecting"


class LineKind(str, Enum):
    START = "start"
    END = "end"
    OTHER = "other"


def compile_full_match(label: str, pattern: str, errors: list[str]) -> re.Pattern[str] | None:
    """Compile a whole-line pattern, recording a diagnostic on failure."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        errors.append(f"{label}: {exc}")
        return None


@dataclass(slots=True)
class _Assembler:
    max_count: int | None
    count_priority: bool
    state: AssemblerState = AssemblerState.SCANNING
    current: Block | None = None
    blocks: list[Block] = field(default_factory=list)
    skipped: list[NumberedLine] = field(default_factory=list)

    def open_block(self, line_num: int, text: str) -> None:
        self.current = Block(
            block_num=len(self.blocks) + 1,
            start_line=line_num,
            end_line=line_num,
            lines=[BlockLine(line_num, text, "start")],
        )
        self.state = AssemblerState.COLLECTING

    def _append(self, line_num: int, text: str, role: str) -> Block:
        block = self.current
        if block is None:
            raise RuntimeError("no open block")
        block.lines.append(BlockLine(line_num, text, role))
        block.end_line = line_num
        return block

    def close(self, cause: BlockTermination) -> None:
        if self.current is None:
            return
        self.current.terminated_by = cause
        self.blocks.append(self.current)
        self.current = None
        self.state = AssemblerState.SCANNING

    def _count_reached(self, block: Block) -> bool:
        return self.max_count is not None and block.line_count >= self.max_count

    def skip(self, line_num: int, text: str) -> None:
        self.skipped.append(NumberedLine(line_num, text))

    def restart(self, line_num: int, text: str) -> None:
        if self.count_priority and self.max_count is not None:
            # Count wins: a nested start line is plain content.
            block = self._append(line_num, text, "content")
            if self._count_reached(block):
                self.close(BlockTermination.COUNT)
            return
        self.close(BlockTermination.START_PATTERN)
        self.open_block(line_num, text)

    def finish(self, line_num: int, text: str) -> None:
        self._append(line_num, text, "end")
        self.close(BlockTermination.END_PATTERN)

    def collect(self, line_num: int, text: str) -> None:
        block = self._append(line_num, text, "content")
        if text == "":
            self.close(BlockTermination.EMPTY_LINE)
        elif self._count_reached(block):
            self.close(BlockTermination.COUNT)


_TRANSITIONS: dict[tuple[AssemblerState, LineKind], Callable[[_Assembler, int, str], None]] = {
    (AssemblerState.SCANNING, LineKind.START): _Assembler.open_block,
    (AssemblerState.SCANNING, LineKind.END): _Assembler.skip,
    (AssemblerState.SCANNING, LineKind.OTHER): _Assembler.skip,
    (AssemblerState.COLLECTING, LineKind.START): _Assembler.restart,
    (AssemblerState.COLLECTING, LineKind.END): _Assembler.finish,
    (AssemblerState.COLLECTING, LineKind.OTHER): _Assembler.collect,
}


def assemble_blocks(source: LogSourceConfig, text: str | None) -> MultilineResult:
    """Split `text` into start/end delimited blocks."""
    lines = split_lines(text)
    errors: list[str] = []
    start_re = compile_full_match("start_pattern", source.start_pattern, errors)
    end_re = compile_full_match("end_pattern", source.end_pattern, errors)

    if start_re is None or errors:
        if not source.start_pattern:
            errors.append("start_pattern is not set")
        return MultilineResult(
            blocks=[],
            skipped_lines=[NumberedLine(i + 1, line) for i, line in enumerate(lines)],
            total_lines=len(lines),
            errors=errors,
        )

    asm = _Assembler(max_count=source.line_count, count_priority=source.priority == "count")
    for idx, line in enumerate(lines):
        if start_re.fullmatch(line):
            kind = LineKind.START
        elif end_re is not None and end_re.fullmatch(line):
            kind = LineKind.END
        else:
            kind = LineKind.OTHER
        _TRANSITIONS[(asm.state, kind)](asm, idx + 1, line)

    asm.close(BlockTermination.EOF)
    return MultilineResult(
        blocks=asm.blocks,
        skipped_lines=asm.skipped,
        total_lines=len(lines),
        errors=errors,
    )
