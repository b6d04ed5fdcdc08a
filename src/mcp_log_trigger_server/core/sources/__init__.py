"""Log-source text engine.

Pure transforms that show how a log source definition treats a file path
and sample text.
"""

from __future__ import annotations

from .extract_append import apply_extract_append, escape_stray_backslashes
from .line_group import GROUP_SEPARATOR, group_lines
from .multiline import AssemblerState, assemble_blocks
from .path_matcher import match_source_path
from .time_filter import filter_by_log_time

__all__ = [
    "GROUP_SEPARATOR",
    "AssemblerState",
    "apply_extract_append",
    "assemble_blocks",
    "escape_stray_backslashes",
    "filter_by_log_time",
    "group_lines",
    "match_source_path",
]
