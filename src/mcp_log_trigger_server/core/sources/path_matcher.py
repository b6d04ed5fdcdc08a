"""Decide whether a file path belongs to a log source."""

from __future__ import annotations

import re
from datetime import datetime

from ..config import LogSourceConfig
from ..models import PathCheck, PathMatchResult
from ..timestamps import compile_date_format, resolve_date_tokens

_SEP_RE = re.compile(r"[\\/]+")


def _normalize(path: str) -> str:
    return _SEP_RE.sub("/", path or "")


def _token_check(label: str, raw: str, resolved: str, file_name: str, passed: bool) -> PathCheck:
    origin = f" (from {raw!r})" if resolved != raw else ""
    if passed:
        detail = f"{resolved!r} matched{origin}"
    else:
        detail = f"{resolved!r} not found in file name {file_name!r}{origin}"
    return PathCheck(label=label, passed=passed, detail=detail)


def match_source_path(
    source: LogSourceConfig,
    file_path: str,
    now: datetime | None = None,
) -> PathMatchResult:
    """Run the path checks in order, stopping at the first failure.

    Order: directory, filename filter, date subdirectory (or no unexpected
    subdirectory), prefix, suffix, wildcard, exclude suffixes. Date tokens
    in the subdirectory format, prefix, suffix and wildcard resolve
    against `now` (local time when omitted).
    """
    now = now or datetime.now()
    steps: list[PathCheck] = []

    def fail(check: PathCheck) -> PathMatchResult:
        steps.append(check)
        return PathMatchResult(matched=False, steps=steps)

    path = _normalize(file_path)
    directory = _normalize(source.directory)
    if directory and not directory.endswith("/"):
        directory += "/"

    if directory:
        if path.startswith(directory) or path + "/" == directory:
            steps.append(PathCheck("directory", True, f"{source.directory!r} matched"))
        else:
            return fail(
                PathCheck(
                    "directory",
                    False,
                    f"{source.directory!r} does not contain {file_path!r}",
                )
            )

    if not (source.prefix or source.suffix or source.wildcard):
        return fail(
            PathCheck(
                "filename filter",
                False,
                "at least one of prefix, suffix or wildcard must be set",
            )
        )

    remaining = path[len(directory) :] if directory else path

    if source.date_subdir_format:
        expected = _normalize(compile_date_format(source.date_subdir_format).render(now))
        expected = expected.removeprefix("/")
        subdir, sep, file_name = remaining.rpartition("/")
        if sep:
            if subdir != expected:
                return fail(
                    PathCheck(
                        "date subdirectory",
                        False,
                        f"{subdir!r} does not match today's {expected!r}",
                    )
                )
        elif remaining and remaining == expected:
            file_name = ""
        else:
            return fail(
                PathCheck(
                    "date subdirectory",
                    False,
                    f"no subdirectory (expected {source.directory}{expected}/...)",
                )
            )
        steps.append(
            PathCheck(
                "date subdirectory",
                True,
                f"{expected!r} matched (from {source.date_subdir_format!r})",
            )
        )
    else:
        subdir, sep, file_name = remaining.rpartition("/")
        if sep:
            return fail(
                PathCheck(
                    "subdirectory",
                    False,
                    f"unexpected subdirectory {subdir!r} (date_subdir_format not set)",
                )
            )
        file_name = remaining

    if source.prefix:
        resolved = resolve_date_tokens(source.prefix, now)
        check = _token_check("prefix", source.prefix, resolved, file_name, file_name.startswith(resolved))
        if not check.passed:
            return fail(check)
        steps.append(check)

    if source.suffix:
        resolved = resolve_date_tokens(source.suffix, now)
        check = _token_check("suffix", source.suffix, resolved, file_name, file_name.endswith(resolved))
        if not check.passed:
            return fail(check)
        steps.append(check)

    if source.wildcard:
        resolved = resolve_date_tokens(source.wildcard, now)
        check = _token_check("wildcard", source.wildcard, resolved, file_name, resolved in file_name)
        if not check.passed:
            return fail(check)
        steps.append(check)

    if source.exclude_suffix:
        excluded_by = next((s for s in source.exclude_suffix if file_name.endswith(s)), None)
        if excluded_by is not None:
            return fail(
                PathCheck("exclude", False, f"{file_name!r} ends with excluded {excluded_by!r}")
            )
        steps.append(PathCheck("exclude", True, "not excluded"))
    else:
        steps.append(PathCheck("exclude", True, "no exclude list"))

    return PathMatchResult(matched=True, steps=steps)
