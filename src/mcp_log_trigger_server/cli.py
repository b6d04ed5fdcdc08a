from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

from mcp_log_trigger_server.core.samples import (
    SampleFile,
    evaluate_trigger_files,
    load_sample_files,
    read_sample,
)
from mcp_log_trigger_server.core.settings import Settings, resolve_settings
from mcp_log_trigger_server.tools import trigger_tools


def _cli_settings() -> Settings:
    # Paths on the command line are trusted; no base-dir sandbox.
    return replace(resolve_settings(), base_dir=Path(Path.cwd().anchor).resolve())


def _load_config(path: str) -> dict[str, Any]:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Config file not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{p} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{p} must contain a JSON object")
    return data


def _read_text(path: str, settings: Settings) -> str:
    sample: SampleFile = asyncio.run(read_sample(path, settings=settings))
    return "\n".join(sample.lines)


def _print_trigger_summary(d: dict[str, Any]) -> None:
    status = "TRIGGERED" if d["triggered"] else "not triggered"
    print(f"{status}: {d['message']}")
    for step in d["steps"]:
        lines = ", ".join(
            f"{m['file_name']}:{m['line_num']}" if m.get("file_name") else str(m["line_num"])
            for m in step["matches"]
        )
        print(f"  [{step['outcome']}] {step['name']} ({step['type']}) matches: {lines or '-'}")
    for inst in d.get("instances", []):
        print(f"  #{inst['id']} key={inst['captured_key']} status={inst['status']}")
    for err in d["regex_errors"]:
        print(f"  regex error: {err}")


def _run_trigger(args: argparse.Namespace) -> int:
    cfg = trigger_tools.parse_trigger(_load_config(args.config))
    samples = asyncio.run(load_sample_files(args.logs, settings=_cli_settings()))
    result = evaluate_trigger_files(cfg, samples, args.timestamp_format)
    d = trigger_tools.trigger_result_to_dict(result)
    if args.json:
        print(json.dumps(d, indent=2, ensure_ascii=False))
    else:
        _print_trigger_summary(d)
    return 0


def _run_source(args: argparse.Namespace) -> int:
    source = _load_config(args.config)
    settings = _cli_settings()
    if args.check == "path":
        out = trigger_tools.test_source_path_impl(source=source, file_path=args.file_path, now=args.now)
    elif args.check == "multiline":
        out = trigger_tools.test_multiline_impl(source=source, log_text=_read_text(args.log, settings))
    elif args.check == "extract-append":
        out = trigger_tools.test_extract_append_impl(
            source=source,
            file_path=args.file_path,
            log_text=_read_text(args.log, settings),
        )
    elif args.check == "time-filter":
        out = trigger_tools.test_log_time_filter_impl(
            source=source, log_text=_read_text(args.log, settings)
        )
    else:
        out = trigger_tools.test_line_group_impl(source=source, log_text=_read_text(args.log, settings))
    print(json.dumps(out, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mcp-log-trigger",
        description="Dry-run log trigger and log source definitions against sample logs.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    t = sub.add_parser("trigger", help="Evaluate a trigger definition (JSON file) over log files")
    t.add_argument("config", help="Trigger definition JSON file")
    t.add_argument("logs", nargs="+", help="Log files (plain or .gz), read as one stream")
    t.add_argument("--timestamp-format", default=None, help='e.g. "yyyy-MM-dd HH:mm:ss"')
    t.add_argument("--json", action="store_true", help="Print the full result as JSON")
    t.set_defaults(func=_run_trigger)

    s = sub.add_parser("source", help="Run a log source check (JSON file)")
    s.add_argument("config", help="Log source definition JSON file")
    checks = s.add_subparsers(dest="check", required=True)

    path = checks.add_parser("path", help="Would this file be collected?")
    path.add_argument("file_path")
    path.add_argument("--now", default=None, help="ISO8601 local time used for date tokens")

    for name, help_text in (
        ("multiline", "Split the log into multiline blocks"),
        ("time-filter", "Apply the log time watermark"),
        ("group", "Group lines by line_group_count"),
    ):
        c = checks.add_parser(name, help=help_text)
        c.add_argument("log")

    ea = checks.add_parser("extract-append", help="Splice path captures into each line")
    ea.add_argument("file_path")
    ea.add_argument("log")

    s.set_defaults(func=_run_source)
    return p


def main(argv: Sequence[str] | None = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)
    try:
        code = args.func(args)
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
