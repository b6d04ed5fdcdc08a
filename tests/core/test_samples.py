from __future__ import annotations

import gzip
from pathlib import Path

import pytest

from mcp_log_trigger_server.core.config import TriggerConfig
from mcp_log_trigger_server.core.samples import (
    SampleFile,
    combine_samples,
    evaluate_trigger_files,
    load_sample_files,
    locate_line,
    read_sample,
)
from mcp_log_trigger_server.core.settings import Settings


@pytest.mark.asyncio
async def test_read_sample_plain_and_gzip(tmp_path: Path, write_log) -> None:
    write_log(tmp_path / "app.log", ["one", "two"])
    with gzip.open(tmp_path / "old.log.gz", "wt", encoding="utf-8") as f:
        f.write("gz one\r\ngz two\n")
    settings = Settings(base_dir=tmp_path.resolve())

    plain = await read_sample("app.log", settings=settings)
    assert plain.name == "app.log"
    assert plain.lines == ["one", "two"]
    assert not plain.truncated

    packed = await read_sample(tmp_path / "old.log.gz", settings=settings)
    assert packed.lines == ["gz one", "gz two"]


@pytest.mark.asyncio
async def test_read_sample_rejects_escape_and_missing(tmp_path: Path) -> None:
    settings = Settings(base_dir=tmp_path.resolve())

    with pytest.raises(ValueError, match="escapes base dir"):
        await read_sample("../outside.log", settings=settings)
    with pytest.raises(FileNotFoundError):
        await read_sample("missing.log", settings=settings)


@pytest.mark.asyncio
async def test_read_sample_truncates(tmp_path: Path, write_log) -> None:
    write_log(tmp_path / "big.log", [f"line {i}" for i in range(5)])
    sample = await read_sample("big.log", settings=Settings(base_dir=tmp_path.resolve(), max_sample_lines=2))

    assert sample.truncated
    assert sample.lines == ["line 0", "line 1"]


@pytest.mark.asyncio
async def test_load_sample_files_keeps_order(tmp_path: Path, write_log) -> None:
    write_log(tmp_path / "b.log", ["b"])
    write_log(tmp_path / "a.log", ["a"])
    samples = await load_sample_files(["b.log", "a.log"], settings=Settings(base_dir=tmp_path.resolve()))
    assert [s.name for s in samples] == ["b.log", "a.log"]


def test_locate_line() -> None:
    _, spans = combine_samples([SampleFile("a.log", ["1", "2"]), SampleFile("b.log", ["3"])])
    assert locate_line(spans, 2) == ("a.log", 2)
    assert locate_line(spans, 3) == ("b.log", 1)
    assert locate_line(spans, 9) == (None, 9)


def test_matches_are_mapped_back_to_their_file() -> None:
    trig = TriggerConfig.model_validate(
        {
            "recipe": [{"name": "err", "trigger": [".*ERR.*"]}],
            "limitation": {"times": 5, "duration": "1 minute"},
        }
    )
    samples = [
        SampleFile.from_text("a.log", "a1\nERR a\n"),
        SampleFile.from_text("b.log", "ERR b\nb2\n"),
    ]
    result = evaluate_trigger_files(trig, samples)

    first = result.firings[0].steps[0].matches[0]
    second = result.firings[1].steps[0].matches[0]
    assert (first.file_name, first.line_num, first.global_line_num) == ("a.log", 2, 2)
    assert (second.file_name, second.line_num, second.global_line_num) == ("b.log", 1, 3)
    assert result.firings[-1].incomplete
