"""Unit tests for log sinks and the JSONL log store."""

import io
from pathlib import Path

import orjson
import pytest

from lingobus_io.storage import (
    CompositeLogSink,
    ConsoleLogSink,
    FileSystemLogStore,
    InMemoryLogSink,
    NoopLogSink,
    StorageLogSink,
    build_log_sink,
)
from lingobus_schemas.config import LoggingConfig, LogSinkConfig
from lingobus_schemas.logs import LogEntry
from lingobus_schemas.primitives import LogLevel, LogSinkType

FIXED_TIMESTAMP = "2026-10-19T12:00:00Z"


def _entry(event: str = "stage_started") -> LogEntry:
    return LogEntry(
        timestamp=FIXED_TIMESTAMP,
        level=LogLevel.INFO,
        event=event,
        message="Stage extraction started",
    )


@pytest.mark.anyio
async def test_console_sink_writes_jsonl() -> None:
    """Ensure console entries are one JSON object per line."""
    stream = io.StringIO()
    sink = ConsoleLogSink(stream=stream)

    await sink.emit_log(_entry())

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    assert orjson.loads(lines[0])["event"] == "stage_started"


@pytest.mark.anyio
async def test_file_log_store_appends(tmp_path: Path) -> None:
    """Ensure the storage sink appends entries to the JSONL file."""
    store = FileSystemLogStore(str(tmp_path / "logs"))
    sink = StorageLogSink(store)

    await sink.emit_log(_entry("stage_started"))
    await sink.emit_log(_entry("stage_completed"))

    lines = store.path.read_text(encoding="utf-8").splitlines()
    assert [orjson.loads(line)["event"] for line in lines] == [
        "stage_started",
        "stage_completed",
    ]


@pytest.mark.anyio
async def test_composite_sink_forwards_to_every_sink() -> None:
    """Ensure each wrapped sink receives the entry."""
    first, second = InMemoryLogSink(), InMemoryLogSink()

    await CompositeLogSink([first, second, NoopLogSink()]).emit_log(_entry())

    assert first.events() == ["stage_started"]
    assert second.events() == ["stage_started"]


def test_build_log_sink_single_and_composite(tmp_path: Path) -> None:
    """Ensure one sink is returned bare and several are composed."""
    single = build_log_sink(LoggingConfig(sinks=[LogSinkConfig(type=LogSinkType.NOOP)]))
    composite = build_log_sink(
        LoggingConfig(
            sinks=[
                LogSinkConfig(type=LogSinkType.CONSOLE),
                LogSinkConfig(type=LogSinkType.FILE),
            ],
            logs_dir=str(tmp_path),
        ),
        FileSystemLogStore(str(tmp_path)),
    )

    assert isinstance(single, NoopLogSink)
    assert isinstance(composite, CompositeLogSink)


def test_build_log_sink_requires_store_for_file_sink(tmp_path: Path) -> None:
    """Ensure a file sink without a store is refused."""
    config = LoggingConfig(
        sinks=[LogSinkConfig(type=LogSinkType.FILE)], logs_dir=str(tmp_path)
    )

    with pytest.raises(ValueError):
        build_log_sink(config)
