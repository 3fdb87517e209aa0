"""Log sink adapters for pipeline session events.

Console and file sinks both write one JSON object per line. The CLI prints
its response envelope on stdout, so the console sink defaults to stderr.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from viscomp_core.ports.pipeline import LogSinkProtocol, build_redaction_applied_log
from viscomp_schemas.config import LoggingConfig, LogSinkConfig
from viscomp_schemas.logs import LogEntry
from viscomp_schemas.primitives import LogLevel, LogSinkType

if TYPE_CHECKING:
    from viscomp_schemas.redaction import Redactor

_LEVEL_RANK: dict[LogLevel, int] = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}


def _jsonl_line(entry: LogEntry) -> str:
    return entry.model_dump_json(exclude_none=False) + "\n"


class _LevelFilteredSink(LogSinkProtocol):
    """Drops entries below a minimum level before writing the rest."""

    def __init__(self, min_level: LogLevel | None) -> None:
        self._min_rank = 0 if min_level is None else _LEVEL_RANK[LogLevel(min_level)]

    def accepts(self, entry: LogEntry) -> bool:
        """Whether an entry is at or above this sink's minimum level."""
        return _LEVEL_RANK[LogLevel(entry.level)] >= self._min_rank

    async def emit_log(self, entry: LogEntry) -> None:
        """Write the entry unless it is filtered out."""
        if self.accepts(entry):
            await self._write(_jsonl_line(entry))

    async def _write(self, line: str) -> None:
        raise NotImplementedError


class ConsoleLogSink(_LevelFilteredSink):
    """Writes JSONL entries to a text stream, stderr by default."""

    def __init__(
        self, stream: TextIO | None = None, min_level: LogLevel | None = None
    ) -> None:
        """Initialize the console sink.

        Args:
            stream: Stream to write to; stderr when omitted.
            min_level: Lowest level written; every entry when omitted.
        """
        super().__init__(min_level)
        self._stream = stream or sys.stderr

    async def _write(self, line: str) -> None:
        self._stream.write(line)
        self._stream.flush()


class FileLogSink(_LevelFilteredSink):
    """Appends JSONL entries to a file off the event loop."""

    def __init__(self, path: Path | str, min_level: LogLevel | None = None) -> None:
        """Initialize the file sink.

        Args:
            path: JSONL file to append to; parent directories are created.
            min_level: Lowest level written; every entry when omitted.
        """
        super().__init__(min_level)
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Target JSONL file."""
        return self._path

    async def _write(self, line: str) -> None:
        await asyncio.to_thread(_append_line, self._path, line)


class FanOutLogSink(LogSinkProtocol):
    """Forwards each entry to every delegate in order.

    With no delegates it drops everything, which is how the ``noop`` sink
    type is served.
    """

    def __init__(self, sinks: Iterable[LogSinkProtocol] = ()) -> None:
        self._sinks = tuple(sinks)

    @property
    def sinks(self) -> tuple[LogSinkProtocol, ...]:
        """Delegate sinks."""
        return self._sinks

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward the entry to each delegate."""
        for sink in self._sinks:
            await sink.emit_log(entry)


class RedactingLogSink(LogSinkProtocol):
    """Masks secrets in an entry before it reaches the wrapped sink."""

    def __init__(self, delegate: LogSinkProtocol, redactor: Redactor) -> None:
        """Initialize the redacting wrapper.

        Args:
            delegate: Sink that receives masked entries.
            redactor: Secret matcher applied to message and data.
        """
        self._delegate = delegate
        self._redactor = redactor

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward a masked copy, then a notice if anything was masked."""
        message = self._redactor.redact(entry.message)
        data = None if entry.data is None else self._redactor.redact_dict(entry.data)
        message_redacted = message != entry.message
        data_redacted = data != entry.data
        if not (message_redacted or data_redacted):
            await self._delegate.emit_log(entry)
            return
        await self._delegate.emit_log(
            entry.model_copy(update={"message": message, "data": data})
        )
        await self._delegate.emit_log(
            build_redaction_applied_log(
                entry,
                message_redacted=message_redacted,
                data_redacted=data_redacted,
            )
        )


def build_log_sink(
    logging_config: LoggingConfig,
    *,
    stream: TextIO | None = None,
    redactor: Redactor | None = None,
) -> LogSinkProtocol:
    """Build the session log sink from configuration.

    Args:
        logging_config: Logging configuration for the session.
        stream: Optional stream for console sinks.
        redactor: Optional redactor wrapped around every writing sink.

    Returns:
        LogSinkProtocol: A single sink, or a fan-out over several.
    """
    sinks = [
        sink
        for sink_config in logging_config.sinks
        if (sink := _sink_from_config(sink_config, stream)) is not None
    ]
    if redactor is not None:
        sinks = [RedactingLogSink(sink, redactor) for sink in sinks]
    if len(sinks) == 1:
        return sinks[0]
    return FanOutLogSink(sinks)


def _sink_from_config(
    config: LogSinkConfig, stream: TextIO | None
) -> LogSinkProtocol | None:
    sink_type = LogSinkType(config.type)
    if sink_type == LogSinkType.NOOP:
        return None
    if sink_type == LogSinkType.CONSOLE:
        return ConsoleLogSink(stream=stream, min_level=config.min_level)
    if config.path is None:
        raise ValueError("file log sink requires a path")
    return FileLogSink(config.path, min_level=config.min_level)


def _append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(line)
