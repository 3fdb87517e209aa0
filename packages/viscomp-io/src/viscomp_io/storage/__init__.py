"""Log storage adapters."""

from viscomp_io.storage.log_sink import (
    ConsoleLogSink,
    FanOutLogSink,
    FileLogSink,
    RedactingLogSink,
    build_log_sink,
)

__all__ = [
    "ConsoleLogSink",
    "FanOutLogSink",
    "FileLogSink",
    "RedactingLogSink",
    "build_log_sink",
]
