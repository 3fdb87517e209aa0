"""viscomp-io: compiler service client and log sinks."""

from viscomp_io.service import (
    HttpCompilerService,
    MalformedPayloadError,
    build_generate_body,
    build_submit_body,
    parse_artifact,
    parse_saved_project,
)
from viscomp_io.settings import ViscompSettings, get_settings
from viscomp_io.storage import (
    ConsoleLogSink,
    FanOutLogSink,
    FileLogSink,
    RedactingLogSink,
    build_log_sink,
)

__version__ = "0.1.0"

__all__ = [
    "ConsoleLogSink",
    "FanOutLogSink",
    "FileLogSink",
    "HttpCompilerService",
    "MalformedPayloadError",
    "RedactingLogSink",
    "ViscompSettings",
    "build_generate_body",
    "build_log_sink",
    "build_submit_body",
    "get_settings",
    "parse_artifact",
    "parse_saved_project",
]
