"""Ports for the remote compiler service and session observability."""

from viscomp_core.ports.compiler import (
    CompilerServiceProtocol,
    ServiceAck,
    ServiceFailure,
    ServiceResult,
)
from viscomp_core.ports.pipeline import (
    LogSinkProtocol,
    PipelineError,
    PipelineErrorCode,
    PipelineErrorDetails,
    PipelineErrorInfo,
    build_command_completed_log,
    build_command_failed_log,
    build_command_started_log,
    build_phase_event_name,
    build_phase_invalidated_log,
    build_phase_log,
    build_session_cleared_log,
    build_session_hydrated_log,
    build_stale_result_log,
)

__all__ = [
    "CompilerServiceProtocol",
    "LogSinkProtocol",
    "PipelineError",
    "PipelineErrorCode",
    "PipelineErrorDetails",
    "PipelineErrorInfo",
    "ServiceAck",
    "ServiceFailure",
    "ServiceResult",
    "build_command_completed_log",
    "build_command_failed_log",
    "build_command_started_log",
    "build_phase_event_name",
    "build_phase_invalidated_log",
    "build_phase_log",
    "build_session_cleared_log",
    "build_session_hydrated_log",
    "build_stale_result_log",
]
