"""Protocol definitions, errors and log builders for pipeline sessions."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from viscomp_schemas.base import BaseSchema
from viscomp_schemas.events import (
    CommandCompletedData,
    CommandEvent,
    CommandFailedData,
    CommandStartedData,
    PhaseEventData,
    PhaseEventSuffix,
    PhaseInvalidatedData,
    RedactionAppliedData,
    SessionEvent,
    SinkEvent,
    StaleResultData,
)
from viscomp_schemas.logs import LogEntry
from viscomp_schemas.primitives import (
    JsonValue,
    LogLevel,
    PhaseAction,
    PhaseName,
    PhaseStatus,
    SessionId,
    Timestamp,
)
from viscomp_schemas.responses import ErrorDetails, ErrorResponse


@runtime_checkable
class LogSinkProtocol(Protocol):
    """Protocol for emitting JSONL log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        raise NotImplementedError


class PipelineErrorCode(StrEnum):
    """Categorized error codes for misuse of the pipeline state machine."""

    PHASE_LOCKED = "phase_locked"
    REQUEST_IN_FLIGHT = "request_in_flight"
    INVALID_STATE = "invalid_state"
    MISSING_CONFIGURATION = "missing_configuration"


class PipelineErrorDetails(BaseSchema):
    """Detailed pipeline error context."""

    phase: PhaseName | None = Field(None, description="Phase associated with error")
    action: PhaseAction | None = Field(None, description="Attempted action")
    status: PhaseStatus | None = Field(None, description="Phase status at the time")
    missing_phases: list[PhaseName] | None = Field(
        None, description="Upstream phases that are not generated"
    )
    reason: str | None = Field(None, description="Additional error context")


class PipelineErrorInfo(BaseSchema):
    """Structured pipeline error data."""

    code: PipelineErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: PipelineErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert pipeline error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.phase is not None:
            details = ErrorDetails(
                field="phase",
                provided=str(self.details.phase),
                valid_options=None,
            )
        return ErrorResponse(
            code=str(self.code), message=self.message, details=details
        )


class PipelineError(Exception):
    """Raised when an action violates the pipeline state machine."""

    def __init__(self, info: PipelineErrorInfo) -> None:
        """Initialize the pipeline error.

        Args:
            info: Structured pipeline error information.
        """
        super().__init__(info.message)
        self.info = info


def build_phase_event_name(phase: PhaseName, suffix: PhaseEventSuffix) -> str:
    """Build a phase-specific event name.

    Args:
        phase: Phase name.
        suffix: Event suffix (e.g., submitted, generated).

    Returns:
        str: Event name in snake_case.
    """
    return f"{PhaseName(phase).value}_{PhaseEventSuffix(suffix).value}"


def build_phase_log(
    timestamp: Timestamp,
    session_id: SessionId,
    phase: PhaseName,
    event_suffix: PhaseEventSuffix,
    message: str,
    data: dict[str, JsonValue] | None = None,
    level: LogLevel = LogLevel.INFO,
) -> LogEntry:
    """Build a log entry for a phase lifecycle event.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Pipeline session identifier.
        phase: Phase name.
        event_suffix: Event suffix.
        message: Log message.
        data: Structured event data; ``status``, ``revision`` and
            ``generation`` are lifted into the common payload.
        level: Log level.

    Returns:
        LogEntry: Structured phase log entry.
    """
    phase = PhaseName(phase)
    common: dict[str, JsonValue] = {"phase": phase.value}
    extra: dict[str, JsonValue] = {}
    if data is not None:
        for key, value in data.items():
            if key in {"status", "revision", "generation"}:
                common[key] = value
            elif key != "phase":
                extra[key] = value
    payload = PhaseEventData.model_validate(common, strict=False)
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=build_phase_event_name(phase, event_suffix),
        session_id=session_id,
        phase=phase,
        message=message,
        data={**payload.model_dump(exclude_none=True), **extra},
    )


def build_phase_invalidated_log(
    timestamp: Timestamp,
    session_id: SessionId,
    phase: PhaseName,
    upstream_phase: PhaseName,
    previous_status: PhaseStatus,
) -> LogEntry:
    """Build a log entry for a downstream phase reset.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Pipeline session identifier.
        phase: Invalidated phase.
        upstream_phase: Phase whose change caused the reset.
        previous_status: Status before the reset.

    Returns:
        LogEntry: Structured invalidation log entry.
    """
    phase = PhaseName(phase)
    upstream_phase = PhaseName(upstream_phase)
    previous_status = PhaseStatus(previous_status)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=build_phase_event_name(phase, PhaseEventSuffix.INVALIDATED),
        session_id=session_id,
        phase=phase,
        message=f"Phase {phase} invalidated by change to {upstream_phase}",
        data=PhaseInvalidatedData(
            phase=phase,
            upstream_phase=upstream_phase,
            previous_status=previous_status,
        ).model_dump(exclude_none=True),
    )


def build_stale_result_log(
    timestamp: Timestamp,
    session_id: SessionId,
    phase: PhaseName,
    action: PhaseAction,
    request_generation: int,
    current_generation: int,
) -> LogEntry:
    """Build a log entry for a discarded stale response.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Pipeline session identifier.
        phase: Phase the request was for.
        action: Action of the stale request.
        request_generation: Generation captured when the request began.
        current_generation: Generation when the response arrived.

    Returns:
        LogEntry: Structured stale-result log entry.
    """
    phase = PhaseName(phase)
    action = PhaseAction(action)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.DEBUG,
        event=build_phase_event_name(
            phase, PhaseEventSuffix.STALE_RESULT_DISCARDED
        ),
        session_id=session_id,
        phase=phase,
        message=f"Discarded stale {action} result for {phase}",
        data=StaleResultData(
            phase=phase,
            action=action,
            request_generation=request_generation,
            current_generation=current_generation,
        ).model_dump(exclude_none=True),
    )


def build_session_cleared_log(
    timestamp: Timestamp, session_id: SessionId
) -> LogEntry:
    """Build a log entry for a pipeline clear.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Pipeline session identifier.

    Returns:
        LogEntry: Structured session log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=SessionEvent.CLEARED,
        session_id=session_id,
        phase=None,
        message="Pipeline cleared",
        data=None,
    )


def build_session_hydrated_log(
    timestamp: Timestamp,
    session_id: SessionId,
    phases: list[PhaseName],
) -> LogEntry:
    """Build a log entry for a session restored from a saved project.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Pipeline session identifier.
        phases: Phases that received state.

    Returns:
        LogEntry: Structured session log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=SessionEvent.HYDRATED,
        session_id=session_id,
        phase=None,
        message="Session restored from saved project",
        data={"phases": [PhaseName(phase).value for phase in phases]},
    )


def build_command_started_log(
    timestamp: Timestamp, session_id: SessionId | None, command: str
) -> LogEntry:
    """Build a log entry for command start.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Session identifier if one exists.
        command: Command name.

    Returns:
        LogEntry: Structured command start log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=CommandEvent.STARTED,
        session_id=session_id,
        phase=None,
        message=f"Command {command} started",
        data=CommandStartedData(command=command).model_dump(exclude_none=True),
    )


def build_command_completed_log(
    timestamp: Timestamp, session_id: SessionId | None, command: str
) -> LogEntry:
    """Build a log entry for command completion.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Session identifier if one exists.
        command: Command name.

    Returns:
        LogEntry: Structured command completion log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=CommandEvent.COMPLETED,
        session_id=session_id,
        phase=None,
        message=f"Command {command} completed",
        data=CommandCompletedData(command=command).model_dump(exclude_none=True),
    )


def build_command_failed_log(
    timestamp: Timestamp,
    session_id: SessionId | None,
    command: str,
    error_code: str,
    message: str,
) -> LogEntry:
    """Build a log entry for command failure.

    Args:
        timestamp: ISO-8601 timestamp.
        session_id: Session identifier if one exists.
        command: Command name.
        error_code: Error code describing the failure.
        message: Failure message.

    Returns:
        LogEntry: Structured command failure log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.ERROR,
        event=CommandEvent.FAILED,
        session_id=session_id,
        phase=None,
        message=message,
        data=CommandFailedData(command=command, error_code=error_code).model_dump(
            exclude_none=True
        ),
    )


def build_redaction_applied_log(
    entry: LogEntry, *, message_redacted: bool, data_redacted: bool
) -> LogEntry:
    """Build the DEBUG notice that follows a masked log entry.

    The notice reuses the masked entry's timestamp, session and phase so the
    two sort together.

    Args:
        entry: Entry that was masked.
        message_redacted: Whether the message changed.
        data_redacted: Whether the data changed.

    Returns:
        LogEntry: Structured redaction notice.
    """
    return LogEntry(
        timestamp=entry.timestamp,
        level=LogLevel.DEBUG,
        event=SinkEvent.REDACTION_APPLIED,
        session_id=entry.session_id,
        phase=PhaseName(entry.phase) if entry.phase is not None else None,
        message="Secret redaction applied to log entry",
        data=RedactionAppliedData(
            original_event=entry.event,
            message_redacted=message_redacted,
            data_redacted=data_redacted,
        ).model_dump(),
    )
