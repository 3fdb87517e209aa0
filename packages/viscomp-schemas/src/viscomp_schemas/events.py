"""Event taxonomy and structured payloads for session observability."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from viscomp_schemas.base import BaseSchema
from viscomp_schemas.primitives import PhaseAction, PhaseName, PhaseStatus


class PhaseEventSuffix(StrEnum):
    """Suffixes for phase lifecycle events."""

    CONFIGURED = "configured"
    SUBMIT_STARTED = "submit_started"
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"
    GENERATE_STARTED = "generate_started"
    GENERATED = "generated"
    GENERATE_FAILED = "generate_failed"
    INVALIDATED = "invalidated"
    STALE_RESULT_DISCARDED = "stale_result_discarded"


class SessionEvent(StrEnum):
    """Event names for session lifecycle."""

    CLEARED = "session_cleared"
    HYDRATED = "session_hydrated"


class SinkEvent(StrEnum):
    """Events emitted by log sinks themselves."""

    REDACTION_APPLIED = "redaction_applied"


class CommandEvent(StrEnum):
    """Event names for CLI command lifecycle."""

    STARTED = "command_started"
    COMPLETED = "command_completed"
    FAILED = "command_failed"


class PhaseEventData(BaseSchema):
    """Common payload for phase lifecycle events."""

    phase: PhaseName = Field(..., description="Phase name")
    status: PhaseStatus | None = Field(None, description="Status after the event")
    revision: int | None = Field(None, ge=0, description="Artifact revision")
    generation: int | None = Field(None, ge=0, description="Request generation")


class PhaseInvalidatedData(BaseSchema):
    """Payload for a downstream phase reset by an upstream change."""

    phase: PhaseName = Field(..., description="Invalidated phase")
    upstream_phase: PhaseName = Field(..., description="Phase that changed")
    previous_status: PhaseStatus = Field(..., description="Status before reset")


class StaleResultData(BaseSchema):
    """Payload for a response that arrived after its request went stale."""

    phase: PhaseName = Field(..., description="Phase name")
    action: PhaseAction = Field(..., description="Action of the stale request")
    request_generation: int = Field(..., ge=0, description="Generation sent")
    current_generation: int = Field(..., ge=0, description="Generation now")


class CommandStartedData(BaseSchema):
    """Payload for command start events."""

    command: str = Field(..., min_length=1, description="Command name")


class CommandCompletedData(BaseSchema):
    """Payload for command completion events."""

    command: str = Field(..., min_length=1, description="Command name")


class CommandFailedData(BaseSchema):
    """Payload for command failure events."""

    command: str = Field(..., min_length=1, description="Command name")
    error_code: str = Field(..., min_length=1, description="Error code")


class RedactionAppliedData(BaseSchema):
    """Payload recording which parts of an entry were masked."""

    original_event: str = Field(..., min_length=1, description="Masked event")
    message_redacted: bool = Field(..., description="Whether the message changed")
    data_redacted: bool = Field(..., description="Whether the data changed")
