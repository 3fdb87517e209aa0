"""API response envelope schemas for CLI output."""

from __future__ import annotations

from pydantic import Field

from viscomp_schemas.base import BaseSchema
from viscomp_schemas.pipeline import SessionSnapshot
from viscomp_schemas.primitives import PhaseName, Timestamp


class MetaInfo(BaseSchema):
    """Metadata for API responses."""

    timestamp: Timestamp = Field(..., description="ISO-8601 response timestamp")


class ErrorDetails(BaseSchema):
    """Detailed error context for responses."""

    field: str | None = Field(None, description="Field name if applicable")
    provided: str | None = Field(None, description="Provided value")
    valid_options: list[str] | None = Field(
        None, description="Valid options if applicable"
    )


class ErrorResponse(BaseSchema):
    """Error information in response."""

    code: str = Field(..., min_length=1, description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: ErrorDetails | None = Field(None, description="Optional error details")


class ApiResponse[ResponseData](BaseSchema):
    """Generic API response envelope."""

    data: ResponseData | None = Field(
        None, description="Success payload, null on error"
    )
    error: ErrorResponse | None = Field(
        None, description="Error information, null on success"
    )
    meta: MetaInfo = Field(..., description="Response metadata")


class CheckResult(BaseSchema):
    """Result payload for the offline rule check command."""

    phase: PhaseName = Field(..., description="Checked phase")
    ok: bool = Field(..., description="Whether the configuration passed")
    code: str | None = Field(None, description="Violation code when failing")
    message: str | None = Field(None, description="Violation message when failing")
    notes: list[str] = Field(
        default_factory=list, description="Advisory notes that never block"
    )


class RunResult(BaseSchema):
    """Result payload for the run command."""

    completed_phases: list[PhaseName] = Field(
        default_factory=list, description="Phases that reached generated"
    )
    failed_phase: PhaseName | None = Field(
        None, description="Phase that stopped the run"
    )
    snapshot: SessionSnapshot = Field(..., description="Final session state")
