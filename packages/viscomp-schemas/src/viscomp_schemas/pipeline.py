"""Phase state snapshots for a pipeline session."""

from __future__ import annotations

from pydantic import Field, model_validator

from viscomp_schemas.artifacts import PHASE_ARTIFACT_KIND, Artifact
from viscomp_schemas.base import BaseSchema
from viscomp_schemas.phases import PhaseConfiguration
from viscomp_schemas.primitives import (
    ALL_PHASES,
    SNAPSHOT_STATUSES,
    JsonValue,
    PhaseAction,
    PhaseErrorCode,
    PhaseName,
    PhaseStatus,
    ProjectId,
    SessionId,
)

PHASE_CONFIGURATION_KIND: dict[PhaseName, str] = {
    PhaseName.SOURCE: "source",
    PhaseName.LEXER: "lexer",
    PhaseName.PARSER: "grammar",
    PhaseName.ANALYSER: "analyser",
    PhaseName.TRANSLATOR: "translator",
    PhaseName.OPTIMISER: "optimiser",
}


class PhaseError(BaseSchema):
    """Failure recorded on a phase after a submit or generate attempt."""

    code: PhaseErrorCode = Field(..., description="Failure category")
    message: str = Field(..., min_length=1, description="Human-readable detail")
    status_code: int | None = Field(None, description="HTTP status if any")
    details: dict[str, JsonValue] | None = Field(
        None, description="Structured failure payload"
    )


class PhaseState(BaseSchema):
    """Immutable snapshot of a single phase's state."""

    phase: PhaseName = Field(..., description="Phase this state belongs to")
    status: PhaseStatus = Field(PhaseStatus.IDLE, description="Lifecycle status")
    configuration: PhaseConfiguration | None = Field(
        None, description="In-progress configuration"
    )
    submitted_configuration: PhaseConfiguration | None = Field(
        None, description="Last configuration accepted by the service"
    )
    artifact: Artifact | None = Field(None, description="Generated output")
    error: PhaseError | None = Field(None, description="Failure detail")
    error_origin: PhaseAction | None = Field(
        None, description="Action whose failure produced the error"
    )
    generation: int = Field(0, ge=0, description="Request generation counter")
    revision: int = Field(0, ge=0, description="Successful generate counter")

    @model_validator(mode="after")
    def validate_invariants(self) -> PhaseState:
        """Ensure status, snapshot, artifact and error agree.

        Returns:
            PhaseState: Validated phase state.

        Raises:
            ValueError: If fields contradict the status.
        """
        status = PhaseStatus(self.status)
        if self.artifact is not None:
            if status != PhaseStatus.GENERATED:
                raise ValueError("artifact is only allowed when status is generated")
            expected = PHASE_ARTIFACT_KIND[PhaseName(self.phase)]
            if self.artifact.kind != expected:
                raise ValueError(
                    f"{self.phase} artifact must be {expected}, "
                    f"got {self.artifact.kind}"
                )
        elif status == PhaseStatus.GENERATED:
            raise ValueError("generated status requires an artifact")
        if (
            self.submitted_configuration is not None
            and status not in SNAPSHOT_STATUSES
        ):
            raise ValueError(
                "submitted_configuration is not allowed when status is "
                f"{status.value}"
            )
        if status in (PhaseStatus.SUBMITTED, PhaseStatus.GENERATING):
            if self.submitted_configuration is None:
                raise ValueError(f"{status.value} status requires a snapshot")
        if (self.error is None) != (status != PhaseStatus.ERROR):
            raise ValueError("error detail is required exactly when status is error")
        if (self.error is None) != (self.error_origin is None):
            raise ValueError("error_origin must accompany error")
        expected_kind = PHASE_CONFIGURATION_KIND[PhaseName(self.phase)]
        for configuration in (self.configuration, self.submitted_configuration):
            if configuration is not None and configuration.kind != expected_kind:
                raise ValueError(
                    f"{self.phase} configuration must be {expected_kind}, "
                    f"got {configuration.kind}"
                )
        return self


class SessionSnapshot(BaseSchema):
    """Point-in-time view of every phase in a session."""

    session_id: SessionId = Field(..., description="Pipeline session identifier")
    project_id: ProjectId | None = Field(None, description="Server-side project")
    phases: list[PhaseState] = Field(..., description="Phase states")

    @model_validator(mode="after")
    def validate_phases(self) -> SessionSnapshot:
        """Ensure each phase appears at most once.

        Returns:
            SessionSnapshot: Validated snapshot.

        Raises:
            ValueError: If a phase is duplicated or unknown.
        """
        names = [state.phase for state in self.phases]
        if len(set(names)) != len(names):
            raise ValueError("phases must not contain duplicates")
        unknown = set(names) - set(ALL_PHASES)
        if unknown:
            raise ValueError(f"unknown phases: {sorted(unknown)}")
        return self

    def get(self, phase: PhaseName) -> PhaseState | None:
        """Return the state for a phase, if present.

        Args:
            phase: Phase to look up.

        Returns:
            PhaseState | None: Matching state.
        """
        for state in self.phases:
            if state.phase == phase:
                return state
        return None
