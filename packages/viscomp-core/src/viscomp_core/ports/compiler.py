"""Port for the remote compiler service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import Field, model_validator

from viscomp_schemas.artifacts import Artifact
from viscomp_schemas.base import BaseSchema
from viscomp_schemas.phases import PhaseConfiguration
from viscomp_schemas.primitives import JsonValue, PhaseErrorCode, PhaseName, ProjectId


class ServiceFailure(BaseSchema):
    """Failure reported by a service adapter instead of raising."""

    kind: PhaseErrorCode = Field(..., description="Failure category")
    message: str = Field(..., min_length=1, description="Human-readable detail")
    status_code: int | None = Field(None, description="HTTP status if any")
    details: dict[str, JsonValue] | None = Field(
        None, description="Structured failure payload"
    )


class ServiceAck(BaseSchema):
    """Acknowledgement of an accepted configuration."""

    message: str | None = Field(None, description="Service acknowledgement text")


class ServiceResult[ResultValue](BaseSchema):
    """Tagged outcome of a service call: a value or a failure."""

    value: ResultValue | None = Field(None, description="Payload on success")
    failure: ServiceFailure | None = Field(None, description="Failure detail")

    @model_validator(mode="after")
    def validate_outcome(self) -> ServiceResult[ResultValue]:
        """Ensure exactly one of value and failure is set.

        Returns:
            ServiceResult: Validated result.

        Raises:
            ValueError: If both or neither are set.
        """
        if (self.value is None) == (self.failure is None):
            raise ValueError("exactly one of value or failure must be set")
        return self

    @property
    def ok(self) -> bool:
        """Whether the call succeeded."""
        return self.failure is None


@runtime_checkable
class CompilerServiceProtocol(Protocol):
    """Remote capability that stores phase configurations and generates artifacts.

    Implementations never raise for network or service failures; they
    return a ServiceResult carrying a ServiceFailure instead. Both calls
    are idempotent: resubmitting the same configuration yields the same
    outcome, and generating reuses the last submitted configuration.
    """

    async def submit_configuration(
        self,
        phase: PhaseName,
        project_id: ProjectId,
        configuration: PhaseConfiguration,
    ) -> ServiceResult[ServiceAck]:
        """Store a phase configuration server-side."""
        raise NotImplementedError

    async def generate_artifact(
        self,
        phase: PhaseName,
        project_id: ProjectId,
        configuration: PhaseConfiguration | None = None,
    ) -> ServiceResult[Artifact]:
        """Generate a phase artifact from the last submitted configuration.

        ``configuration`` is the locally held snapshot; adapters use it only
        for request fields the service expects at generate time.
        """
        raise NotImplementedError
