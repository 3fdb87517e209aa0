"""Per-phase state store implementing the phase lifecycle.

Every transition rebuilds an immutable ``PhaseState`` so the snapshot
invariants are re-checked on each change. A per-phase ``generation``
counter is bumped whenever an in-flight request must stop counting:
beginning a new request, editing the configuration mid-flight, and
resetting. A completion is applied only if it carries the generation that
was current when its request began.
"""

from __future__ import annotations

from viscomp_core.ports.pipeline import (
    PipelineError,
    PipelineErrorCode,
    PipelineErrorDetails,
    PipelineErrorInfo,
)
from viscomp_schemas.artifacts import Artifact
from viscomp_schemas.phases import PhaseConfiguration
from viscomp_schemas.pipeline import PHASE_CONFIGURATION_KIND, PhaseError, PhaseState
from viscomp_schemas.primitives import (
    IN_FLIGHT_STATUSES,
    PhaseAction,
    PhaseName,
    PhaseStatus,
)

# Statuses in which an unchanged configuration is not re-applied.
_SETTLED_STATUSES = frozenset({
    PhaseStatus.CONFIGURING,
    PhaseStatus.SUBMITTING,
    PhaseStatus.SUBMITTED,
    PhaseStatus.GENERATING,
    PhaseStatus.GENERATED,
})


class PhaseStateStore:
    """Mutable holder for one phase's state."""

    def __init__(self, phase: PhaseName) -> None:
        """Create an idle store for a phase.

        Args:
            phase: Phase owned by this store.
        """
        self._phase = PhaseName(phase)
        self._state = PhaseState(phase=self._phase)

    @property
    def phase(self) -> PhaseName:
        """Phase owned by this store."""
        return self._phase

    @property
    def state(self) -> PhaseState:
        """Current immutable state snapshot."""
        return self._state

    @property
    def status(self) -> PhaseStatus:
        """Current lifecycle status."""
        return PhaseStatus(self._state.status)

    @property
    def generation(self) -> int:
        """Current request generation."""
        return self._state.generation

    @property
    def in_flight(self) -> bool:
        """Whether a submit or generate request is outstanding."""
        return self.status in IN_FLIGHT_STATUSES

    @property
    def has_output(self) -> bool:
        """Whether a submitted snapshot or artifact is held."""
        return (
            self._state.submitted_configuration is not None
            or self._state.artifact is not None
        )

    def set_configuration(self, configuration: PhaseConfiguration) -> bool:
        """Replace the in-progress configuration.

        Re-applying an unchanged configuration is a no-op unless the phase
        is Idle or in Error. Any real change moves the phase to Configuring;
        a held snapshot or artifact is dropped and an in-flight request is
        made stale.

        Args:
            configuration: New configuration for the phase.

        Returns:
            bool: True if a submitted snapshot or artifact was dropped.
        """
        self._require_kind(configuration)
        status = self.status
        if configuration == self._state.configuration and status in _SETTLED_STATUSES:
            return False
        dropped = self.has_output
        generation = self.generation + 1 if self.in_flight else self.generation
        self._transition(
            status=PhaseStatus.CONFIGURING,
            configuration=configuration,
            submitted_configuration=None,
            artifact=None,
            error=None,
            error_origin=None,
            generation=generation,
        )
        return dropped

    def can_begin_submit(self) -> bool:
        """Whether a submit may start from the current state."""
        return self._state.configuration is not None and not self.in_flight

    def begin_submit(self) -> int:
        """Move to Submitting and open a new request generation.

        The caller must already have validated the configuration.

        Returns:
            int: Generation token to pass to ``complete_submit``.
        """
        self._require_idle_transport(PhaseAction.SUBMIT)
        if self._state.configuration is None:
            raise self._error(
                PipelineErrorCode.MISSING_CONFIGURATION,
                f"Phase {self._phase} has no configuration to submit",
                PhaseAction.SUBMIT,
            )
        generation = self.generation + 1
        self._transition(
            status=PhaseStatus.SUBMITTING,
            submitted_configuration=None,
            artifact=None,
            error=None,
            error_origin=None,
            generation=generation,
        )
        return generation

    def complete_submit(self, token: int, error: PhaseError | None = None) -> bool:
        """Apply the outcome of a submit request.

        On success the current configuration becomes the submitted
        snapshot. On failure the phase moves to Error and the in-progress
        configuration is kept so it can be corrected and resubmitted.

        Args:
            token: Generation returned by ``begin_submit``.
            error: Failure detail, or None on success.

        Returns:
            bool: False if the result was stale and ignored.
        """
        if token != self.generation or self.status != PhaseStatus.SUBMITTING:
            return False
        if error is None:
            self._transition(
                status=PhaseStatus.SUBMITTED,
                submitted_configuration=self._state.configuration,
            )
        else:
            self._transition(
                status=PhaseStatus.ERROR,
                error=error,
                error_origin=PhaseAction.SUBMIT,
            )
        return True

    def can_begin_generate(self) -> bool:
        """Whether a generate may start from the current state.

        Generate needs a submitted snapshot: the phase is Submitted, already
        Generated (regenerate), or in Error from a failed generate.
        """
        status = self.status
        if status in (PhaseStatus.SUBMITTED, PhaseStatus.GENERATED):
            return True
        return (
            status == PhaseStatus.ERROR
            and self._state.error_origin == PhaseAction.GENERATE
            and self._state.submitted_configuration is not None
        )

    def begin_generate(self) -> int:
        """Move to Generating and open a new request generation.

        Returns:
            int: Generation token to pass to ``complete_generate``.

        Raises:
            PipelineError: If no submitted snapshot is available.
        """
        self._require_idle_transport(PhaseAction.GENERATE)
        if not self.can_begin_generate():
            raise self._error(
                PipelineErrorCode.INVALID_STATE,
                f"Phase {self._phase} must be submitted before generating",
                PhaseAction.GENERATE,
            )
        generation = self.generation + 1
        self._transition(
            status=PhaseStatus.GENERATING,
            artifact=None,
            error=None,
            error_origin=None,
            generation=generation,
        )
        return generation

    def complete_generate(
        self,
        token: int,
        artifact: Artifact | None = None,
        error: PhaseError | None = None,
    ) -> bool:
        """Apply the outcome of a generate request.

        A failed generate keeps the submitted snapshot so only regeneration
        is needed.

        Args:
            token: Generation returned by ``begin_generate``.
            artifact: Generated artifact on success.
            error: Failure detail on failure.

        Returns:
            bool: False if the result was stale and ignored.

        Raises:
            ValueError: If both or neither of artifact and error are given.
        """
        if (artifact is None) == (error is None):
            raise ValueError("exactly one of artifact or error is required")
        if token != self.generation or self.status != PhaseStatus.GENERATING:
            return False
        if error is None:
            self._transition(
                status=PhaseStatus.GENERATED,
                artifact=artifact,
                revision=self._state.revision + 1,
            )
        else:
            self._transition(
                status=PhaseStatus.ERROR,
                error=error,
                error_origin=PhaseAction.GENERATE,
            )
        return True

    def reset(self, *, clear_configuration: bool = False) -> None:
        """Return to Idle, dropping the snapshot, artifact and error.

        Any in-flight request becomes stale.

        Args:
            clear_configuration: Also drop the in-progress configuration.
        """
        changes: dict[str, object] = {
            "status": PhaseStatus.IDLE,
            "submitted_configuration": None,
            "artifact": None,
            "error": None,
            "error_origin": None,
            "generation": self.generation + 1,
        }
        if clear_configuration:
            changes["configuration"] = None
        self._transition(**changes)

    def restore(self, state: PhaseState) -> None:
        """Replace the state wholesale, e.g. when loading a saved project.

        Any in-flight request becomes stale.

        Args:
            state: State to adopt; must belong to this phase.

        Raises:
            ValueError: If the state belongs to another phase.
        """
        if PhaseName(state.phase) != self._phase:
            raise ValueError(
                f"Cannot restore {state.phase} state into {self._phase} store"
            )
        self._state = PhaseState.model_validate(
            {
                **_fields(state),
                "generation": max(state.generation, self.generation + 1),
            },
            strict=False,
        )

    def _transition(self, **changes: object) -> None:
        self._state = PhaseState.model_validate(
            {**_fields(self._state), **changes}, strict=False
        )

    def _require_kind(self, configuration: PhaseConfiguration) -> None:
        expected = PHASE_CONFIGURATION_KIND[self._phase]
        if configuration.kind != expected:
            raise self._error(
                PipelineErrorCode.INVALID_STATE,
                f"Phase {self._phase} expects a {expected} configuration, "
                f"got {configuration.kind}",
                None,
            )

    def _require_idle_transport(self, action: PhaseAction) -> None:
        if self.in_flight:
            raise self._error(
                PipelineErrorCode.REQUEST_IN_FLIGHT,
                f"Phase {self._phase} already has a request in flight",
                action,
            )

    def _error(
        self,
        code: PipelineErrorCode,
        message: str,
        action: PhaseAction | None,
    ) -> PipelineError:
        return PipelineError(
            PipelineErrorInfo(
                code=code,
                message=message,
                details=PipelineErrorDetails(
                    phase=self._phase,
                    action=action,
                    status=self.status,
                ),
            )
        )


def _fields(state: PhaseState) -> dict[str, object]:
    return {name: getattr(state, name) for name in PhaseState.model_fields}
