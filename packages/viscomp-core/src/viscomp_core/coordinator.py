"""Dependency graph between phases: unlock rules and invalidation."""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from viscomp_core.cache import ArtifactCache
from viscomp_core.ports.pipeline import (
    PipelineError,
    PipelineErrorCode,
    PipelineErrorDetails,
    PipelineErrorInfo,
)
from viscomp_core.store import PhaseStateStore
from viscomp_schemas.primitives import (
    ALL_PHASES,
    PIPELINE_BRANCHES,
    PIPELINE_PHASE_ORDER,
    PhaseAction,
    PhaseName,
    PhaseStatus,
)


def upstream_phases(phase: PhaseName) -> list[PhaseName]:
    """Return the phases that must be generated before a phase can run.

    Chain phases depend on every phase before them; a branch depends only on
    the chain phase it hangs off.

    Args:
        phase: Phase to inspect.

    Returns:
        list[PhaseName]: Upstream phases in pipeline order.
    """
    phase = PhaseName(phase)
    if phase in PIPELINE_BRANCHES:
        return [PIPELINE_BRANCHES[phase]]
    index = PIPELINE_PHASE_ORDER.index(phase)
    return PIPELINE_PHASE_ORDER[:index]


def downstream_phases(phase: PhaseName) -> list[PhaseName]:
    """Return every phase that depends on a phase.

    Args:
        phase: Phase to inspect.

    Returns:
        list[PhaseName]: Downstream phases in pipeline order.
    """
    phase = PhaseName(phase)
    return [
        candidate
        for candidate in ALL_PHASES
        if phase in upstream_phases(candidate)
    ]


class PhaseInvalidation(BaseModel):
    """Record of a downstream phase reset by an upstream change."""

    model_config = ConfigDict(frozen=True)

    phase: PhaseName = Field(description="Invalidated phase")
    upstream_phase: PhaseName = Field(description="Phase that changed")
    previous_status: PhaseStatus = Field(description="Status before reset")


class PipelineCoordinator:
    """Evaluates unlock state and propagates invalidation across phases."""

    def __init__(
        self,
        stores: Mapping[PhaseName, PhaseStateStore],
        cache: ArtifactCache | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            stores: One store per phase.
            cache: Artifact cache to evict from on invalidation.
        """
        self._stores = stores
        self._cache = cache

    def missing_upstream(self, phase: PhaseName) -> list[PhaseName]:
        """Return upstream phases that are not yet generated.

        Args:
            phase: Phase to inspect.

        Returns:
            list[PhaseName]: Blocking phases in pipeline order.
        """
        return [
            upstream
            for upstream in upstream_phases(phase)
            if self._stores[upstream].status != PhaseStatus.GENERATED
        ]

    def is_unlocked(self, phase: PhaseName) -> bool:
        """Whether every upstream phase is generated.

        Args:
            phase: Phase to inspect.

        Returns:
            bool: True if the phase may be submitted.
        """
        return not self.missing_upstream(phase)

    def can_run(self, phase: PhaseName, action: PhaseAction) -> bool:
        """Whether an action may start on a phase now.

        Args:
            phase: Phase to inspect.
            action: Action to start.

        Returns:
            bool: True if ``ensure_can_run`` would not raise.
        """
        phase = PhaseName(phase)
        store = self._stores[phase]
        if PhaseAction(action) == PhaseAction.SUBMIT:
            return self.is_unlocked(phase) and store.can_begin_submit()
        return not store.in_flight and store.can_begin_generate()

    def ensure_can_run(self, phase: PhaseName, action: PhaseAction) -> None:
        """Raise if an action may not start on a phase.

        Args:
            phase: Phase to inspect.
            action: Action to start.

        Raises:
            PipelineError: If the phase is locked, busy, unconfigured, or not
                in a state that allows the action.
        """
        phase = PhaseName(phase)
        action = PhaseAction(action)
        store = self._stores[phase]
        missing = self.missing_upstream(phase)
        if action == PhaseAction.SUBMIT and missing:
            raise _pipeline_error(
                PipelineErrorCode.PHASE_LOCKED,
                f"Phase {phase} is locked; waiting on "
                + ", ".join(str(item) for item in missing),
                store,
                action,
                missing_phases=missing,
            )
        if store.in_flight:
            raise _pipeline_error(
                PipelineErrorCode.REQUEST_IN_FLIGHT,
                f"Phase {phase} already has a request in flight",
                store,
                action,
            )
        if action == PhaseAction.SUBMIT and store.state.configuration is None:
            raise _pipeline_error(
                PipelineErrorCode.MISSING_CONFIGURATION,
                f"Phase {phase} has no configuration to submit",
                store,
                action,
            )
        if action == PhaseAction.GENERATE and not store.can_begin_generate():
            raise _pipeline_error(
                PipelineErrorCode.INVALID_STATE,
                f"Phase {phase} must be submitted before generating",
                store,
                action,
            )

    def on_upstream_changed(self, phase: PhaseName) -> list[PhaseInvalidation]:
        """Reset every downstream phase after a phase's output changed.

        Downstream phases that are not Idle return to Idle with their
        configuration kept; snapshots, artifacts and errors are dropped,
        cached artifacts are evicted and in-flight requests become stale.

        Args:
            phase: Phase whose submitted snapshot or artifact changed.

        Returns:
            list[PhaseInvalidation]: Phases that were reset, in order.
        """
        phase = PhaseName(phase)
        invalidated: list[PhaseInvalidation] = []
        for downstream in downstream_phases(phase):
            store = self._stores[downstream]
            if self._cache is not None:
                self._cache.evict(downstream)
            previous = store.status
            if previous == PhaseStatus.IDLE:
                continue
            store.reset()
            invalidated.append(
                PhaseInvalidation(
                    phase=downstream,
                    upstream_phase=phase,
                    previous_status=previous,
                )
            )
        return invalidated


def _pipeline_error(
    code: PipelineErrorCode,
    message: str,
    store: PhaseStateStore,
    action: PhaseAction,
    missing_phases: list[PhaseName] | None = None,
) -> PipelineError:
    return PipelineError(
        PipelineErrorInfo(
            code=code,
            message=message,
            details=PipelineErrorDetails(
                phase=store.phase,
                action=action,
                status=store.status,
                missing_phases=missing_phases,
            ),
        )
    )
