"""Pipeline session: the composition root that drives phase actions."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from viscomp_core.cache import ArtifactCache
from viscomp_core.coordinator import PhaseInvalidation, PipelineCoordinator
from viscomp_core.ports.compiler import (
    CompilerServiceProtocol,
    ServiceFailure,
    ServiceResult,
)
from viscomp_core.ports.pipeline import (
    LogSinkProtocol,
    PipelineError,
    PipelineErrorCode,
    PipelineErrorDetails,
    PipelineErrorInfo,
    build_phase_invalidated_log,
    build_phase_log,
    build_session_cleared_log,
    build_stale_result_log,
)
from viscomp_core.rules.advisory import AdvisoryNote, check_terminal_coverage
from viscomp_core.rules.protocol import Violation
from viscomp_core.rules.registry import RuleBook
from viscomp_core.store import PhaseStateStore
from viscomp_schemas.artifacts import Artifact, SourceCode, TokenSet
from viscomp_schemas.config import RulesConfig
from viscomp_schemas.events import PhaseEventSuffix
from viscomp_schemas.logs import LogEntry
from viscomp_schemas.phases import Grammar, PhaseConfiguration, SourceConfig
from viscomp_schemas.pipeline import PhaseError, PhaseState, SessionSnapshot
from viscomp_schemas.primitives import (
    ALL_PHASES,
    LogLevel,
    PhaseAction,
    PhaseErrorCode,
    PhaseName,
    ProjectId,
    SessionId,
    Timestamp,
)

NO_PROJECT_MESSAGE = "No project selected: Please select or create a project first"


class OutcomeStatus(StrEnum):
    """How a submit or generate action ended."""

    OK = "ok"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"
    IDENTITY_ERROR = "identity_error"
    SERVICE_ERROR = "service_error"
    STALE = "stale"


_FAILURE_STATUS: dict[PhaseErrorCode, OutcomeStatus] = {
    PhaseErrorCode.TRANSPORT: OutcomeStatus.TRANSPORT_ERROR,
    PhaseErrorCode.IDENTITY: OutcomeStatus.IDENTITY_ERROR,
    PhaseErrorCode.SERVICE: OutcomeStatus.SERVICE_ERROR,
}


class ActionOutcome(BaseModel):
    """Tagged result of a phase action."""

    model_config = ConfigDict(frozen=True)

    phase: PhaseName = Field(description="Phase acted on")
    action: PhaseAction = Field(description="Action attempted")
    status: OutcomeStatus = Field(description="How the action ended")
    violation: Violation | None = Field(
        default=None, description="Rule violation when rejected"
    )
    error: PhaseError | None = Field(
        default=None, description="Failure detail for error outcomes"
    )
    notes: list[AdvisoryNote] = Field(
        default_factory=list, description="Advisory notes that never block"
    )

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == OutcomeStatus.OK


class PipelineSession:
    """Owns the phase stores, artifact cache and coordinator for one pipeline.

    Sessions share nothing, so several can run side by side. Actions on
    different phases may run concurrently; a second action on a phase with
    a request in flight raises ``PipelineError``.
    """

    def __init__(
        self,
        service: CompilerServiceProtocol,
        project_id: ProjectId | None = None,
        *,
        rules_config: RulesConfig | None = None,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
        session_id: SessionId | None = None,
    ) -> None:
        """Initialize a session with every phase Idle.

        Args:
            service: Remote compiler service adapter.
            project_id: Server-side project the session round-trips to.
            rules_config: Rule validation policy.
            log_sink: Optional log sink.
            clock: Optional timestamp provider.
            session_id: Optional fixed session identifier.
        """
        self.session_id = session_id or uuid4()
        self._service = service
        self._project_id = project_id
        self._rules = RuleBook(rules_config)
        self._log_sink = log_sink
        self._clock = clock or _now_timestamp
        self._stores = {phase: PhaseStateStore(phase) for phase in ALL_PHASES}
        self.cache = ArtifactCache()
        self.coordinator = PipelineCoordinator(self._stores, self.cache)

    @property
    def project_id(self) -> ProjectId | None:
        """Server-side project identity, if bound."""
        return self._project_id

    def bind_project(self, project_id: ProjectId | None) -> None:
        """Bind or clear the server-side project identity.

        Args:
            project_id: Project identifier, or None to unbind.
        """
        self._project_id = project_id or None

    def store(self, phase: PhaseName) -> PhaseStateStore:
        """Return the state store for a phase."""
        return self._stores[PhaseName(phase)]

    def state(self, phase: PhaseName) -> PhaseState:
        """Return the current state snapshot for a phase."""
        return self._stores[PhaseName(phase)].state

    def snapshot(self) -> SessionSnapshot:
        """Capture every phase state.

        Returns:
            SessionSnapshot: Point-in-time view of the session.
        """
        return SessionSnapshot(
            session_id=self.session_id,
            project_id=self._project_id,
            phases=[self._stores[phase].state for phase in ALL_PHASES],
        )

    async def configure(
        self, phase: PhaseName, configuration: PhaseConfiguration
    ) -> PhaseState:
        """Replace a phase's in-progress configuration.

        When this drops a submitted snapshot or artifact, every downstream
        phase is invalidated.

        Args:
            phase: Phase to configure.
            configuration: New configuration.

        Returns:
            PhaseState: State after the change.
        """
        phase = PhaseName(phase)
        store = self._stores[phase]
        before = store.state
        dropped = store.set_configuration(configuration)
        if store.state is not before:
            await self._emit_phase(
                phase, PhaseEventSuffix.CONFIGURED, f"Phase {phase} configured"
            )
        if dropped:
            await self._propagate_change(phase)
        return store.state

    async def submit(self, phase: PhaseName) -> ActionOutcome:
        """Validate and submit a phase's configuration.

        A rule violation or a missing project identity ends the action
        before any state change. Service failures move the phase to Error
        and are never retried automatically.

        Args:
            phase: Phase to submit.

        Returns:
            ActionOutcome: Tagged result of the submit.

        Raises:
            PipelineError: If the phase is locked, busy or unconfigured.
        """
        phase = PhaseName(phase)
        self.coordinator.ensure_can_run(phase, PhaseAction.SUBMIT)
        store = self._stores[phase]
        configuration = store.state.configuration
        if configuration is None:
            raise PipelineError(
                PipelineErrorInfo(
                    code=PipelineErrorCode.MISSING_CONFIGURATION,
                    message=f"Phase {phase} has no configuration to submit",
                    details=PipelineErrorDetails(
                        phase=phase, action=PhaseAction.SUBMIT, status=store.status
                    ),
                )
            )
        check = self._rules.validate(phase, configuration)
        if check.violation is not None:
            return ActionOutcome(
                phase=phase,
                action=PhaseAction.SUBMIT,
                status=OutcomeStatus.REJECTED,
                violation=check.violation,
            )
        if self._project_id is None:
            return _missing_identity(phase, PhaseAction.SUBMIT)
        notes = self._advisory_notes(phase, configuration)

        dropped = store.has_output
        token = store.begin_submit()
        await self._emit_phase(
            phase,
            PhaseEventSuffix.SUBMIT_STARTED,
            f"Submitting {phase} configuration",
            generation=token,
        )
        if dropped:
            await self._propagate_change(phase)

        result = await self._service.submit_configuration(
            phase, self._project_id, configuration
        )
        error = _phase_error(result.failure)
        if not store.complete_submit(token, error):
            return await self._stale(phase, PhaseAction.SUBMIT, token)
        if error is not None:
            await self._emit_phase(
                phase,
                PhaseEventSuffix.SUBMIT_FAILED,
                error.message,
                level=LogLevel.ERROR,
                error_code=str(error.code),
            )
            return _failed(phase, PhaseAction.SUBMIT, error, notes)
        await self._emit_phase(
            phase, PhaseEventSuffix.SUBMITTED, f"Phase {phase} submitted"
        )
        return ActionOutcome(
            phase=phase,
            action=PhaseAction.SUBMIT,
            status=OutcomeStatus.OK,
            notes=notes,
        )

    async def generate(self, phase: PhaseName) -> ActionOutcome:
        """Generate a phase's artifact from its submitted configuration.

        The source phase generates locally: its artifact is the submitted
        code. Every other phase asks the remote service.

        Args:
            phase: Phase to generate.

        Returns:
            ActionOutcome: Tagged result of the generate.

        Raises:
            PipelineError: If the phase is busy or has not been submitted.
        """
        phase = PhaseName(phase)
        self.coordinator.ensure_can_run(phase, PhaseAction.GENERATE)
        if self._project_id is None and phase != PhaseName.SOURCE:
            return _missing_identity(phase, PhaseAction.GENERATE)
        store = self._stores[phase]
        snapshot = store.state.submitted_configuration

        dropped = store.state.artifact is not None
        token = store.begin_generate()
        await self._emit_phase(
            phase,
            PhaseEventSuffix.GENERATE_STARTED,
            f"Generating {phase} artifact",
            generation=token,
        )
        if dropped:
            self.cache.evict(phase)
            await self._propagate_change(phase)

        result = await self._generate(phase, snapshot)
        error = _phase_error(result.failure)
        artifact = result.value if error is None else None
        if not store.complete_generate(token, artifact=artifact, error=error):
            return await self._stale(phase, PhaseAction.GENERATE, token)
        if error is not None:
            await self._emit_phase(
                phase,
                PhaseEventSuffix.GENERATE_FAILED,
                error.message,
                level=LogLevel.ERROR,
                error_code=str(error.code),
            )
            return _failed(phase, PhaseAction.GENERATE, error)
        if artifact is not None:
            self.cache.set(phase, artifact, store.state.revision)
        await self._emit_phase(
            phase,
            PhaseEventSuffix.GENERATED,
            f"Phase {phase} generated",
            revision=store.state.revision,
        )
        return ActionOutcome(
            phase=phase, action=PhaseAction.GENERATE, status=OutcomeStatus.OK
        )

    async def confirm_source(self, code: str) -> ActionOutcome:
        """Configure, submit and generate the source phase in one step.

        Args:
            code: Program source text.

        Returns:
            ActionOutcome: The first unsuccessful outcome, or the generate
                outcome on success.
        """
        await self.configure(PhaseName.SOURCE, SourceConfig(code=code))
        submitted = await self.submit(PhaseName.SOURCE)
        if not submitted.ok:
            return submitted
        return await self.generate(PhaseName.SOURCE)

    async def reset_phase(self, phase: PhaseName) -> None:
        """Reset one phase to Idle and invalidate everything after it.

        Args:
            phase: Phase to reset.
        """
        phase = PhaseName(phase)
        store = self._stores[phase]
        store.reset()
        self.cache.evict(phase)
        await self._emit_phase(
            phase, PhaseEventSuffix.INVALIDATED, f"Phase {phase} reset"
        )
        await self._propagate_change(phase)

    async def clear(self) -> None:
        """Reset every phase, drop configurations and mark requests stale."""
        for store in self._stores.values():
            store.reset(clear_configuration=True)
        self.cache.clear()
        await self.emit_log(build_session_cleared_log(self._clock(), self.session_id))

    async def _generate(
        self, phase: PhaseName, snapshot: PhaseConfiguration | None
    ) -> ServiceResult[Artifact]:
        if phase == PhaseName.SOURCE:
            if not isinstance(snapshot, SourceConfig):
                return ServiceResult[Artifact](
                    failure=ServiceFailure(
                        kind=PhaseErrorCode.SERVICE,
                        message="Source phase has no submitted code",
                    )
                )
            return ServiceResult[Artifact](value=SourceCode(code=snapshot.code))
        if self._project_id is None:
            return ServiceResult[Artifact](
                failure=ServiceFailure(
                    kind=PhaseErrorCode.IDENTITY, message=NO_PROJECT_MESSAGE
                )
            )
        return await self._service.generate_artifact(
            phase, self._project_id, snapshot
        )

    def _advisory_notes(
        self, phase: PhaseName, configuration: PhaseConfiguration
    ) -> list[AdvisoryNote]:
        if phase != PhaseName.PARSER or not isinstance(configuration, Grammar):
            return []
        tokens = self.cache.get(PhaseName.LEXER)
        if not isinstance(tokens, TokenSet):
            return []
        return check_terminal_coverage(configuration, tokens)

    async def _propagate_change(self, phase: PhaseName) -> list[PhaseInvalidation]:
        invalidated = self.coordinator.on_upstream_changed(phase)
        for record in invalidated:
            await self.emit_log(
                build_phase_invalidated_log(
                    self._clock(),
                    self.session_id,
                    record.phase,
                    record.upstream_phase,
                    record.previous_status,
                )
            )
        return invalidated

    async def _stale(
        self, phase: PhaseName, action: PhaseAction, token: int
    ) -> ActionOutcome:
        await self.emit_log(
            build_stale_result_log(
                self._clock(),
                self.session_id,
                phase,
                action,
                token,
                self._stores[phase].generation,
            )
        )
        return ActionOutcome(phase=phase, action=action, status=OutcomeStatus.STALE)

    async def _emit_phase(
        self,
        phase: PhaseName,
        suffix: PhaseEventSuffix,
        message: str,
        *,
        level: LogLevel = LogLevel.INFO,
        **data: str | int,
    ) -> None:
        if self._log_sink is None:
            return
        state = self._stores[phase].state
        await self._log_sink.emit_log(
            build_phase_log(
                self._clock(),
                self.session_id,
                phase,
                suffix,
                message,
                data={"status": str(state.status), **data},
                level=level,
            )
        )

    def now(self) -> Timestamp:
        """Return the current timestamp from the session clock."""
        return self._clock()

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward a log entry to the session log sink, if any."""
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(entry)


def _phase_error(failure: ServiceFailure | None) -> PhaseError | None:
    if failure is None:
        return None
    return PhaseError.model_validate(
        {
            "code": failure.kind,
            "message": failure.message,
            "status_code": failure.status_code,
            "details": failure.details,
        },
        strict=False,
    )


def _failed(
    phase: PhaseName,
    action: PhaseAction,
    error: PhaseError,
    notes: list[AdvisoryNote] | None = None,
) -> ActionOutcome:
    return ActionOutcome(
        phase=phase,
        action=action,
        status=_FAILURE_STATUS[PhaseErrorCode(error.code)],
        error=error,
        notes=notes or [],
    )


def _missing_identity(phase: PhaseName, action: PhaseAction) -> ActionOutcome:
    return ActionOutcome(
        phase=phase,
        action=action,
        status=OutcomeStatus.IDENTITY_ERROR,
        error=PhaseError(code=PhaseErrorCode.IDENTITY, message=NO_PROJECT_MESSAGE),
    )


def _now_timestamp() -> Timestamp:
    value = datetime.now(tz=UTC).isoformat()
    return value.replace("+00:00", "Z")
