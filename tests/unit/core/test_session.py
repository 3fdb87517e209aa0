"""Unit tests for the pipeline session composition root."""

from __future__ import annotations

import asyncio

import pytest

from tests.helpers.pipeline import (
    CONFIG_BUILDERS,
    FIXED_TIMESTAMP,
    RecordingLogSink,
    StubCompilerService,
    failure,
    fixed_clock,
)
from viscomp_core.ports.pipeline import PipelineError, PipelineErrorCode
from viscomp_core.rules import ViolationCode
from viscomp_core.session import NO_PROJECT_MESSAGE, OutcomeStatus, PipelineSession
from viscomp_schemas.artifacts import SourceCode, Token, TokenSet
from viscomp_schemas.phases import Grammar, LexerConfig, LexerRule
from viscomp_schemas.primitives import (
    PhaseAction,
    PhaseErrorCode,
    PhaseName,
    PhaseStatus,
)

CHAIN = [
    PhaseName.SOURCE,
    PhaseName.LEXER,
    PhaseName.PARSER,
    PhaseName.ANALYSER,
    PhaseName.TRANSLATOR,
]


async def _run(session: PipelineSession, *phases: PhaseName) -> None:
    for phase in phases:
        await session.configure(phase, CONFIG_BUILDERS[phase]())
        submitted = await session.submit(phase)
        assert submitted.ok, submitted
        generated = await session.generate(phase)
        assert generated.ok, generated


@pytest.mark.unit
@pytest.mark.asyncio
async def test_confirm_source_generates_locally(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """The source artifact is the submitted code; only submit hits the service."""
    outcome = await session.confirm_source("int x = 5;")
    assert outcome.ok
    state = session.state(PhaseName.SOURCE)
    assert state.status == PhaseStatus.GENERATED
    assert state.artifact == SourceCode(code="int x = 5;")
    assert service.calls == [("submit", PhaseName.SOURCE)]
    assert session.cache.get(PhaseName.SOURCE) == SourceCode(code="int x = 5;")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_full_chain_reaches_generated(session: PipelineSession) -> None:
    """Every chain phase and the optimiser branch can be generated in order."""
    await _run(session, *CHAIN, PhaseName.OPTIMISER)
    snapshot = session.snapshot()
    assert snapshot.project_id == "demo"
    assert all(state.status == PhaseStatus.GENERATED for state in snapshot.phases)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_phase_events_are_logged(
    session: PipelineSession, log_sink: RecordingLogSink
) -> None:
    """Each action emits phase-prefixed lifecycle events."""
    await _run(session, PhaseName.SOURCE)
    assert log_sink.events == [
        "source_configured",
        "source_submit_started",
        "source_submitted",
        "source_generate_started",
        "source_generated",
    ]
    entry = log_sink.entries[-1]
    assert entry.timestamp == FIXED_TIMESTAMP
    assert entry.session_id == session.session_id
    assert entry.data is not None
    assert entry.data["status"] == "generated"
    assert entry.data["revision"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rule_violation_rejects_without_transition(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """An invalid grammar never reaches the service."""
    await _run(session, PhaseName.SOURCE, PhaseName.LEXER)
    await session.configure(PhaseName.PARSER, Grammar(variables=["S"], start="S"))
    outcome = await session.submit(PhaseName.PARSER)
    assert outcome.status == OutcomeStatus.REJECTED
    assert outcome.violation is not None
    assert outcome.violation.code == ViolationCode.EMPTY_GRAMMAR
    assert session.state(PhaseName.PARSER).status == PhaseStatus.CONFIGURING
    assert ("submit", PhaseName.PARSER) not in service.calls


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_project_is_identity_error(
    service: StubCompilerService,
) -> None:
    """Without a project identity, submit fails before any state change."""
    session = PipelineSession(service, clock=fixed_clock)
    await session.configure(PhaseName.SOURCE, CONFIG_BUILDERS[PhaseName.SOURCE]())
    outcome = await session.submit(PhaseName.SOURCE)
    assert outcome.status == OutcomeStatus.IDENTITY_ERROR
    assert outcome.error is not None
    assert outcome.error.message == NO_PROJECT_MESSAGE
    assert session.state(PhaseName.SOURCE).status == PhaseStatus.CONFIGURING
    assert service.calls == []

    session.bind_project("demo")
    assert (await session.submit(PhaseName.SOURCE)).ok


@pytest.mark.unit
@pytest.mark.asyncio
async def test_locked_phase_raises(session: PipelineSession) -> None:
    """Submitting before the upstream phase is generated is refused."""
    await session.configure(PhaseName.LEXER, CONFIG_BUILDERS[PhaseName.LEXER]())
    with pytest.raises(PipelineError) as exc_info:
        await session.submit(PhaseName.LEXER)
    assert exc_info.value.info.code == PipelineErrorCode.PHASE_LOCKED
    assert session.state(PhaseName.LEXER).status == PhaseStatus.CONFIGURING


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transport_failure_then_retry_succeeds(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """A transport error is recorded and a manual retry recovers."""
    await _run(session, PhaseName.SOURCE, PhaseName.LEXER, PhaseName.PARSER)
    await session.configure(
        PhaseName.ANALYSER, CONFIG_BUILDERS[PhaseName.ANALYSER]()
    )
    service.fail_next("submit", PhaseName.ANALYSER, failure())

    failed = await session.submit(PhaseName.ANALYSER)
    assert failed.status == OutcomeStatus.TRANSPORT_ERROR
    state = session.state(PhaseName.ANALYSER)
    assert state.status == PhaseStatus.ERROR
    assert state.error is not None
    assert state.error.code == PhaseErrorCode.TRANSPORT

    retried = await session.submit(PhaseName.ANALYSER)
    assert retried.ok
    state = session.state(PhaseName.ANALYSER)
    assert state.status == PhaseStatus.SUBMITTED
    assert state.error is None
    assert state.submitted_configuration == CONFIG_BUILDERS[PhaseName.ANALYSER]()
    assert service.calls.count(("submit", PhaseName.ANALYSER)) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_failure_logs_and_allows_regenerate(
    session: PipelineSession,
    service: StubCompilerService,
    log_sink: RecordingLogSink,
) -> None:
    """A failed generate keeps the snapshot and can be retried."""
    await _run(session, PhaseName.SOURCE)
    await session.configure(PhaseName.LEXER, CONFIG_BUILDERS[PhaseName.LEXER]())
    assert (await session.submit(PhaseName.LEXER)).ok
    service.fail_next(
        "generate",
        PhaseName.LEXER,
        failure(PhaseErrorCode.SERVICE, "Lexing failed"),
    )
    failed = await session.generate(PhaseName.LEXER)
    assert failed.status == OutcomeStatus.SERVICE_ERROR
    assert "lexer_generate_failed" in log_sink.events
    assert (await session.generate(PhaseName.LEXER)).ok


@pytest.mark.unit
@pytest.mark.asyncio
async def test_editing_lexer_resets_downstream(
    session: PipelineSession, log_sink: RecordingLogSink
) -> None:
    """Editing a generated lexer resets every chain phase after it."""
    await _run(session, *CHAIN)
    edited = LexerConfig(rules=[LexerRule(type="INT", regex="[0-9]+")])
    await session.configure(PhaseName.LEXER, edited)

    assert session.state(PhaseName.LEXER).status == PhaseStatus.CONFIGURING
    for phase in (PhaseName.PARSER, PhaseName.ANALYSER, PhaseName.TRANSLATOR):
        state = session.state(phase)
        assert state.status == PhaseStatus.IDLE
        assert state.artifact is None
        assert state.configuration == CONFIG_BUILDERS[phase]()
        assert session.cache.get(phase) is None
    assert session.state(PhaseName.SOURCE).status == PhaseStatus.GENERATED
    assert not session.coordinator.is_unlocked(PhaseName.PARSER)
    assert log_sink.events[-3:] == [
        "parser_invalidated",
        "analyser_invalidated",
        "translator_invalidated",
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_source_change_invalidates_optimiser_branch(
    session: PipelineSession,
) -> None:
    """The optimiser depends only on the source phase."""
    await _run(session, PhaseName.SOURCE, PhaseName.OPTIMISER)
    await session.confirm_source("int y = 7;")
    assert session.state(PhaseName.OPTIMISER).status == PhaseStatus.IDLE
    assert session.state(PhaseName.SOURCE).status == PhaseStatus.GENERATED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_response_after_edit_is_discarded(
    session: PipelineSession,
    service: StubCompilerService,
    log_sink: RecordingLogSink,
) -> None:
    """A generate response that lands after an edit is stale."""
    await _run(session, PhaseName.SOURCE)
    await session.configure(PhaseName.LEXER, CONFIG_BUILDERS[PhaseName.LEXER]())
    assert (await session.submit(PhaseName.LEXER)).ok
    gate = service.hold("generate", PhaseName.LEXER)

    task = asyncio.create_task(session.generate(PhaseName.LEXER))
    while ("generate", PhaseName.LEXER) not in service.calls:
        await asyncio.sleep(0)
    assert session.state(PhaseName.LEXER).status == PhaseStatus.GENERATING

    edited = LexerConfig(rules=[LexerRule(type="INT", regex="[0-9]+")])
    await session.configure(PhaseName.LEXER, edited)
    gate.set()
    outcome = await task

    assert outcome.status == OutcomeStatus.STALE
    state = session.state(PhaseName.LEXER)
    assert state.status == PhaseStatus.CONFIGURING
    assert state.artifact is None
    assert state.configuration == edited
    assert session.cache.get(PhaseName.LEXER) is None
    assert "lexer_stale_result_discarded" in log_sink.events


@pytest.mark.unit
@pytest.mark.asyncio
async def test_clear_during_generate_discards_response(
    session: PipelineSession,
    service: StubCompilerService,
    log_sink: RecordingLogSink,
) -> None:
    """Clearing the pipeline makes an outstanding generate stale."""
    await _run(session, PhaseName.SOURCE)
    await session.configure(PhaseName.LEXER, CONFIG_BUILDERS[PhaseName.LEXER]())
    assert (await session.submit(PhaseName.LEXER)).ok
    gate = service.hold("generate", PhaseName.LEXER)

    task = asyncio.create_task(session.generate(PhaseName.LEXER))
    while ("generate", PhaseName.LEXER) not in service.calls:
        await asyncio.sleep(0)
    await session.clear()
    gate.set()
    outcome = await task

    assert outcome.status == OutcomeStatus.STALE
    state = session.state(PhaseName.LEXER)
    assert state.status == PhaseStatus.IDLE
    assert state.configuration is None
    assert state.artifact is None
    assert all(session.cache.get(phase) is None for phase in PhaseName)
    assert "lexer_stale_result_discarded" in log_sink.events


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reset_during_submit_discards_response(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """Resetting a phase makes its outstanding submit stale."""
    await _run(session, PhaseName.SOURCE)
    await session.configure(PhaseName.LEXER, CONFIG_BUILDERS[PhaseName.LEXER]())
    gate = service.hold("submit", PhaseName.LEXER)

    task = asyncio.create_task(session.submit(PhaseName.LEXER))
    while ("submit", PhaseName.LEXER) not in service.calls:
        await asyncio.sleep(0)
    await session.reset_phase(PhaseName.LEXER)
    gate.set()
    outcome = await task

    assert outcome.status == OutcomeStatus.STALE
    state = session.state(PhaseName.LEXER)
    assert state.status == PhaseStatus.IDLE
    assert state.submitted_configuration is None
    assert session.cache.get(PhaseName.LEXER) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upstream_reset_during_generate_discards_response(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """Resetting an upstream phase invalidates an outstanding generate."""
    await _run(session, PhaseName.SOURCE)
    await session.configure(PhaseName.LEXER, CONFIG_BUILDERS[PhaseName.LEXER]())
    assert (await session.submit(PhaseName.LEXER)).ok
    gate = service.hold("generate", PhaseName.LEXER)

    task = asyncio.create_task(session.generate(PhaseName.LEXER))
    while ("generate", PhaseName.LEXER) not in service.calls:
        await asyncio.sleep(0)
    await session.reset_phase(PhaseName.SOURCE)
    gate.set()
    outcome = await task

    assert outcome.status == OutcomeStatus.STALE
    assert session.state(PhaseName.LEXER).status == PhaseStatus.IDLE
    assert session.cache.get(PhaseName.LEXER) is None
    assert session.cache.get(PhaseName.SOURCE) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_action_while_in_flight_is_rejected(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """Only one request per phase may be outstanding."""
    await session.configure(PhaseName.SOURCE, CONFIG_BUILDERS[PhaseName.SOURCE]())
    gate = service.hold("submit", PhaseName.SOURCE)
    task = asyncio.create_task(session.submit(PhaseName.SOURCE))
    while ("submit", PhaseName.SOURCE) not in service.calls:
        await asyncio.sleep(0)

    with pytest.raises(PipelineError) as exc_info:
        await session.submit(PhaseName.SOURCE)
    assert exc_info.value.info.code == PipelineErrorCode.REQUEST_IN_FLIGHT

    gate.set()
    assert (await task).ok


@pytest.mark.unit
@pytest.mark.asyncio
async def test_parallel_actions_on_different_phases(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """Actions on independent phases may overlap."""
    await _run(session, PhaseName.SOURCE)
    await session.configure(PhaseName.LEXER, CONFIG_BUILDERS[PhaseName.LEXER]())
    await session.configure(
        PhaseName.OPTIMISER, CONFIG_BUILDERS[PhaseName.OPTIMISER]()
    )
    lexer, optimiser = await asyncio.gather(
        session.submit(PhaseName.LEXER), session.submit(PhaseName.OPTIMISER)
    )
    assert lexer.ok
    assert optimiser.ok


@pytest.mark.unit
@pytest.mark.asyncio
async def test_parser_submit_carries_terminal_notes(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """Terminals the lexer never produced come back as advisory notes."""
    service.artifacts[PhaseName.LEXER] = TokenSet(
        tokens=[Token(type="KEYWORD", value="int")]
    )
    await _run(session, PhaseName.SOURCE, PhaseName.LEXER)
    await session.configure(PhaseName.PARSER, CONFIG_BUILDERS[PhaseName.PARSER]())
    outcome = await session.submit(PhaseName.PARSER)
    assert outcome.ok
    assert [note.symbol for note in outcome.notes] == [
        "IDENTIFIER",
        "ASSIGNMENT",
        "INTEGER",
        "SEPARATOR",
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_regenerate_invalidates_downstream(session: PipelineSession) -> None:
    """Generating again replaces the artifact and resets dependants."""
    await _run(session, PhaseName.SOURCE, PhaseName.LEXER, PhaseName.PARSER)
    outcome = await session.generate(PhaseName.LEXER)
    assert outcome.ok
    assert session.state(PhaseName.LEXER).revision == 2
    assert session.state(PhaseName.PARSER).status == PhaseStatus.IDLE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reset_phase_invalidates_downstream(
    session: PipelineSession, log_sink: RecordingLogSink
) -> None:
    """Resetting a phase returns it and its dependants to Idle."""
    await _run(session, PhaseName.SOURCE, PhaseName.LEXER)
    await session.reset_phase(PhaseName.SOURCE)
    assert session.state(PhaseName.SOURCE).status == PhaseStatus.IDLE
    assert session.state(PhaseName.LEXER).status == PhaseStatus.IDLE
    assert "source_invalidated" in log_sink.events
    assert "lexer_invalidated" in log_sink.events


@pytest.mark.unit
@pytest.mark.asyncio
async def test_clear_drops_everything(
    session: PipelineSession, log_sink: RecordingLogSink
) -> None:
    """Clearing resets every phase and drops configurations."""
    await _run(session, PhaseName.SOURCE, PhaseName.LEXER)
    await session.clear()
    for state in session.snapshot().phases:
        assert state.status == PhaseStatus.IDLE
        assert state.configuration is None
    assert session.cache.phases() == []
    assert log_sink.events[-1] == "session_cleared"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_before_submit_is_invalid(session: PipelineSession) -> None:
    """Generate needs a submitted snapshot."""
    await session.configure(PhaseName.SOURCE, CONFIG_BUILDERS[PhaseName.SOURCE]())
    with pytest.raises(PipelineError) as exc_info:
        await session.generate(PhaseName.SOURCE)
    assert exc_info.value.info.code == PipelineErrorCode.INVALID_STATE
    assert exc_info.value.info.details is not None
    assert exc_info.value.info.details.action == PhaseAction.GENERATE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_submit_without_configuration_is_rejected(
    session: PipelineSession, service: StubCompilerService
) -> None:
    """An unconfigured phase raises instead of reaching the service."""
    with pytest.raises(PipelineError) as exc_info:
        await session.submit(PhaseName.SOURCE)
    info = exc_info.value.info
    assert info.code == PipelineErrorCode.MISSING_CONFIGURATION
    assert info.details is not None
    assert info.details.phase == PhaseName.SOURCE
    assert service.calls == []
    assert session.state(PhaseName.SOURCE).status == PhaseStatus.IDLE
