"""Unit tests for phase state snapshot invariants."""

from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError

from tests.helpers.pipeline import lexer_config, sample_artifacts, source_config
from viscomp_schemas.artifacts import SourceCode, Token, TranslatedCode
from viscomp_schemas.phases import Grammar, SourceConfig, TranslationRule
from viscomp_schemas.pipeline import PhaseError, PhaseState, SessionSnapshot
from viscomp_schemas.primitives import (
    PhaseAction,
    PhaseErrorCode,
    PhaseName,
    PhaseStatus,
)
from viscomp_schemas.validation import validate_session_snapshot


@pytest.mark.unit
def test_idle_state_defaults() -> None:
    """A fresh phase is Idle with nothing attached."""
    state = PhaseState(phase=PhaseName.LEXER)
    assert state.status == PhaseStatus.IDLE
    assert state.configuration is None
    assert state.generation == 0
    assert state.revision == 0


@pytest.mark.unit
def test_generated_state_requires_artifact() -> None:
    """Generated without an artifact is rejected."""
    with pytest.raises(ValidationError, match="requires an artifact"):
        PhaseState(
            phase=PhaseName.LEXER,
            status=PhaseStatus.GENERATED,
            configuration=lexer_config(),
            submitted_configuration=lexer_config(),
        )


@pytest.mark.unit
def test_artifact_outside_generated_is_rejected() -> None:
    """Only Generated phases may carry an artifact."""
    with pytest.raises(ValidationError, match="only allowed"):
        PhaseState(
            phase=PhaseName.LEXER,
            status=PhaseStatus.SUBMITTED,
            configuration=lexer_config(),
            submitted_configuration=lexer_config(),
            artifact=sample_artifacts()[PhaseName.LEXER],
        )


@pytest.mark.unit
def test_artifact_kind_must_match_phase() -> None:
    """A lexer phase cannot hold a syntax tree."""
    with pytest.raises(ValidationError, match="artifact must be token_set"):
        PhaseState(
            phase=PhaseName.LEXER,
            status=PhaseStatus.GENERATED,
            configuration=lexer_config(),
            submitted_configuration=lexer_config(),
            artifact=sample_artifacts()[PhaseName.PARSER],
        )


@pytest.mark.unit
def test_configuration_kind_must_match_phase() -> None:
    """A lexer phase cannot hold a source configuration."""
    with pytest.raises(ValidationError, match="configuration must be lexer"):
        PhaseState(phase=PhaseName.LEXER, configuration=source_config())


@pytest.mark.unit
def test_snapshot_not_allowed_while_configuring() -> None:
    """Editing drops the submitted snapshot."""
    with pytest.raises(ValidationError, match="submitted_configuration"):
        PhaseState(
            phase=PhaseName.SOURCE,
            status=PhaseStatus.CONFIGURING,
            configuration=source_config(),
            submitted_configuration=source_config(),
        )


@pytest.mark.unit
def test_submitted_requires_snapshot() -> None:
    """Submitted phases must record what was accepted."""
    with pytest.raises(ValidationError, match="requires a snapshot"):
        PhaseState(
            phase=PhaseName.SOURCE,
            status=PhaseStatus.SUBMITTED,
            configuration=source_config(),
        )


@pytest.mark.unit
def test_error_status_and_detail_go_together() -> None:
    """Error detail appears exactly when the status is Error."""
    error = PhaseError(code=PhaseErrorCode.TRANSPORT, message="Connection refused")
    with pytest.raises(ValidationError, match="error detail"):
        PhaseState(phase=PhaseName.SOURCE, status=PhaseStatus.ERROR)
    with pytest.raises(ValidationError, match="error detail"):
        PhaseState(
            phase=PhaseName.SOURCE,
            status=PhaseStatus.CONFIGURING,
            error=error,
            error_origin=PhaseAction.SUBMIT,
        )
    with pytest.raises(ValidationError, match="error_origin"):
        PhaseState(phase=PhaseName.SOURCE, status=PhaseStatus.ERROR, error=error)

    state = PhaseState(
        phase=PhaseName.SOURCE,
        status=PhaseStatus.ERROR,
        configuration=source_config(),
        error=error,
        error_origin=PhaseAction.SUBMIT,
    )
    assert state.error_origin == PhaseAction.SUBMIT


@pytest.mark.unit
def test_session_snapshot_rejects_duplicate_phases() -> None:
    """Each phase appears at most once in a snapshot."""
    with pytest.raises(ValidationError, match="duplicates"):
        SessionSnapshot(
            session_id=uuid4(),
            phases=[PhaseState(phase=PhaseName.SOURCE)] * 2,
        )


@pytest.mark.unit
def test_session_snapshot_round_trips_through_json() -> None:
    """Snapshots serialise and validate back from plain JSON."""
    state = PhaseState(
        phase=PhaseName.SOURCE,
        status=PhaseStatus.GENERATED,
        configuration=source_config(),
        submitted_configuration=source_config(),
        artifact=SourceCode(code="int x = 5;"),
        revision=1,
    )
    snapshot = SessionSnapshot(session_id=uuid4(), project_id="demo", phases=[state])
    restored = validate_session_snapshot(snapshot.model_dump(mode="json"))
    assert restored == snapshot
    assert restored.get(PhaseName.SOURCE) == state
    assert restored.get(PhaseName.LEXER) is None


@pytest.mark.unit
def test_code_and_artifacts_keep_whitespace() -> None:
    """Indentation and whitespace tokens survive validation and JSON."""
    lines = ["def f():", "    return 1", ""]
    translated = TranslatedCode(lines=lines)
    rule = TranslationRule(sequence=["KEYWORD"], translation=["    pass"])
    source = SourceConfig(code="  int x = 5;\n")
    token = Token(type="SPACE", value=" ")
    assert translated.lines == lines
    assert rule.translation == ["    pass"]
    assert source.code == "  int x = 5;\n"
    assert token.value == " "
    assert TranslatedCode.model_validate_json(translated.model_dump_json()) == (
        translated
    )


@pytest.mark.unit
def test_grammar_symbols_are_trimmed() -> None:
    """Grammar symbols are identifiers and lose surrounding spaces."""
    grammar = Grammar(variables=[" S "], terminals=["a "], start=" S")
    assert grammar.variables == ["S"]
    assert grammar.terminals == ["a"]
    assert grammar.start == "S"
