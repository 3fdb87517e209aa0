"""Validation entrypoints for raw configuration and artifact payloads."""

from __future__ import annotations

from pydantic import TypeAdapter

from viscomp_schemas.artifacts import Artifact
from viscomp_schemas.config import ProjectFile, SessionConfig
from viscomp_schemas.phases import (
    AnalyserRuleSet,
    Grammar,
    LexerConfig,
    OptimiserConfig,
    PhaseConfiguration,
    SourceConfig,
    TranslatorRuleSet,
)
from viscomp_schemas.pipeline import SessionSnapshot
from viscomp_schemas.primitives import JsonValue, PhaseName

_CONFIGURATION_MODELS: dict[
    PhaseName,
    type[SourceConfig]
    | type[LexerConfig]
    | type[Grammar]
    | type[AnalyserRuleSet]
    | type[TranslatorRuleSet]
    | type[OptimiserConfig],
] = {
    PhaseName.SOURCE: SourceConfig,
    PhaseName.LEXER: LexerConfig,
    PhaseName.PARSER: Grammar,
    PhaseName.ANALYSER: AnalyserRuleSet,
    PhaseName.TRANSLATOR: TranslatorRuleSet,
    PhaseName.OPTIMISER: OptimiserConfig,
}

_ARTIFACT_ADAPTER: TypeAdapter[Artifact] = TypeAdapter(Artifact)


def validate_session_config(payload: dict[str, JsonValue]) -> SessionConfig:
    """Validate session configuration payload.

    Args:
        payload: Raw session configuration payload.

    Returns:
        SessionConfig: Validated session configuration.
    """
    return SessionConfig.model_validate(payload, strict=False)


def validate_project_file(payload: dict[str, JsonValue]) -> ProjectFile:
    """Validate a project file payload.

    Args:
        payload: Raw project file payload (parsed TOML).

    Returns:
        ProjectFile: Validated project file.
    """
    return ProjectFile.model_validate(payload, strict=False)


def validate_phase_configuration(
    phase: PhaseName, payload: dict[str, JsonValue]
) -> PhaseConfiguration:
    """Validate a configuration payload for a specific phase.

    Args:
        phase: Phase the configuration belongs to.
        payload: Raw configuration payload; ``kind`` may be omitted.

    Returns:
        PhaseConfiguration: Validated configuration model.
    """
    model = _CONFIGURATION_MODELS[PhaseName(phase)]
    return model.model_validate(payload, strict=False)


def validate_artifact(payload: dict[str, JsonValue]) -> Artifact:
    """Validate a serialized artifact payload.

    Args:
        payload: Raw artifact payload including its ``kind``.

    Returns:
        Artifact: Validated artifact model.
    """
    return _ARTIFACT_ADAPTER.validate_python(payload, strict=False)


def validate_session_snapshot(payload: dict[str, JsonValue]) -> SessionSnapshot:
    """Validate a serialized session snapshot.

    Args:
        payload: Raw snapshot payload.

    Returns:
        SessionSnapshot: Validated snapshot.
    """
    return SessionSnapshot.model_validate(payload, strict=False)
