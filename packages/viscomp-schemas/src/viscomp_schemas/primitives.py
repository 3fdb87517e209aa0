"""Primitive types and enums shared across viscomp schemas."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import Field

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"

type SessionId = UUID
type ProjectId = Annotated[str, Field(min_length=1)]
type SymbolName = str
type Timestamp = Annotated[str, Field(pattern=ISO_8601_PATTERN)]
type EventName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]


class PhaseName(StrEnum):
    """Compiler pipeline phase names."""

    SOURCE = "source"
    LEXER = "lexer"
    PARSER = "parser"
    ANALYSER = "analyser"
    TRANSLATOR = "translator"
    OPTIMISER = "optimiser"


# Canonical chain; each phase depends on every phase before it.
PIPELINE_PHASE_ORDER = [
    PhaseName.SOURCE,
    PhaseName.LEXER,
    PhaseName.PARSER,
    PhaseName.ANALYSER,
    PhaseName.TRANSLATOR,
]

# Branches hang off a single chain phase and sit outside the ordering.
PIPELINE_BRANCHES: dict[PhaseName, PhaseName] = {
    PhaseName.OPTIMISER: PhaseName.SOURCE,
}

ALL_PHASES = [*PIPELINE_PHASE_ORDER, *PIPELINE_BRANCHES]


class PhaseStatus(StrEnum):
    """Per-phase lifecycle status values."""

    IDLE = "idle"
    CONFIGURING = "configuring"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    GENERATING = "generating"
    GENERATED = "generated"
    ERROR = "error"


# Statuses in which a submitted configuration snapshot may exist.
SNAPSHOT_STATUSES = frozenset({
    PhaseStatus.SUBMITTED,
    PhaseStatus.GENERATING,
    PhaseStatus.GENERATED,
    PhaseStatus.ERROR,
})

IN_FLIGHT_STATUSES = frozenset({PhaseStatus.SUBMITTING, PhaseStatus.GENERATING})


class PhaseAction(StrEnum):
    """Actions a user can run against a phase."""

    SUBMIT = "submit"
    GENERATE = "generate"


class PhaseErrorCode(StrEnum):
    """Categories of failures recorded on a phase."""

    TRANSPORT = "transport"
    IDENTITY = "identity"
    SERVICE = "service"


class TargetLanguage(StrEnum):
    """Languages accepted by the optimiser."""

    GO = "Go"
    JAVA = "Java"
    PYTHON = "Python"


class OptimisationTechnique(StrEnum):
    """Optimisation passes offered by the remote optimiser."""

    CONSTANT_FOLDING = "constant_folding"
    DEAD_CODE = "dead_code"
    LOOP_UNROLLING = "loop_unrolling"


class GrammarLinkPolicy(StrEnum):
    """How strictly analyser grammar links are checked."""

    PERMISSIVE = "permissive"
    STRICT = "strict"


class LogLevel(StrEnum):
    """Log level values for JSONL logs."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"
