"""Saved project contents used to restore a session."""

from __future__ import annotations

from pydantic import Field

from viscomp_schemas.artifacts import Artifact
from viscomp_schemas.base import BaseSchema
from viscomp_schemas.phases import PhaseConfiguration
from viscomp_schemas.primitives import PhaseName


class SavedPhase(BaseSchema):
    """What the service stored for one phase."""

    configuration: PhaseConfiguration | None = Field(
        None, description="Last configuration the service accepted"
    )
    artifact: Artifact | None = Field(None, description="Last generated artifact")


class SavedProject(BaseSchema):
    """Per-phase contents of a saved server-side project."""

    name: str | None = Field(None, description="Project name")
    source: SavedPhase | None = Field(None, description="Saved source code")
    lexer: SavedPhase | None = Field(None, description="Saved lexer state")
    parser: SavedPhase | None = Field(None, description="Saved parser state")
    analyser: SavedPhase | None = Field(None, description="Saved analyser state")
    translator: SavedPhase | None = Field(None, description="Saved translator state")
    optimiser: SavedPhase | None = Field(None, description="Saved optimiser state")

    def get(self, phase: PhaseName) -> SavedPhase | None:
        """Return the saved state for a phase.

        Args:
            phase: Phase to look up.

        Returns:
            SavedPhase | None: Saved state, if any.
        """
        return getattr(self, PhaseName(phase).value)
