"""Latest generated artifact per phase."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from viscomp_schemas.artifacts import PHASE_ARTIFACT_KIND, Artifact
from viscomp_schemas.primitives import PhaseName


class CacheEntry(BaseModel):
    """Cached artifact with the revision it was generated at."""

    model_config = ConfigDict(frozen=True)

    phase: PhaseName = Field(description="Phase that produced the artifact")
    artifact: Artifact = Field(description="Generated artifact")
    revision: int = Field(ge=0, description="Phase revision of the artifact")


class ArtifactCache:
    """Holds the most recent successfully generated artifact per phase.

    Downstream phases read it for context, for example the parser reads the
    lexer's token set to check terminal coverage.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._entries: dict[PhaseName, CacheEntry] = {}

    def get(self, phase: PhaseName) -> Artifact | None:
        """Return the cached artifact for a phase.

        Args:
            phase: Phase to look up.

        Returns:
            Artifact | None: Cached artifact, if any.
        """
        entry = self._entries.get(PhaseName(phase))
        return entry.artifact if entry is not None else None

    def entry(self, phase: PhaseName) -> CacheEntry | None:
        """Return the cache entry (artifact and revision) for a phase."""
        return self._entries.get(PhaseName(phase))

    def set(self, phase: PhaseName, artifact: Artifact, revision: int = 0) -> None:
        """Store the latest artifact for a phase.

        Args:
            phase: Phase that produced the artifact.
            artifact: Artifact to cache.
            revision: Phase revision at generation time.

        Raises:
            ValueError: If the artifact kind does not belong to the phase.
        """
        phase = PhaseName(phase)
        expected = PHASE_ARTIFACT_KIND[phase]
        if artifact.kind != expected:
            raise ValueError(
                f"{phase} artifacts must be {expected}, got {artifact.kind}"
            )
        self._entries[phase] = CacheEntry(
            phase=phase, artifact=artifact, revision=revision
        )

    def evict(self, phase: PhaseName) -> bool:
        """Drop the cached artifact for a phase.

        Returns:
            bool: True if an entry was removed.
        """
        return self._entries.pop(PhaseName(phase), None) is not None

    def clear(self) -> None:
        """Drop every cached artifact."""
        self._entries.clear()

    def phases(self) -> list[PhaseName]:
        """Return phases with a cached artifact."""
        return list(self._entries)
