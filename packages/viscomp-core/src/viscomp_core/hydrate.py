"""Restore a pipeline session from a saved project."""

from __future__ import annotations

from viscomp_core.ports.pipeline import build_session_hydrated_log
from viscomp_core.session import PipelineSession
from viscomp_schemas.pipeline import PhaseState
from viscomp_schemas.primitives import ALL_PHASES, PhaseName, PhaseStatus
from viscomp_schemas.project import SavedProject


async def hydrate_session(
    session: PipelineSession, project: SavedProject
) -> list[PhaseName]:
    """Rebuild every phase state from a saved project.

    The session is cleared first. Phases are restored in pipeline order so
    unlock state is known when each one is reached: a saved artifact makes
    the phase Generated, a saved configuration alone makes it Submitted,
    and a phase whose upstream is not Generated keeps only its
    configuration and is left Configuring.

    Args:
        session: Session to restore into.
        project: Saved project contents.

    Returns:
        list[PhaseName]: Phases that received state.
    """
    await session.clear()
    restored: list[PhaseName] = []
    for phase in ALL_PHASES:
        saved = project.get(phase)
        if saved is None or saved.configuration is None:
            continue
        store = session.store(phase)
        if not session.coordinator.is_unlocked(phase):
            state = PhaseState(
                phase=phase,
                status=PhaseStatus.CONFIGURING,
                configuration=saved.configuration,
            )
        elif saved.artifact is not None:
            state = PhaseState(
                phase=phase,
                status=PhaseStatus.GENERATED,
                configuration=saved.configuration,
                submitted_configuration=saved.configuration,
                artifact=saved.artifact,
                revision=1,
            )
        else:
            state = PhaseState(
                phase=phase,
                status=PhaseStatus.SUBMITTED,
                configuration=saved.configuration,
                submitted_configuration=saved.configuration,
            )
        store.restore(state)
        if saved.artifact is not None and store.status == PhaseStatus.GENERATED:
            session.cache.set(phase, saved.artifact, store.state.revision)
        restored.append(phase)
    await session.emit_log(
        build_session_hydrated_log(session.now(), session.session_id, restored)
    )
    return restored
