"""Common pytest configuration."""

from __future__ import annotations

import pytest

from tests.helpers.pipeline import (
    PROJECT,
    RecordingLogSink,
    StubCompilerService,
    fixed_clock,
)
from viscomp_core.session import PipelineSession
from viscomp_io.settings import get_settings


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host VISCOMP_* variables and cached settings out of tests."""
    for name in ("VISCOMP_API_URL", "VISCOMP_API_TOKEN", "VISCOMP_PROJECT"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()


@pytest.fixture
def service() -> StubCompilerService:
    """Scriptable in-memory compiler service.

    Returns:
        StubCompilerService: Fresh stub.
    """
    return StubCompilerService()


@pytest.fixture
def log_sink() -> RecordingLogSink:
    """In-memory log sink.

    Returns:
        RecordingLogSink: Fresh sink.
    """
    return RecordingLogSink()


@pytest.fixture
def session(
    service: StubCompilerService, log_sink: RecordingLogSink
) -> PipelineSession:
    """Session bound to the demo project with a fixed clock.

    Returns:
        PipelineSession: Fresh session with every phase Idle.
    """
    return PipelineSession(
        service, PROJECT, log_sink=log_sink, clock=fixed_clock
    )
