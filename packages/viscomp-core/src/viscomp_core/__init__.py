"""viscomp-core: pipeline state and rule validation for viscomp."""

from viscomp_core.cache import ArtifactCache, CacheEntry
from viscomp_core.coordinator import (
    PhaseInvalidation,
    PipelineCoordinator,
    downstream_phases,
    upstream_phases,
)
from viscomp_core.hydrate import hydrate_session
from viscomp_core.ports import (
    CompilerServiceProtocol,
    LogSinkProtocol,
    PipelineError,
    PipelineErrorCode,
    PipelineErrorDetails,
    PipelineErrorInfo,
    ServiceAck,
    ServiceFailure,
    ServiceResult,
)
from viscomp_core.rules import (
    AdvisoryNote,
    RuleBook,
    RuleCheckResult,
    Violation,
    ViolationCode,
    check_terminal_coverage,
    validate_configuration,
)
from viscomp_core.session import ActionOutcome, OutcomeStatus, PipelineSession
from viscomp_core.store import PhaseStateStore
from viscomp_core.version import VERSION

__version__ = "0.1.0"

__all__ = [
    "VERSION",
    "ActionOutcome",
    "AdvisoryNote",
    "ArtifactCache",
    "CacheEntry",
    "CompilerServiceProtocol",
    "LogSinkProtocol",
    "OutcomeStatus",
    "PhaseInvalidation",
    "PhaseStateStore",
    "PipelineCoordinator",
    "PipelineError",
    "PipelineErrorCode",
    "PipelineErrorDetails",
    "PipelineErrorInfo",
    "PipelineSession",
    "RuleBook",
    "RuleCheckResult",
    "ServiceAck",
    "ServiceFailure",
    "ServiceResult",
    "Violation",
    "ViolationCode",
    "check_terminal_coverage",
    "downstream_phases",
    "hydrate_session",
    "upstream_phases",
    "validate_configuration",
]
