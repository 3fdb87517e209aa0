"""Phase rule validation framework."""

from viscomp_core.rules.advisory import AdvisoryNote, check_terminal_coverage
from viscomp_core.rules.protocol import (
    RuleCheckResult,
    RuleValidator,
    Violation,
    ViolationCode,
)
from viscomp_core.rules.registry import (
    RuleBook,
    RuleRegistry,
    get_default_registry,
    validate_configuration,
)

__all__ = [
    "AdvisoryNote",
    "RuleBook",
    "RuleCheckResult",
    "RuleRegistry",
    "RuleValidator",
    "Violation",
    "ViolationCode",
    "check_terminal_coverage",
    "get_default_registry",
    "validate_configuration",
]
