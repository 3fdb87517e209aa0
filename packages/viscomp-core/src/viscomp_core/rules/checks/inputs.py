"""Presence checks for free-text phase inputs (source and optimiser)."""

from __future__ import annotations

from viscomp_core.rules.protocol import RuleCheckResult, Violation, ViolationCode
from viscomp_schemas.phases import OptimiserConfig, PhaseConfiguration, SourceConfig
from viscomp_schemas.primitives import JsonValue, PhaseName


def validate_source_code(config: SourceConfig) -> RuleCheckResult:
    """Reject empty source code.

    Args:
        config: Source configuration to validate.

    Returns:
        RuleCheckResult: Acceptance or an empty-code violation.
    """
    if not config.code.strip():
        return RuleCheckResult.reject(
            Violation(
                code=ViolationCode.EMPTY_SOURCE_CODE,
                message=(
                    "Empty code: Please enter or upload source code before "
                    "confirming"
                ),
            )
        )
    return RuleCheckResult.accept()


def validate_optimiser_input(config: OptimiserConfig) -> RuleCheckResult:
    """Require code and at least one optimisation technique.

    Args:
        config: Optimiser configuration to validate.

    Returns:
        RuleCheckResult: Acceptance or a missing-input violation.
    """
    if not config.code.strip() or not config.techniques:
        return RuleCheckResult.reject(
            Violation(
                code=ViolationCode.MISSING_OPTIMISER_INPUT,
                message=(
                    "Please enter code and select at least one optimisation "
                    "technique"
                ),
            )
        )
    return RuleCheckResult.accept()


class SourceCodeValidator:
    """Validator for the source phase."""

    rule_name = "source_code"
    phase = PhaseName.SOURCE

    def configure(self, parameters: dict[str, JsonValue] | None) -> None:
        """Configure the validator (no parameters)."""

    def check(self, configuration: PhaseConfiguration) -> RuleCheckResult:
        """Validate a source configuration.

        Raises:
            TypeError: If the configuration is not a source configuration.
        """
        if not isinstance(configuration, SourceConfig):
            raise TypeError(
                f"{self.rule_name} validator expects SourceConfig, "
                f"got {type(configuration).__name__}"
            )
        return validate_source_code(configuration)


class OptimiserInputValidator:
    """Validator for the optimiser branch."""

    rule_name = "optimiser_input"
    phase = PhaseName.OPTIMISER

    def configure(self, parameters: dict[str, JsonValue] | None) -> None:
        """Configure the validator (no parameters)."""

    def check(self, configuration: PhaseConfiguration) -> RuleCheckResult:
        """Validate an optimiser configuration.

        Raises:
            TypeError: If the configuration is not an optimiser configuration.
        """
        if not isinstance(configuration, OptimiserConfig):
            raise TypeError(
                f"{self.rule_name} validator expects OptimiserConfig, "
                f"got {type(configuration).__name__}"
            )
        return validate_optimiser_input(configuration)
