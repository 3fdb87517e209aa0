"""Protocol and result types for phase rule validators."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from viscomp_schemas.phases import PhaseConfiguration
from viscomp_schemas.primitives import JsonValue, PhaseName


class ViolationCode(StrEnum):
    """Structural violations a rule validator can report."""

    EMPTY_GRAMMAR = "empty_grammar"
    START_SYMBOL_NOT_IN_VARIABLES = "start_symbol_not_in_variables"
    EMPTY_PRODUCTION = "empty_production"
    UNDEFINED_SYMBOL = "undefined_symbol"
    INCOMPLETE_SCOPE_RULE = "incomplete_scope_rule"
    INCOMPLETE_TYPE_RULE = "incomplete_type_rule"
    INCOMPLETE_GRAMMAR_LINK = "incomplete_grammar_link"
    EMPTY_SOURCE_CODE = "empty_source_code"
    EMPTY_LEXER_RULES = "empty_lexer_rules"
    INCOMPLETE_LEXER_RULE = "incomplete_lexer_rule"
    INVALID_REGEX = "invalid_regex"
    EMPTY_TRANSLATOR_RULES = "empty_translator_rules"
    INCOMPLETE_TRANSLATION_RULE = "incomplete_translation_rule"
    MISSING_OPTIMISER_INPUT = "missing_optimiser_input"


class Violation(BaseModel):
    """First structural problem found in a configuration.

    Attributes:
        code: Violation category.
        message: User-facing reason, stable enough to assert on.
        symbol: Offending symbol, when one is involved.
        lhs: Left-hand side of the offending production, if any.
        index: Zero-based position of the offending rule or row.
        details: Extra structured context.
    """

    model_config = ConfigDict(frozen=True)

    code: ViolationCode = Field(description="Violation category")
    message: str = Field(description="User-facing reason")
    symbol: str | None = Field(default=None, description="Offending symbol")
    lhs: str | None = Field(default=None, description="Offending rule lhs")
    index: int | None = Field(default=None, description="Offending rule index")
    details: dict[str, JsonValue] | None = Field(
        default=None, description="Extra structured context"
    )


class RuleCheckResult(BaseModel):
    """Tagged result of validating a configuration: ok or one violation."""

    model_config = ConfigDict(frozen=True)

    violation: Violation | None = Field(
        default=None, description="First violation, or None when accepted"
    )

    @property
    def ok(self) -> bool:
        """Whether the configuration was accepted."""
        return self.violation is None

    @classmethod
    def accept(cls) -> RuleCheckResult:
        """Build an accepting result.

        Returns:
            RuleCheckResult: Result with no violation.
        """
        return cls()

    @classmethod
    def reject(cls, violation: Violation) -> RuleCheckResult:
        """Build a rejecting result.

        Args:
            violation: The violation to report.

        Returns:
            RuleCheckResult: Result carrying the violation.
        """
        return cls(violation=violation)


@runtime_checkable
class RuleValidator(Protocol):
    """Protocol for phase configuration validators.

    Validators are pure: the same configuration always yields the same
    result, and nothing outside the validator is read or modified.
    """

    @property
    def rule_name(self) -> str:
        """Unique identifier for this validator."""
        ...

    @property
    def phase(self) -> PhaseName:
        """Phase whose configurations this validator checks."""
        ...

    def configure(self, parameters: dict[str, JsonValue] | None) -> None:
        """Configure the validator with parameters from config.

        Args:
            parameters: Validator-specific parameters.

        Raises:
            ValueError: If parameters are invalid.
        """
        ...

    def check(self, configuration: PhaseConfiguration) -> RuleCheckResult:
        """Validate a configuration.

        Args:
            configuration: Configuration to validate.

        Returns:
            RuleCheckResult: Acceptance or the first violation.
        """
        ...
