"""Lexer token rule check."""

from __future__ import annotations

import re

from viscomp_core.rules.protocol import RuleCheckResult, Violation, ViolationCode
from viscomp_schemas.phases import LexerConfig, PhaseConfiguration
from viscomp_schemas.primitives import JsonValue, PhaseName


def validate_lexer_rules(config: LexerConfig) -> RuleCheckResult:
    """Check that every token rule has a type and a compilable regex.

    Args:
        config: Lexer configuration to validate.

    Returns:
        RuleCheckResult: Acceptance or the first violation found.
    """
    if not config.rules:
        return RuleCheckResult.reject(
            Violation(
                code=ViolationCode.EMPTY_LEXER_RULES,
                message="No rules specified: Please add at least one token rule",
            )
        )
    for index, rule in enumerate(config.rules):
        if not rule.type.strip() or not rule.regex:
            return RuleCheckResult.reject(
                Violation(
                    code=ViolationCode.INCOMPLETE_LEXER_RULE,
                    message="Please fill in both Type and Regular Expression",
                    index=index,
                )
            )
        try:
            re.compile(rule.regex)
        except re.error as exc:
            return RuleCheckResult.reject(
                Violation(
                    code=ViolationCode.INVALID_REGEX,
                    message="Invalid regular expression pattern",
                    symbol=rule.type,
                    index=index,
                    details={"regex": rule.regex, "reason": str(exc)},
                )
            )
    return RuleCheckResult.accept()


class LexerRuleValidator:
    """Validator for lexer token rules.

    Parameters:
        None required.
    """

    rule_name = "lexer_rules"
    phase = PhaseName.LEXER

    def configure(self, parameters: dict[str, JsonValue] | None) -> None:
        """Configure the validator.

        Args:
            parameters: Not used for this validator.
        """
        # No configuration needed

    def check(self, configuration: PhaseConfiguration) -> RuleCheckResult:
        """Validate a lexer configuration.

        Args:
            configuration: Lexer configuration to validate.

        Returns:
            RuleCheckResult: Acceptance or the first violation.

        Raises:
            TypeError: If the configuration is not a lexer configuration.
        """
        if not isinstance(configuration, LexerConfig):
            raise TypeError(
                f"{self.rule_name} validator expects LexerConfig, "
                f"got {type(configuration).__name__}"
            )
        return validate_lexer_rules(configuration)
