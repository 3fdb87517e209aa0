"""Context-free grammar well-formedness check."""

from __future__ import annotations

from viscomp_core.rules.protocol import RuleCheckResult, Violation, ViolationCode
from viscomp_schemas.phases import Grammar, PhaseConfiguration
from viscomp_schemas.primitives import JsonValue, PhaseName


def validate_grammar(grammar: Grammar) -> RuleCheckResult:
    """Check a grammar for structural well-formedness.

    Checks run in a fixed order and stop at the first failure:
    non-empty rules, start symbol declared as a variable, no empty
    productions, and every right-hand side symbol declared.

    Args:
        grammar: Grammar to validate.

    Returns:
        RuleCheckResult: Acceptance or the first violation found.
    """
    if not grammar.rules:
        return RuleCheckResult.reject(
            Violation(
                code=ViolationCode.EMPTY_GRAMMAR,
                message=(
                    "Empty grammar: Please define at least one production "
                    "rule to continue"
                ),
            )
        )

    variables = set(grammar.variables)
    if grammar.start not in variables:
        return RuleCheckResult.reject(
            Violation(
                code=ViolationCode.START_SYMBOL_NOT_IN_VARIABLES,
                message=(
                    f"The start symbol '{grammar.start}' must be included in "
                    "the Variables list."
                ),
                symbol=grammar.start,
            )
        )

    for index, rule in enumerate(grammar.rules):
        if not rule.rhs:
            return RuleCheckResult.reject(
                Violation(
                    code=ViolationCode.EMPTY_PRODUCTION,
                    message=(
                        f"Empty production: Rule for '{rule.lhs}' needs at least "
                        "one production on the right-hand side"
                    ),
                    lhs=rule.lhs,
                    index=index,
                )
            )

    defined = variables | set(grammar.terminals)
    for index, rule in enumerate(grammar.rules):
        for symbol in rule.rhs:
            if symbol not in defined:
                return RuleCheckResult.reject(
                    Violation(
                        code=ViolationCode.UNDEFINED_SYMBOL,
                        message=(
                            f"Invalid symbol '{symbol}' in rule for "
                            f"'{rule.lhs}'. It must be defined as a Variable "
                            "or Terminal."
                        ),
                        symbol=symbol,
                        lhs=rule.lhs,
                        index=index,
                    )
                )

    return RuleCheckResult.accept()


class GrammarRuleValidator:
    """Validator for parser phase grammars.

    Parameters:
        None required.
    """

    rule_name = "grammar"
    phase = PhaseName.PARSER

    def configure(self, parameters: dict[str, JsonValue] | None) -> None:
        """Configure the validator.

        Args:
            parameters: Not used for this validator.
        """
        # No configuration needed

    def check(self, configuration: PhaseConfiguration) -> RuleCheckResult:
        """Validate a parser configuration.

        Args:
            configuration: Grammar to validate.

        Returns:
            RuleCheckResult: Acceptance or the first violation.

        Raises:
            TypeError: If the configuration is not a grammar.
        """
        if not isinstance(configuration, Grammar):
            raise TypeError(
                f"{self.rule_name} validator expects Grammar, "
                f"got {type(configuration).__name__}"
            )
        return validate_grammar(configuration)
