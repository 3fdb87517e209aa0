"""Translation rule check."""

from __future__ import annotations

from viscomp_core.rules.protocol import RuleCheckResult, Violation, ViolationCode
from viscomp_schemas.phases import PhaseConfiguration, TranslatorRuleSet
from viscomp_schemas.primitives import JsonValue, PhaseName


def validate_translation_rules(rules: TranslatorRuleSet) -> RuleCheckResult:
    """Check that every translation rule maps a sequence to some output.

    Args:
        rules: Translator rule set to validate.

    Returns:
        RuleCheckResult: Acceptance or the first violation found.
    """
    if not rules.rules:
        return RuleCheckResult.reject(
            Violation(
                code=ViolationCode.EMPTY_TRANSLATOR_RULES,
                message=(
                    "No rules specified: Please add at least one translation rule"
                ),
            )
        )
    for index, rule in enumerate(rules.rules):
        sequence = [item for item in rule.sequence if item.strip()]
        if not sequence or not rule.translation:
            return RuleCheckResult.reject(
                Violation(
                    code=ViolationCode.INCOMPLETE_TRANSLATION_RULE,
                    message=f"Invalid token sequence in rule {index + 1}",
                    index=index,
                )
            )
    return RuleCheckResult.accept()


class TranslatorRuleValidator:
    """Validator for translator rule sets."""

    rule_name = "translation_rules"
    phase = PhaseName.TRANSLATOR

    def configure(self, parameters: dict[str, JsonValue] | None) -> None:
        """Configure the validator (no parameters)."""

    def check(self, configuration: PhaseConfiguration) -> RuleCheckResult:
        """Validate a translator configuration.

        Raises:
            TypeError: If the configuration is not a translator rule set.
        """
        if not isinstance(configuration, TranslatorRuleSet):
            raise TypeError(
                f"{self.rule_name} validator expects TranslatorRuleSet, "
                f"got {type(configuration).__name__}"
            )
        return validate_translation_rules(configuration)
