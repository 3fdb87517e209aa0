"""Scope, type and grammar-link completeness check for analyser rules."""

from __future__ import annotations

from viscomp_core.rules.protocol import RuleCheckResult, Violation, ViolationCode
from viscomp_schemas.phases import AnalyserRuleSet, PhaseConfiguration
from viscomp_schemas.primitives import GrammarLinkPolicy, JsonValue, PhaseName

INCOMPLETE_SCOPE_MESSAGE = (
    "Incomplete scope rules: Please fill in all Start and End fields for "
    "scope analysis"
)
INCOMPLETE_TYPE_MESSAGE = (
    "Incomplete type rules: Please fill in all Result, Assignment, and LHS "
    "fields for type checking"
)
INCOMPLETE_LINK_MESSAGE = (
    "Incomplete grammar rules: Please fill in all grammar constraint fields"
)


def validate_analyser_rules(
    rules: AnalyserRuleSet,
    policy: GrammarLinkPolicy = GrammarLinkPolicy.PERMISSIVE,
) -> RuleCheckResult:
    """Check analyser rules for completeness.

    Fully blank scope or type rows are placeholders and are skipped. A
    partially filled row fails, as does a rule set with no complete row.
    Under the permissive policy empty grammar links mean "use the service
    defaults"; the strict policy requires all seven roles.

    Args:
        rules: Analyser rule set to validate.
        policy: Grammar link policy.

    Returns:
        RuleCheckResult: Acceptance or the first violation found.
    """
    scope_rows = [
        (index, row)
        for index, row in enumerate(rules.scope_rules)
        if not row.is_blank
    ]
    for index, row in scope_rows:
        if not row.is_complete:
            return _reject(ViolationCode.INCOMPLETE_SCOPE_RULE, index)
    if not scope_rows:
        return _reject(ViolationCode.INCOMPLETE_SCOPE_RULE, None)

    type_rows = [
        (index, row)
        for index, row in enumerate(rules.type_rules)
        if not row.is_blank
    ]
    for index, row in type_rows:
        if not row.is_complete:
            return _reject(ViolationCode.INCOMPLETE_TYPE_RULE, index)
    if not type_rows:
        return _reject(ViolationCode.INCOMPLETE_TYPE_RULE, None)

    if GrammarLinkPolicy(policy) == GrammarLinkPolicy.STRICT:
        missing = rules.grammar_link.missing_roles()
        if missing:
            return RuleCheckResult.reject(
                Violation(
                    code=ViolationCode.INCOMPLETE_GRAMMAR_LINK,
                    message=INCOMPLETE_LINK_MESSAGE,
                    details={"missing_roles": list(missing)},
                )
            )

    return RuleCheckResult.accept()


def _reject(code: ViolationCode, index: int | None) -> RuleCheckResult:
    message = (
        INCOMPLETE_SCOPE_MESSAGE
        if code == ViolationCode.INCOMPLETE_SCOPE_RULE
        else INCOMPLETE_TYPE_MESSAGE
    )
    return RuleCheckResult.reject(
        Violation(code=code, message=message, index=index)
    )


class AnalyserRuleValidator:
    """Validator for analyser phase rule sets.

    Parameters:
        grammar_link_policy: "permissive" (default) or "strict".
    """

    rule_name = "analyser_rules"
    phase = PhaseName.ANALYSER

    def __init__(
        self, policy: GrammarLinkPolicy = GrammarLinkPolicy.PERMISSIVE
    ) -> None:
        """Initialize the validator.

        Args:
            policy: Grammar link policy to apply.
        """
        self.policy = GrammarLinkPolicy(policy)

    def configure(self, parameters: dict[str, JsonValue] | None) -> None:
        """Configure the grammar link policy.

        Args:
            parameters: Optional mapping with ``grammar_link_policy``.

        Raises:
            ValueError: If the policy value is unknown.
        """
        if not parameters or "grammar_link_policy" not in parameters:
            return
        value = parameters["grammar_link_policy"]
        if not isinstance(value, str):
            raise ValueError("grammar_link_policy must be a string")
        self.policy = GrammarLinkPolicy(value)

    def check(self, configuration: PhaseConfiguration) -> RuleCheckResult:
        """Validate an analyser configuration.

        Args:
            configuration: Analyser rule set to validate.

        Returns:
            RuleCheckResult: Acceptance or the first violation.

        Raises:
            TypeError: If the configuration is not an analyser rule set.
        """
        if not isinstance(configuration, AnalyserRuleSet):
            raise TypeError(
                f"{self.rule_name} validator expects AnalyserRuleSet, "
                f"got {type(configuration).__name__}"
            )
        return validate_analyser_rules(configuration, self.policy)
