"""Registry mapping phases to their rule validators."""

from __future__ import annotations

from collections.abc import Callable

from viscomp_core.rules.checks.analyser import AnalyserRuleValidator
from viscomp_core.rules.checks.grammar import GrammarRuleValidator
from viscomp_core.rules.checks.inputs import (
    OptimiserInputValidator,
    SourceCodeValidator,
)
from viscomp_core.rules.checks.lexer import LexerRuleValidator
from viscomp_core.rules.checks.translator import TranslatorRuleValidator
from viscomp_core.rules.protocol import RuleCheckResult, RuleValidator
from viscomp_schemas.config import RulesConfig
from viscomp_schemas.phases import PhaseConfiguration
from viscomp_schemas.primitives import JsonValue, PhaseName

type ValidatorFactory = Callable[[], RuleValidator]


class RuleRegistry:
    """Registry for phase rule validator factories.

    Each phase has at most one validator. Factories are kept rather than
    instances so every session can configure its own copies.
    """

    def __init__(self) -> None:
        """Initialize an empty rule registry."""
        self._factories: dict[PhaseName, ValidatorFactory] = {}

    def register(self, phase: PhaseName, factory: ValidatorFactory) -> None:
        """Register a validator factory for a phase.

        Args:
            phase: Phase the validator checks.
            factory: Callable that creates a validator instance.

        Raises:
            ValueError: If the phase already has a validator.
        """
        phase = PhaseName(phase)
        if phase in self._factories:
            raise ValueError(f"Validator already registered: {phase.value}")
        self._factories[phase] = factory

    def create(self, phase: PhaseName) -> RuleValidator:
        """Create a validator instance for a phase.

        Args:
            phase: Phase to create the validator for.

        Returns:
            New validator instance.

        Raises:
            ValueError: If no validator is registered for the phase.
        """
        factory = self._factories.get(PhaseName(phase))
        if factory is None:
            raise ValueError(f"No validator registered for phase: {phase}")
        return factory()

    def list_phases(self) -> list[PhaseName]:
        """List phases with a registered validator.

        Returns:
            Phases in registration order.
        """
        return list(self._factories)


def get_default_registry() -> RuleRegistry:
    """Get the default registry with all built-in validators.

    Returns:
        RuleRegistry with a validator for every phase.
    """
    registry = RuleRegistry()
    registry.register(PhaseName.SOURCE, SourceCodeValidator)
    registry.register(PhaseName.LEXER, LexerRuleValidator)
    registry.register(PhaseName.PARSER, GrammarRuleValidator)
    registry.register(PhaseName.ANALYSER, AnalyserRuleValidator)
    registry.register(PhaseName.TRANSLATOR, TranslatorRuleValidator)
    registry.register(PhaseName.OPTIMISER, OptimiserInputValidator)
    return registry


class RuleBook:
    """Configured validators for one pipeline session."""

    def __init__(
        self,
        rules_config: RulesConfig | None = None,
        registry: RuleRegistry | None = None,
    ) -> None:
        """Create and configure one validator per registered phase.

        Args:
            rules_config: Rule policy settings; defaults when None.
            registry: Validator registry; the built-in one when None.
        """
        config = rules_config or RulesConfig()
        registry = registry or get_default_registry()
        parameters: dict[str, JsonValue] = {
            "grammar_link_policy": str(config.grammar_link_policy)
        }
        self._validators: dict[PhaseName, RuleValidator] = {}
        for phase in registry.list_phases():
            validator = registry.create(phase)
            validator.configure(parameters)
            self._validators[phase] = validator

    def validate(
        self, phase: PhaseName, configuration: PhaseConfiguration
    ) -> RuleCheckResult:
        """Validate a configuration with the phase's validator.

        Phases without a validator accept every configuration.

        Args:
            phase: Phase the configuration belongs to.
            configuration: Configuration to check.

        Returns:
            RuleCheckResult: Acceptance or the first violation.
        """
        validator = self._validators.get(PhaseName(phase))
        if validator is None:
            return RuleCheckResult.accept()
        return validator.check(configuration)


def validate_configuration(
    phase: PhaseName,
    configuration: PhaseConfiguration,
    rules_config: RulesConfig | None = None,
) -> RuleCheckResult:
    """Validate a configuration with the default validators.

    Args:
        phase: Phase the configuration belongs to.
        configuration: Configuration to check.
        rules_config: Rule policy settings.

    Returns:
        RuleCheckResult: Acceptance or the first violation.
    """
    return RuleBook(rules_config).validate(phase, configuration)
