"""Built-in phase rule validators."""

from viscomp_core.rules.checks.analyser import (
    AnalyserRuleValidator,
    validate_analyser_rules,
)
from viscomp_core.rules.checks.grammar import GrammarRuleValidator, validate_grammar
from viscomp_core.rules.checks.inputs import (
    OptimiserInputValidator,
    SourceCodeValidator,
    validate_optimiser_input,
    validate_source_code,
)
from viscomp_core.rules.checks.lexer import LexerRuleValidator, validate_lexer_rules
from viscomp_core.rules.checks.translator import (
    TranslatorRuleValidator,
    validate_translation_rules,
)

__all__ = [
    "AnalyserRuleValidator",
    "GrammarRuleValidator",
    "LexerRuleValidator",
    "OptimiserInputValidator",
    "SourceCodeValidator",
    "TranslatorRuleValidator",
    "validate_analyser_rules",
    "validate_grammar",
    "validate_lexer_rules",
    "validate_optimiser_input",
    "validate_source_code",
    "validate_translation_rules",
]
