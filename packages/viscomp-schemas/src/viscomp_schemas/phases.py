"""Phase configuration schemas authored by the user for each phase."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

from viscomp_schemas.base import BaseSchema, VerbatimSchema
from viscomp_schemas.primitives import (
    OptimisationTechnique,
    SymbolName,
    TargetLanguage,
)


class SourceConfig(VerbatimSchema):
    """Source code entered or uploaded for the pipeline."""

    kind: Literal["source"] = Field("source", description="Configuration kind")
    code: str = Field("", description="Program source text")


class LexerRule(VerbatimSchema):
    """Single token definition: a token type and the regex that matches it."""

    type: str = Field("", description="Token type name")
    regex: str = Field("", description="Regular expression matching the token")


class LexerConfig(VerbatimSchema):
    """Ordered token definitions for the lexer phase."""

    kind: Literal["lexer"] = Field("lexer", description="Configuration kind")
    rules: list[LexerRule] = Field(
        default_factory=list, description="Token rules in match priority order"
    )


class ProductionRule(BaseSchema):
    """Grammar production `lhs -> rhs`."""

    lhs: SymbolName = Field(..., description="Non-terminal being defined")
    rhs: list[SymbolName] = Field(
        default_factory=list, description="Ordered right-hand side symbols"
    )


class Grammar(BaseSchema):
    """Context-free grammar for the parser phase.

    Structural well-formedness is not enforced here: an incomplete grammar is
    a legitimate in-progress configuration and is reported by the grammar
    rule validator instead.
    """

    kind: Literal["grammar"] = Field("grammar", description="Configuration kind")
    variables: list[SymbolName] = Field(
        default_factory=list, description="Non-terminal symbols"
    )
    terminals: list[SymbolName] = Field(
        default_factory=list, description="Terminal symbols"
    )
    start: SymbolName = Field("", description="Start symbol")
    rules: list[ProductionRule] = Field(
        default_factory=list,
        description="Production rules; order matters for ambiguity resolution",
    )


class ScopeRule(BaseSchema):
    """Delimiter pair that opens and closes a scope."""

    start: str = Field("", description="Scope opening delimiter")
    end: str = Field("", description="Scope closing delimiter")

    @property
    def is_blank(self) -> bool:
        """Return True when no delimiter has been filled in."""
        return not self.start and not self.end

    @property
    def is_complete(self) -> bool:
        """Return True when both delimiters are present."""
        return bool(self.start) and bool(self.end)


class TypeRule(BaseSchema):
    """Type compatibility rule checked by the analyser."""

    result_type: str = Field("", description="Resulting type")
    assignment_operator: str = Field("", description="Assignment operator")
    lhs_type: str = Field("", description="Left-hand side type")
    operators: list[str] = Field(
        default_factory=list, description="Operators allowed between operands"
    )
    rhs_type: str = Field("", description="Right-hand side type")

    @property
    def is_blank(self) -> bool:
        """Return True when no field has been filled in."""
        return not any((
            self.result_type,
            self.assignment_operator,
            self.lhs_type,
            self.rhs_type,
            any(self.operators),
        ))

    @property
    def is_complete(self) -> bool:
        """Return True when result, assignment and lhs are all present."""
        return (
            bool(self.result_type)
            and bool(self.assignment_operator)
            and bool(self.lhs_type)
        )


class GrammarLink(BaseSchema):
    """Maps semantic roles to grammar symbols produced by the parser phase."""

    variable: SymbolName = Field("", description="Symbol for variable names")
    type: SymbolName = Field("", description="Symbol for type names")
    function: SymbolName = Field("", description="Symbol for function names")
    parameter: SymbolName = Field("", description="Symbol for parameters")
    assignment: SymbolName = Field("", description="Symbol for assignments")
    operator: SymbolName = Field("", description="Symbol for operators")
    term: SymbolName = Field("", description="Symbol for terms")

    def missing_roles(self) -> list[str]:
        """Return the roles that have no symbol assigned.

        Returns:
            list[str]: Role names in declaration order.
        """
        return [
            role
            for role in type(self).model_fields
            if not getattr(self, role)
        ]


class AnalyserRuleSet(BaseSchema):
    """Scope, type and grammar-link rules for semantic analysis."""

    kind: Literal["analyser"] = Field("analyser", description="Configuration kind")
    scope_rules: list[ScopeRule] = Field(
        default_factory=list, description="Scope delimiter rules"
    )
    type_rules: list[TypeRule] = Field(
        default_factory=list, description="Type compatibility rules"
    )
    grammar_link: GrammarLink = Field(
        default_factory=GrammarLink, description="Semantic role to symbol mapping"
    )


class TranslationRule(VerbatimSchema):
    """Maps a token type sequence to output lines."""

    sequence: list[str] = Field(
        default_factory=list, description="Token types to match in order"
    )
    translation: list[str] = Field(
        default_factory=list, description="Lines emitted for the match"
    )


class TranslatorRuleSet(VerbatimSchema):
    """Ordered translation rules for the translator phase."""

    kind: Literal["translator"] = Field(
        "translator", description="Configuration kind"
    )
    rules: list[TranslationRule] = Field(
        default_factory=list, description="Translation rules in priority order"
    )


class OptimiserConfig(VerbatimSchema):
    """Code and selected passes for the optimiser branch."""

    kind: Literal["optimiser"] = Field("optimiser", description="Configuration kind")
    language: TargetLanguage = Field(
        TargetLanguage.PYTHON, description="Language of the code to optimise"
    )
    code: str = Field("", description="Code to optimise")
    techniques: list[OptimisationTechnique] = Field(
        default_factory=list, description="Selected optimisation passes"
    )


type PhaseConfiguration = Annotated[
    SourceConfig
    | LexerConfig
    | Grammar
    | AnalyserRuleSet
    | TranslatorRuleSet
    | OptimiserConfig,
    Field(discriminator="kind"),
]
