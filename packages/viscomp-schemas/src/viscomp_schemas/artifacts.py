"""Artifact schemas produced by generating a phase."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

from viscomp_schemas.base import VerbatimSchema
from viscomp_schemas.primitives import PhaseName, TargetLanguage


class Token(VerbatimSchema):
    """Lexed token."""

    type: str = Field(..., description="Token type name")
    value: str = Field(..., description="Matched source text")


class TokenSet(VerbatimSchema):
    """Lexer output."""

    kind: Literal["token_set"] = Field("token_set", description="Artifact kind")
    tokens: list[Token] = Field(default_factory=list, description="Tokens in order")
    unidentified: list[str] = Field(
        default_factory=list, description="Source fragments no rule matched"
    )

    def token_types(self) -> set[str]:
        """Return the distinct token types present in the set.

        Returns:
            set[str]: Token type names.
        """
        return {token.type for token in self.tokens}


class Node(VerbatimSchema):
    """Syntax tree node; leaves have no children."""

    symbol: str = Field(..., description="Grammar symbol")
    value: str = Field("", description="Matched token value for leaves")
    children: list[Node] | None = Field(None, description="Child nodes")


class SyntaxTree(VerbatimSchema):
    """Parser output."""

    kind: Literal["syntax_tree"] = Field("syntax_tree", description="Artifact kind")
    root: Node = Field(..., description="Root node")


class SymbolRow(VerbatimSchema):
    """Symbol table row."""

    type: str = Field(..., description="Declared type")
    name: str = Field(..., description="Identifier")
    scope: str = Field(..., description="Scope the identifier belongs to")


class SymbolTable(VerbatimSchema):
    """Analyser output."""

    kind: Literal["symbol_table"] = Field(
        "symbol_table", description="Artifact kind"
    )
    rows: list[SymbolRow] = Field(default_factory=list, description="Symbol rows")


class TranslatedCode(VerbatimSchema):
    """Translator output."""

    kind: Literal["translated_code"] = Field(
        "translated_code", description="Artifact kind"
    )
    lines: list[str] = Field(default_factory=list, description="Output lines")


class SourceCode(VerbatimSchema):
    """Confirmed source text; the artifact of the source phase."""

    kind: Literal["source_code"] = Field("source_code", description="Artifact kind")
    code: str = Field(..., min_length=1, description="Confirmed program text")


class OptimisedCode(VerbatimSchema):
    """Optimiser output."""

    kind: Literal["optimised_code"] = Field(
        "optimised_code", description="Artifact kind"
    )
    language: TargetLanguage = Field(..., description="Language of the output")
    lines: list[str] = Field(default_factory=list, description="Optimised lines")


type Artifact = Annotated[
    SourceCode | TokenSet | SyntaxTree | SymbolTable | TranslatedCode | OptimisedCode,
    Field(discriminator="kind"),
]

PHASE_ARTIFACT_KIND: dict[PhaseName, str] = {
    PhaseName.SOURCE: "source_code",
    PhaseName.LEXER: "token_set",
    PhaseName.PARSER: "syntax_tree",
    PhaseName.ANALYSER: "symbol_table",
    PhaseName.TRANSLATOR: "translated_code",
    PhaseName.OPTIMISER: "optimised_code",
}
