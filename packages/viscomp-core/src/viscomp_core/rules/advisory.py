"""Advisory checks that inform but never block a phase action."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from viscomp_schemas.artifacts import TokenSet
from viscomp_schemas.phases import Grammar


class AdvisoryNote(BaseModel):
    """Non-blocking observation about a configuration."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(description="Symbol the note is about")
    message: str = Field(description="Human-readable note")


def check_terminal_coverage(grammar: Grammar, tokens: TokenSet) -> list[AdvisoryNote]:
    """Report grammar terminals that no lexer token type produces.

    Args:
        grammar: Grammar being authored for the parser.
        tokens: Latest token set generated by the lexer.

    Returns:
        list[AdvisoryNote]: One note per unmatched terminal, in grammar order.
    """
    token_types = tokens.token_types()
    seen: set[str] = set()
    notes: list[AdvisoryNote] = []
    for terminal in grammar.terminals:
        if terminal in token_types or terminal in seen:
            continue
        seen.add(terminal)
        notes.append(
            AdvisoryNote(
                symbol=terminal,
                message=(
                    f"Terminal '{terminal}' does not match any token type "
                    "produced by the lexer"
                ),
            )
        )
    return notes
