"""Wire mapping between phase models and the compiler service JSON bodies."""

from __future__ import annotations

from collections.abc import Mapping

from viscomp_schemas.artifacts import (
    Artifact,
    Node,
    OptimisedCode,
    SourceCode,
    SymbolRow,
    SymbolTable,
    SyntaxTree,
    Token,
    TokenSet,
    TranslatedCode,
)
from viscomp_schemas.phases import (
    AnalyserRuleSet,
    Grammar,
    GrammarLink,
    LexerConfig,
    LexerRule,
    OptimiserConfig,
    PhaseConfiguration,
    ProductionRule,
    ScopeRule,
    SourceConfig,
    TranslationRule,
    TranslatorRuleSet,
    TypeRule,
)
from viscomp_schemas.primitives import (
    JsonValue,
    OptimisationTechnique,
    PhaseName,
    TargetLanguage,
)
from viscomp_schemas.project import SavedPhase, SavedProject

type JsonObject = dict[str, JsonValue]

SUBMIT_PATHS: dict[PhaseName, str] = {
    PhaseName.SOURCE: "/lexing/code",
    PhaseName.LEXER: "/lexing/rules",
    PhaseName.PARSER: "/parsing/grammar",
    PhaseName.TRANSLATOR: "/translating/readRules",
    PhaseName.OPTIMISER: "/optimising/source_code",
}

PROJECT_PATH = "/users/getProject"

GENERATE_PATHS: dict[PhaseName, str] = {
    PhaseName.LEXER: "/lexing/lexer",
    PhaseName.PARSER: "/parsing/tree",
    PhaseName.ANALYSER: "/analysing/analyse",
    PhaseName.TRANSLATOR: "/translating/translate",
    PhaseName.OPTIMISER: "/optimising/optimise",
}

_LINK_KEYS: dict[str, str] = {
    "variable": "variablerule",
    "type": "typerule",
    "function": "functionrule",
    "parameter": "parameterrule",
    "assignment": "assignmentrule",
    "operator": "operatorrule",
    "term": "termrule",
}


class MalformedPayloadError(ValueError):
    """Raised when a service body does not have the expected shape."""


def build_submit_body(
    configuration: PhaseConfiguration, project_name: str
) -> JsonObject:
    """Build the JSON body that stores a configuration.

    Args:
        configuration: Configuration to send.
        project_name: Server-side project name.

    Returns:
        JsonObject: Request body.

    Raises:
        TypeError: If the configuration type is unknown.
    """
    body: JsonObject
    if isinstance(configuration, SourceConfig):
        body = {"source_code": configuration.code}
    elif isinstance(configuration, LexerConfig):
        body = {
            "pairs": [
                {"type": rule.type, "regex": rule.regex}
                for rule in configuration.rules
            ]
        }
    elif isinstance(configuration, Grammar):
        body = {
            "variables": list(configuration.variables),
            "terminals": list(configuration.terminals),
            "start": configuration.start,
            "rules": [
                {"input": rule.lhs, "output": list(rule.rhs)}
                for rule in configuration.rules
            ],
        }
    elif isinstance(configuration, AnalyserRuleSet):
        body = analyser_rules_to_wire(configuration)
    elif isinstance(configuration, TranslatorRuleSet):
        body = {
            "translation_rules": [
                {
                    "sequence": [item for item in rule.sequence if item.strip()],
                    "translation": list(rule.translation),
                }
                for rule in configuration.rules
            ]
        }
    elif isinstance(configuration, OptimiserConfig):
        body = {
            "source_code": configuration.code,
            "language": str(configuration.language),
        }
    else:
        raise TypeError(f"Unsupported configuration: {type(configuration).__name__}")
    body["project_name"] = project_name
    return body


def build_generate_body(
    phase: PhaseName,
    project_name: str,
    configuration: PhaseConfiguration | None = None,
) -> JsonObject:
    """Build the JSON body that asks the service to generate an artifact.

    The analyser sends its submitted rules with the analysis request and the
    optimiser sends the selected techniques. Every other phase sends the
    project name alone.

    Args:
        phase: Phase to generate.
        project_name: Server-side project name.
        configuration: Submitted configuration snapshot.

    Returns:
        JsonObject: Request body.
    """
    body: JsonObject = {"project_name": project_name}
    phase = PhaseName(phase)
    if phase == PhaseName.ANALYSER and isinstance(configuration, AnalyserRuleSet):
        body.update(analyser_rules_to_wire(configuration))
    elif phase == PhaseName.OPTIMISER and isinstance(
        configuration, OptimiserConfig
    ):
        selected = {str(technique) for technique in configuration.techniques}
        for technique in OptimisationTechnique:
            body[technique.value] = technique.value in selected
    return body


def analyser_rules_to_wire(rules: AnalyserRuleSet) -> JsonObject:
    """Convert analyser rules to the service shape, dropping blank rows.

    Args:
        rules: Analyser rule set.

    Returns:
        JsonObject: ``scope_rules``, ``type_rules`` and ``grammar_rules``.
    """
    return {
        "scope_rules": [
            {"start": row.start, "end": row.end}
            for row in rules.scope_rules
            if not row.is_blank
        ],
        "type_rules": [
            {
                "resultdata": row.result_type,
                "assignment": row.assignment_operator,
                "lhsdata": row.lhs_type,
                "operator": [item for item in row.operators if item],
                "rhsdata": row.rhs_type,
            }
            for row in rules.type_rules
            if not row.is_blank
        ],
        "grammar_rules": {
            wire: getattr(rules.grammar_link, role)
            for role, wire in _LINK_KEYS.items()
        },
    }


def parse_artifact(
    phase: PhaseName,
    body: Mapping[str, JsonValue],
    configuration: PhaseConfiguration | None = None,
) -> Artifact:
    """Parse a generate response body into the phase's artifact.

    Args:
        phase: Phase that was generated.
        body: Decoded JSON response body.
        configuration: Submitted configuration snapshot.

    Returns:
        Artifact: Parsed artifact.

    Raises:
        MalformedPayloadError: If the body lacks the expected fields.
    """
    phase = PhaseName(phase)
    if phase == PhaseName.LEXER:
        return parse_token_set(body)
    if phase == PhaseName.PARSER:
        tree = body.get("tree")
        if not isinstance(tree, Mapping):
            raise MalformedPayloadError("Response is missing 'tree'")
        return parse_syntax_tree(tree)
    if phase == PhaseName.ANALYSER:
        return parse_symbol_table(body.get("symbol_table"))
    if phase == PhaseName.TRANSLATOR:
        return TranslatedCode(lines=_string_list(body.get("code"), "code"))
    if phase == PhaseName.OPTIMISER:
        language = (
            TargetLanguage(configuration.language)
            if isinstance(configuration, OptimiserConfig)
            else TargetLanguage.GO
        )
        return parse_optimised_code(body.get("optimised_code"), language)
    raise MalformedPayloadError(f"Phase {phase} has no remote artifact")


def parse_token_set(body: Mapping[str, JsonValue]) -> TokenSet:
    """Parse ``tokens`` and ``tokens_unidentified`` from a lexer body.

    Raises:
        MalformedPayloadError: If tokens are not a list of type/value pairs.
    """
    raw_tokens = body.get("tokens")
    if raw_tokens in (None, ""):
        raw_tokens = []
    if not isinstance(raw_tokens, list):
        raise MalformedPayloadError("'tokens' must be a list")
    tokens: list[Token] = []
    for item in raw_tokens:
        if not isinstance(item, Mapping):
            raise MalformedPayloadError("Each token must be an object")
        token_type = _first(item, "type", "Type")
        value = _first(item, "value", "Value")
        if not isinstance(token_type, str) or not isinstance(value, str):
            raise MalformedPayloadError("Each token needs a type and value")
        tokens.append(Token(type=token_type, value=value))
    unidentified = body.get("tokens_unidentified")
    return TokenSet(
        tokens=tokens,
        unidentified=_string_list(unidentified, "tokens_unidentified"),
    )


def parse_syntax_tree(tree: Mapping[str, JsonValue]) -> SyntaxTree:
    """Parse a ``{root: node}`` tree.

    Raises:
        MalformedPayloadError: If the root or a node is malformed.
    """
    root = _first(tree, "root", "Root")
    if not isinstance(root, Mapping):
        raise MalformedPayloadError("Syntax tree is missing 'root'")
    return SyntaxTree(root=_parse_node(root))


def _parse_node(raw: Mapping[str, JsonValue]) -> Node:
    symbol = _first(raw, "symbol", "Symbol")
    if not isinstance(symbol, str):
        raise MalformedPayloadError("Tree node is missing 'symbol'")
    value = _first(raw, "value", "Value")
    raw_children = _first(raw, "children", "Children")
    children: list[Node] | None = None
    if isinstance(raw_children, list):
        children = []
        for child in raw_children:
            if not isinstance(child, Mapping):
                raise MalformedPayloadError("Tree children must be objects")
            children.append(_parse_node(child))
    elif raw_children is not None:
        raise MalformedPayloadError("Tree 'children' must be a list or null")
    return Node(
        symbol=symbol,
        value=value if isinstance(value, str) else "",
        children=children,
    )


def parse_symbol_table(raw: JsonValue) -> SymbolTable:
    """Parse a symbol table artefact (``SymbolScopes`` of name/type/scope).

    Raises:
        MalformedPayloadError: If the table is not an object with a list.
    """
    if not isinstance(raw, Mapping):
        raise MalformedPayloadError("Response is missing 'symbol_table'")
    scopes = _first(raw, "symbolscopes", "SymbolScopes", "symbol_scopes")
    if scopes is None:
        scopes = []
    if not isinstance(scopes, list):
        raise MalformedPayloadError("'symbolscopes' must be a list")
    rows: list[SymbolRow] = []
    for symbol in scopes:
        if not isinstance(symbol, Mapping):
            raise MalformedPayloadError("Each symbol must be an object")
        rows.append(
            SymbolRow(
                type=_text(_first(symbol, "type", "Type"), "unknown"),
                name=_text(_first(symbol, "name", "Name"), "unknown"),
                scope=_text(_first(symbol, "scope", "Scope"), "0"),
            )
        )
    return SymbolTable(rows=rows)


def parse_optimised_code(raw: JsonValue, language: TargetLanguage) -> OptimisedCode:
    """Parse optimiser output given as text or as ``{optimised: [...]}``.

    Raises:
        MalformedPayloadError: If the output has neither shape.
    """
    if isinstance(raw, str):
        return OptimisedCode(language=language, lines=raw.splitlines())
    if isinstance(raw, Mapping):
        lines = _string_list(raw.get("optimised"), "optimised")
        raw_language = raw.get("language")
        if isinstance(raw_language, str) and raw_language in {
            item.value for item in TargetLanguage
        }:
            language = TargetLanguage(raw_language)
        return OptimisedCode(language=language, lines=lines)
    raise MalformedPayloadError("Response is missing 'optimised_code'")


def parse_saved_project(payload: Mapping[str, JsonValue]) -> SavedProject:
    """Parse the service's saved-project document.

    Sections that are missing or empty are skipped. Legacy capitalised keys
    written by older service versions are accepted.

    Args:
        payload: Decoded project document.

    Returns:
        SavedProject: Per-phase saved configurations and artifacts.

    Raises:
        MalformedPayloadError: If a present section has the wrong shape.
    """
    name = _first(payload, "project_name", "name")
    lexing = _section(payload, "lexing")
    parsing = _section(payload, "parsing")
    analysing = _section(payload, "analysing")
    translating = _section(payload, "translating")
    optimising = _section(payload, "optimising")
    return SavedProject(
        name=name if isinstance(name, str) and name else None,
        source=_saved_source(lexing),
        lexer=_saved_lexer(lexing),
        parser=_saved_parser(parsing),
        analyser=_saved_analyser(analysing),
        translator=_saved_translator(translating),
        optimiser=_saved_optimiser(optimising),
    )


def _saved_source(section: Mapping[str, JsonValue] | None) -> SavedPhase | None:
    if section is None:
        return None
    code = _first(section, "code", "source_code")
    if not isinstance(code, str) or not code.strip():
        return None
    configuration = SourceConfig(code=code)
    return SavedPhase(
        configuration=configuration, artifact=SourceCode(code=configuration.code)
    )


def _saved_lexer(section: Mapping[str, JsonValue] | None) -> SavedPhase | None:
    if section is None:
        return None
    pairs = _first(section, "pairs", "rules")
    if not isinstance(pairs, list) or not pairs:
        return None
    rules = [
        LexerRule(
            type=_text(_first(pair, "type", "Type"), ""),
            regex=_text(_first(pair, "regex", "Regex"), ""),
        )
        for pair in pairs
        if isinstance(pair, Mapping)
    ]
    artifact: TokenSet | None = None
    if isinstance(section.get("tokens"), list):
        artifact = parse_token_set(section)
    return SavedPhase(configuration=LexerConfig(rules=rules), artifact=artifact)


def _saved_parser(section: Mapping[str, JsonValue] | None) -> SavedPhase | None:
    if section is None:
        return None
    raw = section.get("grammar")
    if not isinstance(raw, Mapping):
        return None
    rules: list[ProductionRule] = []
    raw_rules = raw.get("rules")
    for item in raw_rules if isinstance(raw_rules, list) else []:
        if not isinstance(item, Mapping):
            continue
        output = _first(item, "output", "Output")
        rhs = output if isinstance(output, list) else [output]
        rules.append(
            ProductionRule(
                lhs=_text(_first(item, "input", "Input"), ""),
                rhs=[symbol for symbol in rhs if isinstance(symbol, str) and symbol],
            )
        )
    grammar = Grammar(
        variables=_symbol_list(_first(raw, "variables", "Variables")),
        terminals=_symbol_list(_first(raw, "terminals", "Terminals")),
        start=_text(_first(raw, "start", "Start"), rules[0].lhs if rules else ""),
        rules=rules,
    )
    artifact: SyntaxTree | None = None
    tree = section.get("tree")
    if isinstance(tree, Mapping) and _first(tree, "root", "Root") is not None:
        artifact = parse_syntax_tree(tree)
    return SavedPhase(configuration=grammar, artifact=artifact)


def _saved_analyser(section: Mapping[str, JsonValue] | None) -> SavedPhase | None:
    if section is None:
        return None
    scope_rules = [
        ScopeRule(
            start=_text(_first(row, "start", "Start"), ""),
            end=_text(_first(row, "end", "End"), ""),
        )
        for row in _object_list(section.get("scope_rules"))
    ]
    type_rules = []
    for row in _object_list(section.get("type_rules")):
        operators = _first(row, "operator", "Operator")
        type_rules.append(
            TypeRule(
                result_type=_text(_first(row, "resultdata", "ResultData"), ""),
                assignment_operator=_text(
                    _first(row, "assignment", "Assignment"), ""
                ),
                lhs_type=_text(_first(row, "lhsdata", "LHSData"), ""),
                operators=[
                    item for item in operators if isinstance(item, str)
                ]
                if isinstance(operators, list)
                else [],
                rhs_type=_text(_first(row, "rhsdata", "RHSData"), ""),
            )
        )
    raw_link = section.get("grammar_rules")
    link = GrammarLink()
    if isinstance(raw_link, Mapping):
        link = GrammarLink(
            **{
                role: _text(
                    _first(raw_link, wire, _legacy_link_key(wire)), ""
                )
                for role, wire in _LINK_KEYS.items()
            }
        )
    if not scope_rules and not type_rules:
        return None
    artifact: SymbolTable | None = None
    if isinstance(section.get("symbol_table_artefact"), Mapping):
        artifact = parse_symbol_table(section.get("symbol_table_artefact"))
    return SavedPhase(
        configuration=AnalyserRuleSet(
            scope_rules=scope_rules, type_rules=type_rules, grammar_link=link
        ),
        artifact=artifact,
    )


def _saved_translator(section: Mapping[str, JsonValue] | None) -> SavedPhase | None:
    if section is None:
        return None
    rules = [
        TranslationRule(
            sequence=_symbol_list(row.get("sequence")),
            translation=_string_list(row.get("translation"), "translation"),
        )
        for row in _object_list(section.get("translating_rules"))
    ]
    if not rules:
        return None
    artifact: TranslatedCode | None = None
    code = section.get("code")
    if isinstance(code, list):
        artifact = TranslatedCode(lines=_string_list(code, "code"))
    return SavedPhase(
        configuration=TranslatorRuleSet(rules=rules), artifact=artifact
    )


def _saved_optimiser(section: Mapping[str, JsonValue] | None) -> SavedPhase | None:
    if section is None:
        return None
    code = _first(section, "input_code", "optimising_source_code")
    if not isinstance(code, str) or not code.strip():
        return None
    raw_language = section.get("language")
    language = (
        TargetLanguage(raw_language)
        if isinstance(raw_language, str)
        and raw_language in {item.value for item in TargetLanguage}
        else TargetLanguage.GO
    )
    raw_techniques = section.get("techniques")
    known = {technique.value for technique in OptimisationTechnique}
    techniques = [
        OptimisationTechnique(item)
        for item in (raw_techniques if isinstance(raw_techniques, list) else [])
        if isinstance(item, str) and item in known
    ]
    configuration = OptimiserConfig(
        language=language, code=code, techniques=techniques
    )
    artifact: OptimisedCode | None = None
    if section.get("optimised_code") not in (None, ""):
        artifact = parse_optimised_code(section.get("optimised_code"), language)
    return SavedPhase(configuration=configuration, artifact=artifact)


def _section(
    payload: Mapping[str, JsonValue], key: str
) -> Mapping[str, JsonValue] | None:
    value = _first(payload, key, key.capitalize())
    if value is None or value == {}:
        return None
    if not isinstance(value, Mapping):
        raise MalformedPayloadError(f"Project section '{key}' must be an object")
    return value


def _legacy_link_key(wire: str) -> str:
    # "variablerule" -> "VariableRule"
    return wire[: -len("rule")].capitalize() + "Rule"


def _first(data: Mapping[str, JsonValue], *keys: str) -> JsonValue:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _text(value: JsonValue, default: str) -> str:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, (str, int, float)):
        return str(value)
    return default


def _string_list(value: JsonValue, field: str) -> list[str]:
    if value in (None, ""):
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedPayloadError(f"'{field}' must be a list of strings")
    return [item for item in value if isinstance(item, str)]


def _symbol_list(value: JsonValue) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str) and item]
    return []


def _object_list(value: JsonValue) -> list[Mapping[str, JsonValue]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]
