"""Integration tests for the viscomp CLI with mocked HTTP."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import httpx
import pytest
import respx
from typer.testing import CliRunner

from viscomp_cli.main import app
from viscomp_core import VERSION

runner = CliRunner()

BASE_URL = "http://compiler.test/api"

PROJECT_TOML = textwrap.dedent(
    f"""
    [service]
    base_url = "{BASE_URL}"

    [project]
    name = "demo"

    [phases.source]
    code = "int x = 5;"

    [phases.lexer]
    rules = [
        {{ type = "KEYWORD", regex = "int" }},
        {{ type = "IDENTIFIER", regex = "[a-z]+" }},
    ]
    """
)

TOKENS_BODY = {
    "tokens": [
        {"type": "KEYWORD", "value": "int"},
        {"type": "IDENTIFIER", "value": "x"},
    ],
    "tokens_unidentified": [],
}


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


def _response(stdout: str) -> dict:
    return json.loads(stdout.strip().splitlines()[-1])


def _mock_service(router: respx.MockRouter) -> None:
    router.post("/lexing/code").mock(
        return_value=httpx.Response(200, json={"message": "stored"})
    )
    router.post("/lexing/rules").mock(
        return_value=httpx.Response(200, json={"message": "stored"})
    )
    router.post("/lexing/lexer").mock(
        return_value=httpx.Response(200, json=TOKENS_BODY)
    )


@pytest.mark.integration
def test_version() -> None:
    """Version prints the package version."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert str(VERSION) in result.stdout


@pytest.mark.integration
def test_check_accepts_valid_lexer_rules(tmp_path: Path) -> None:
    """A well-formed configuration passes with exit code 0."""
    config = _write(
        tmp_path / "lexer.toml",
        'rules = [{ type = "INT", regex = "[0-9]+" }]\n',
    )
    result = runner.invoke(app, ["check", "lexer", str(config)])
    assert result.exit_code == 0
    payload = _response(result.stdout)
    assert payload["error"] is None
    assert payload["data"]["ok"] is True
    assert payload["data"]["phase"] == "lexer"


@pytest.mark.integration
def test_check_reports_grammar_violation(tmp_path: Path) -> None:
    """An empty grammar fails with the validation exit code."""
    config = _write(
        tmp_path / "grammar.json",
        json.dumps({"variables": ["S"], "start": "S", "rules": []}),
    )
    result = runner.invoke(app, ["check", "parser", str(config)])
    assert result.exit_code == 11
    payload = _response(result.stdout)
    assert payload["data"]["ok"] is False
    assert payload["data"]["code"] == "empty_grammar"
    assert payload["data"]["message"].startswith("Empty grammar")


@pytest.mark.integration
def test_check_adds_terminal_notes(tmp_path: Path) -> None:
    """Terminals missing from a token set are reported without failing."""
    grammar = _write(
        tmp_path / "grammar.json",
        json.dumps(
            {
                "variables": ["S"],
                "terminals": ["KEYWORD", "NUMBER"],
                "start": "S",
                "rules": [{"lhs": "S", "rhs": ["KEYWORD", "NUMBER"]}],
            }
        ),
    )
    tokens = _write(
        tmp_path / "tokens.json",
        json.dumps(
            {"kind": "token_set", "tokens": [{"type": "KEYWORD", "value": "int"}]}
        ),
    )
    result = runner.invoke(
        app, ["check", "parser", str(grammar), "--tokens", str(tokens)]
    )
    assert result.exit_code == 0
    notes = _response(result.stdout)["data"]["notes"]
    assert len(notes) == 1
    assert "NUMBER" in notes[0]


@pytest.mark.integration
def test_check_missing_file_is_config_error(tmp_path: Path) -> None:
    """A missing configuration file exits with the config error code."""
    result = runner.invoke(app, ["check", "lexer", str(tmp_path / "nope.toml")])
    assert result.exit_code == 10
    payload = _response(result.stdout)
    assert payload["data"] is None
    assert payload["error"]["code"] == "config_error"


@pytest.mark.integration
def test_run_generates_declared_phases(tmp_path: Path) -> None:
    """Every declared phase is submitted and generated in order."""
    project = _write(tmp_path / "viscomp.toml", PROJECT_TOML)
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        _mock_service(router)
        result = runner.invoke(app, ["run", str(project)])

    assert result.exit_code == 0, result.stdout
    payload = _response(result.stdout)
    assert payload["error"] is None
    assert payload["data"]["completed_phases"] == ["source", "lexer"]
    phases = {state["phase"]: state for state in payload["data"]["snapshot"]["phases"]}
    assert phases["lexer"]["status"] == "generated"
    assert phases["lexer"]["artifact"]["tokens"][1]["value"] == "x"
    assert phases["parser"]["status"] == "idle"


@pytest.mark.integration
def test_run_writes_jsonl_log_and_sends_token(tmp_path: Path) -> None:
    """File logs capture the run and the bearer token is redacted."""
    log_path = tmp_path / "logs" / "run.jsonl"
    project = _write(
        tmp_path / "viscomp.toml",
        PROJECT_TOML
        + textwrap.dedent(
            f"""
            [logging]
            sinks = [{{ type = "file", path = "{log_path.as_posix()}" }}]
            """
        ),
    )
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        _mock_service(router)
        result = runner.invoke(
            app,
            ["run", str(project)],
            env={"VISCOMP_API_TOKEN": "tok-abcdef123456"},
        )
        request = router.calls.last.request

    assert result.exit_code == 0, result.stdout
    assert request.headers["Authorization"] == "Bearer tok-abcdef123456"
    contents = log_path.read_text(encoding="utf-8")
    assert "tok-abcdef123456" not in contents
    events = [json.loads(line)["event"] for line in contents.splitlines()]
    assert events[0] == "command_started"
    assert events[-1] == "command_completed"
    assert "source_generated" in events
    assert "lexer_generated" in events


@pytest.mark.integration
def test_run_stops_at_failed_phase(tmp_path: Path) -> None:
    """A server error stops the run with the service exit code."""
    project = _write(tmp_path / "viscomp.toml", PROJECT_TOML)
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        _mock_service(router)
        router.post("/lexing/lexer").mock(
            return_value=httpx.Response(500, json={"error": "Lexing failed"})
        )
        result = runner.invoke(app, ["run", str(project)])

    assert result.exit_code == 30
    payload = _response(result.stdout)
    assert payload["error"]["code"] == "phase.transport"
    assert payload["error"]["message"] == "Lexing failed"
    assert payload["data"]["completed_phases"] == ["source"]
    assert payload["data"]["failed_phase"] == "lexer"


@pytest.mark.integration
def test_run_auth_failure_uses_identity_exit_code(tmp_path: Path) -> None:
    """An unauthorized response exits with the identity code."""
    project = _write(tmp_path / "viscomp.toml", PROJECT_TOML)
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.post("/lexing/code").mock(
            return_value=httpx.Response(401, json={"error": "Unauthorized"})
        )
        result = runner.invoke(app, ["run", str(project)])

    assert result.exit_code == 31
    assert _response(result.stdout)["error"]["code"] == "phase.identity"


@pytest.mark.integration
def test_run_without_project_is_identity_error(tmp_path: Path) -> None:
    """Nothing is sent when no project name is configured."""
    project = _write(
        tmp_path / "viscomp.toml",
        PROJECT_TOML.replace('[project]\nname = "demo"\n', ""),
    )
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        result = runner.invoke(app, ["run", str(project)])
        assert router.calls.call_count == 0

    assert result.exit_code == 31
    payload = _response(result.stdout)
    assert payload["error"]["message"].startswith("No project selected")


@pytest.mark.integration
def test_run_project_option_overrides_file(tmp_path: Path) -> None:
    """The --project option names the server-side project."""
    project = _write(tmp_path / "viscomp.toml", PROJECT_TOML)
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        _mock_service(router)
        result = runner.invoke(app, ["run", str(project), "-p", "other"])
        body = json.loads(router.calls.last.request.content)

    assert result.exit_code == 0
    assert body["project_name"] == "other"
    assert _response(result.stdout)["data"]["snapshot"]["project_id"] == "other"


@pytest.mark.integration
def test_run_rejects_invalid_grammar(tmp_path: Path) -> None:
    """A grammar that breaks the rules stops the run before sending it."""
    project = _write(
        tmp_path / "viscomp.toml",
        PROJECT_TOML
        + textwrap.dedent(
            """
            [phases.parser]
            variables = ["S"]
            start = "S"
            rules = []
            """
        ),
    )
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        _mock_service(router)
        grammar_route = router.post("/parsing/grammar")
        result = runner.invoke(app, ["run", str(project)])

    assert result.exit_code == 11
    assert not grammar_route.called
    payload = _response(result.stdout)
    assert payload["error"]["code"] == "validation_error"
    assert payload["data"]["failed_phase"] == "parser"


@pytest.mark.integration
def test_run_resume_skips_saved_phases(tmp_path: Path) -> None:
    """Phases already generated on the server are not sent again."""
    project = _write(tmp_path / "viscomp.toml", PROJECT_TOML)
    saved = {
        "results": {
            "lexing": {
                "code": "int x = 5;",
                "pairs": [
                    {"type": "KEYWORD", "regex": "int"},
                    {"type": "IDENTIFIER", "regex": "[a-z]+"},
                ],
                **TOKENS_BODY,
            }
        }
    }
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        _mock_service(router)
        load_route = router.get("/users/getProject").mock(
            return_value=httpx.Response(200, json=saved)
        )
        result = runner.invoke(app, ["run", str(project), "--resume"])
        posted = [call for call in router.calls if call.request.method == "POST"]

    assert result.exit_code == 0, result.stdout
    assert load_route.called
    assert posted == []
    assert _response(result.stdout)["data"]["completed_phases"] == ["source", "lexer"]


@pytest.mark.integration
def test_run_resume_load_failure(tmp_path: Path) -> None:
    """A saved project that cannot be loaded fails the run."""
    project = _write(tmp_path / "viscomp.toml", PROJECT_TOML)
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.get("/users/getProject").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )
        result = runner.invoke(app, ["run", str(project), "--resume"])

    assert result.exit_code == 30
    assert _response(result.stdout)["error"]["code"] == "phase.transport"


@pytest.mark.integration
def test_run_invalid_project_file(tmp_path: Path) -> None:
    """Schema errors in the project file are config errors."""
    project = _write(
        tmp_path / "viscomp.toml",
        '[service]\nbase_url = "ftp://nowhere"\n',
    )
    result = runner.invoke(app, ["run", str(project)])
    assert result.exit_code == 10
    payload = _response(result.stdout)
    assert payload["error"]["code"] == "config_error"
    assert "base_url" in payload["error"]["message"]
