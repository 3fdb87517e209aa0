"""CLI entry point - thin adapter over viscomp-core."""

from __future__ import annotations

import asyncio
import json
import sys
import tomllib
from datetime import UTC, datetime
from pathlib import Path
from typing import NamedTuple, TypeVar
from uuid import uuid4

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from viscomp_core import VERSION
from viscomp_core.hydrate import hydrate_session
from viscomp_core.ports.pipeline import (
    LogSinkProtocol,
    PipelineError,
    build_command_completed_log,
    build_command_failed_log,
    build_command_started_log,
)
from viscomp_core.rules import check_terminal_coverage, validate_configuration
from viscomp_core.session import ActionOutcome, OutcomeStatus, PipelineSession
from viscomp_io.service.http_client import HttpCompilerService
from viscomp_io.settings import get_settings
from viscomp_io.storage.log_sink import build_log_sink
from viscomp_schemas.artifacts import TokenSet
from viscomp_schemas.config import ProjectFile, RulesConfig
from viscomp_schemas.exit_codes import ExitCode, resolve_exit_code
from viscomp_schemas.logs import LogEntry
from viscomp_schemas.phases import Grammar
from viscomp_schemas.primitives import (
    GrammarLinkPolicy,
    JsonValue,
    PhaseName,
    PhaseStatus,
    SessionId,
)
from viscomp_schemas.redaction import Redactor
from viscomp_schemas.responses import (
    ApiResponse,
    CheckResult,
    ErrorResponse,
    MetaInfo,
    RunResult,
)
from viscomp_schemas.validation import (
    validate_artifact,
    validate_phase_configuration,
    validate_project_file,
)

PROJECT_ARGUMENT = typer.Argument(..., help="Path to a viscomp project TOML file")
PHASE_ARGUMENT = typer.Argument(..., help="Phase the configuration belongs to")
PHASE_CONFIG_ARGUMENT = typer.Argument(
    ..., help="Phase configuration file (TOML or JSON)"
)
PROJECT_OPTION = typer.Option(
    None, "--project", "-p", help="Server-side project name"
)
RESUME_OPTION = typer.Option(
    False, "--resume", help="Load the saved project before running"
)
POLICY_OPTION = typer.Option(
    None,
    "--grammar-link-policy",
    help="Grammar link policy for analyser rules (permissive|strict)",
)
TOKENS_OPTION = typer.Option(
    None,
    "--tokens",
    help="Token set JSON used for advisory terminal coverage notes",
)

ResponseT = TypeVar("ResponseT")

app = typer.Typer(
    help="Visual compiler pipeline driver",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """Viscomp CLI."""


@app.command()
def version() -> None:
    """Display version information."""
    rprint(f"[bold]viscomp[/bold] v{VERSION}")


@app.command()
def check(
    phase: PhaseName = PHASE_ARGUMENT,
    config_path: Path = PHASE_CONFIG_ARGUMENT,
    policy: GrammarLinkPolicy | None = POLICY_OPTION,
    tokens_path: Path | None = TOKENS_OPTION,
) -> None:
    """Validate one phase configuration offline.

    Raises:
        typer.Exit: When the configuration is invalid or cannot be loaded.
    """
    exit_code = ExitCode.SUCCESS
    response: ApiResponse[CheckResult]
    try:
        payload = _load_document(config_path)
        configuration = validate_phase_configuration(phase, payload)
        rules = (
            RulesConfig(grammar_link_policy=policy)
            if policy is not None
            else RulesConfig()
        )
        result = validate_configuration(phase, configuration, rules)
        notes: list[str] = []
        if tokens_path is not None and isinstance(configuration, Grammar):
            tokens = validate_artifact(_load_document(tokens_path))
            if not isinstance(tokens, TokenSet):
                raise _ConfigError(f"Not a token set: {tokens_path}")
            notes = [
                note.message
                for note in check_terminal_coverage(configuration, tokens)
            ]
        violation = result.violation
        data = CheckResult(
            phase=phase,
            ok=result.ok,
            code=str(violation.code) if violation is not None else None,
            message=violation.message if violation is not None else None,
            notes=notes,
        )
        response = ApiResponse(
            data=data, error=None, meta=MetaInfo(timestamp=_now_timestamp())
        )
        if violation is not None:
            exit_code = ExitCode.VALIDATION_ERROR
    except Exception as exc:
        error = _error_from_exception(exc)
        response = _error_response(error)
        exit_code = resolve_exit_code(error.code)
    print(response.model_dump_json())
    if exit_code != ExitCode.SUCCESS:
        raise typer.Exit(code=int(exit_code))


@app.command()
def run(
    project_path: Path = PROJECT_ARGUMENT,
    project: str | None = PROJECT_OPTION,
    resume: bool = RESUME_OPTION,
) -> None:
    """Submit and generate every phase declared in a project file.

    Phases run in pipeline order and the run stops at the first phase that
    does not reach Generated.

    Raises:
        typer.Exit: When the run fails.
    """
    command_session_id: SessionId = uuid4()
    log_sink: LogSinkProtocol | None = None
    exit_code = ExitCode.SUCCESS
    response: ApiResponse[RunResult]
    try:
        config = _load_project_file(project_path)
        bundle = _build_run_bundle(config, project)
        log_sink = bundle.log_sink
        command_session_id = bundle.session.session_id
        _emit_command_log_sync(
            log_sink,
            build_command_started_log(_now_timestamp(), command_session_id, "run"),
        )
        outcome = asyncio.run(
            _run_async(
                session=bundle.session,
                service=bundle.service,
                config=config,
                resume=resume,
            )
        )
        if outcome.failure is None:
            _emit_command_log_sync(
                log_sink,
                build_command_completed_log(
                    _now_timestamp(), command_session_id, "run"
                ),
            )
            response = ApiResponse(
                data=outcome.result,
                error=None,
                meta=MetaInfo(timestamp=_now_timestamp()),
            )
        else:
            error, exit_code = _error_from_outcome(outcome.failure)
            _emit_command_log_sync(
                log_sink,
                build_command_failed_log(
                    _now_timestamp(),
                    command_session_id,
                    "run",
                    error.code,
                    error.message,
                ),
            )
            response = ApiResponse(
                data=outcome.result,
                error=error,
                meta=MetaInfo(timestamp=_now_timestamp()),
            )
    except Exception as exc:
        error = _error_from_exception(exc)
        domain = "pipeline" if isinstance(exc, PipelineError) else None
        exit_code = resolve_exit_code(error.code, domain=domain)
        if log_sink is not None:
            _emit_command_log_sync(
                log_sink,
                build_command_failed_log(
                    _now_timestamp(),
                    command_session_id,
                    "run",
                    error.code,
                    error.message,
                ),
            )
        response = _error_response(error)
    if _should_render_summary():
        _render_run_summary(response, console=Console(stderr=True))
    print(response.model_dump_json())
    if exit_code != ExitCode.SUCCESS:
        raise typer.Exit(code=int(exit_code))


class _ConfigError(Exception):
    """Raised for CLI configuration issues."""


class _ServiceLoadError(Exception):
    """Raised when the saved project cannot be loaded from the service."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class _RunBundle(NamedTuple):
    session: PipelineSession
    service: HttpCompilerService
    log_sink: LogSinkProtocol


class _RunOutcome(NamedTuple):
    result: RunResult
    failure: ActionOutcome | None


async def _run_async(
    *,
    session: PipelineSession,
    service: HttpCompilerService,
    config: ProjectFile,
    resume: bool,
) -> _RunOutcome:
    if resume:
        await _resume_session(session, service)
    completed: list[PhaseName] = []
    for phase in config.phases.declared_phases():
        configuration = config.phases.get(phase)
        if configuration is None:
            continue
        await session.configure(phase, configuration)
        if session.store(phase).status == PhaseStatus.GENERATED:
            completed.append(phase)
            continue
        for action in (session.submit, session.generate):
            outcome = await action(phase)
            if not outcome.ok:
                return _RunOutcome(
                    result=RunResult(
                        completed_phases=completed,
                        failed_phase=phase,
                        snapshot=session.snapshot(),
                    ),
                    failure=outcome,
                )
        completed.append(phase)
    return _RunOutcome(
        result=RunResult(completed_phases=completed, snapshot=session.snapshot()),
        failure=None,
    )


async def _resume_session(
    session: PipelineSession, service: HttpCompilerService
) -> None:
    project_id = session.project_id
    if project_id is None:
        raise _ConfigError("--resume requires a project name")
    loaded = await service.fetch_project(project_id)
    if loaded.failure is not None:
        raise _ServiceLoadError(
            f"phase.{loaded.failure.kind}", loaded.failure.message
        )
    if loaded.value is not None:
        await hydrate_session(session, loaded.value)


def _build_run_bundle(config: ProjectFile, project: str | None) -> _RunBundle:
    settings = get_settings()
    token = settings.token_value()
    base_url = settings.api_url or config.service.base_url
    project_id = project or settings.project or config.project.name
    redactor = Redactor([token]) if token else None
    log_sink = build_log_sink(config.logging, redactor=redactor)
    service = HttpCompilerService(
        base_url=base_url, token=token, timeout_s=config.service.timeout_s
    )
    session = PipelineSession(
        service,
        project_id,
        rules_config=config.rules,
        log_sink=log_sink,
    )
    return _RunBundle(session=session, service=service, log_sink=log_sink)


def _load_project_file(project_path: Path) -> ProjectFile:
    _load_dotenv(project_path)
    payload = _load_toml(project_path)
    try:
        return validate_project_file(payload)
    except ValidationError as exc:
        raise _ConfigError(f"Invalid project file: {_first_error(exc)}") from exc


def _load_dotenv(config_path: Path) -> None:
    env_path = config_path.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
        get_settings.cache_clear()


def _load_toml(path: Path) -> dict[str, JsonValue]:
    if not path.exists():
        raise _ConfigError(f"Config not found: {path}")
    try:
        with open(path, "rb") as handle:
            payload: dict[str, JsonValue] = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise _ConfigError(f"Failed to read config: {exc}") from exc
    return payload


def _load_document(path: Path) -> dict[str, JsonValue]:
    if path.suffix.lower() != ".json":
        return _load_toml(path)
    if not path.exists():
        raise _ConfigError(f"Config not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise _ConfigError(f"Failed to read config: {exc}") from exc
    if not isinstance(payload, dict):
        raise _ConfigError("Config root must be a JSON object")
    return payload


def _emit_command_log_sync(log_sink: LogSinkProtocol, entry: LogEntry) -> None:
    asyncio.run(log_sink.emit_log(entry))


def _now_timestamp() -> str:
    timestamp = datetime.now(UTC).isoformat()
    return timestamp.replace("+00:00", "Z")


def _error_from_outcome(outcome: ActionOutcome) -> tuple[ErrorResponse, ExitCode]:
    if outcome.status == OutcomeStatus.REJECTED and outcome.violation is not None:
        return (
            ErrorResponse(
                code="validation_error",
                message=outcome.violation.message,
                details=None,
            ),
            ExitCode.VALIDATION_ERROR,
        )
    if outcome.error is not None:
        code = str(outcome.error.code)
        return (
            ErrorResponse(
                code=f"phase.{code}", message=outcome.error.message, details=None
            ),
            resolve_exit_code(code, domain="phase"),
        )
    return (
        ErrorResponse(
            code="runtime_error",
            message=f"Phase {outcome.phase} {outcome.action} ended {outcome.status}",
            details=None,
        ),
        ExitCode.RUNTIME_ERROR,
    )


def _error_response(error: ErrorResponse) -> ApiResponse[ResponseT]:
    return ApiResponse(
        data=None,
        error=error,
        meta=MetaInfo(timestamp=_now_timestamp()),
    )


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = first.get("loc", [])
    label = ".".join(str(part) for part in loc) if loc else ""
    detail = first.get("msg", "")
    return f"{label} - {detail}" if label else detail


def _error_from_exception(exc: Exception) -> ErrorResponse:
    if isinstance(exc, PipelineError):
        return exc.info.to_error_response()
    if isinstance(exc, _ServiceLoadError):
        return ErrorResponse(code=exc.code, message=str(exc), details=None)
    if isinstance(exc, ValidationError):
        return ErrorResponse(
            code="validation_error",
            message=f"Validation failed: {_first_error(exc)}",
            details=None,
        )
    if isinstance(exc, _ConfigError):
        return ErrorResponse(code="config_error", message=str(exc), details=None)
    if isinstance(exc, ValueError):
        return ErrorResponse(code="validation_error", message=str(exc), details=None)
    return ErrorResponse(code="runtime_error", message=str(exc), details=None)


def _should_render_summary() -> bool:
    return sys.stderr.isatty()


def _render_run_summary(
    response: ApiResponse[RunResult], *, console: Console
) -> None:
    result = response.data
    if result is not None:
        table = Table.grid(padding=(0, 1))
        table.add_column(justify="right", style="bold")
        table.add_column()
        for state in result.snapshot.phases:
            table.add_row(str(state.phase), str(state.status))
        console.print(Panel(table, title="viscomp run", expand=False))
    if response.error is not None:
        console.print(f"[red]Error:[/red] {response.error.message}")


if __name__ == "__main__":
    app()
