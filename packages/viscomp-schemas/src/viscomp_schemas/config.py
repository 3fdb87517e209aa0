"""Configuration schemas for viscomp sessions and project files."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from viscomp_schemas.base import BaseSchema
from viscomp_schemas.phases import (
    AnalyserRuleSet,
    Grammar,
    LexerConfig,
    OptimiserConfig,
    PhaseConfiguration,
    SourceConfig,
    TranslatorRuleSet,
)
from viscomp_schemas.primitives import (
    ALL_PHASES,
    GrammarLinkPolicy,
    LogLevel,
    LogSinkType,
    PhaseName,
)

DEFAULT_SERVICE_URL = "http://localhost:8080/api"


class ServiceConfig(BaseSchema):
    """Remote compiler service connection settings."""

    base_url: str = Field(DEFAULT_SERVICE_URL, description="Service base URL")
    timeout_s: float = Field(30.0, gt=0, description="Request timeout in seconds")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Ensure the base URL is an absolute HTTP(S) URL.

        Returns:
            str: URL without a trailing slash.

        Raises:
            ValueError: If the URL scheme is not http or https.
        """
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value.rstrip("/")


class ProjectConfig(BaseSchema):
    """Server-side project identity."""

    name: str | None = Field(None, min_length=1, description="Project name")


class RulesConfig(BaseSchema):
    """Rule validation policy."""

    grammar_link_policy: GrammarLinkPolicy = Field(
        GrammarLinkPolicy.PERMISSIVE,
        description="Whether analyser grammar links must all be filled",
    )

    @field_validator("grammar_link_policy", mode="before")
    @classmethod
    def _coerce_policy(cls, value: object) -> GrammarLinkPolicy:
        if isinstance(value, GrammarLinkPolicy):
            return value
        if isinstance(value, str):
            return GrammarLinkPolicy(value)
        return value  # type: ignore[return-value]


class LogSinkConfig(BaseSchema):
    """Configuration for a single log sink."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")
    path: str | None = Field(None, description="Output path for file sinks")
    min_level: LogLevel | None = Field(
        None, description="Lowest level written; None writes every entry"
    )

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> LogSinkType:
        if isinstance(value, LogSinkType):
            return value
        if isinstance(value, str):
            return LogSinkType(value)
        return value  # type: ignore[return-value]

    @field_validator("min_level", mode="before")
    @classmethod
    def _coerce_level(cls, value: object) -> LogLevel | None:
        if isinstance(value, str) and not isinstance(value, LogLevel):
            return LogLevel(value)
        return value  # type: ignore[return-value]

    @model_validator(mode="after")
    def validate_path(self) -> LogSinkConfig:
        """Ensure file sinks name a path.

        Returns:
            LogSinkConfig: Validated sink configuration.

        Raises:
            ValueError: If a file sink has no path.
        """
        if self.type == LogSinkType.FILE and not self.path:
            raise ValueError("file log sink requires a path")
        return self


class LoggingConfig(BaseSchema):
    """Logging configuration for sessions and CLI commands."""

    sinks: list[LogSinkConfig] = Field(
        default_factory=lambda: [LogSinkConfig(type=LogSinkType.NOOP)],
        min_length=1,
        description="Log sinks to enable",
    )

    @model_validator(mode="after")
    def validate_sink_types(self) -> LoggingConfig:
        """Ensure log sink types are unique.

        Returns:
            LoggingConfig: Validated logging configuration.

        Raises:
            ValueError: If sink types are duplicated.
        """
        sink_types = [sink.type for sink in self.sinks]
        if len(set(sink_types)) != len(sink_types):
            raise ValueError("log sinks must not contain duplicates")
        return self


class SessionConfig(BaseSchema):
    """Settings a pipeline session is built from."""

    service: ServiceConfig = Field(
        default_factory=ServiceConfig, description="Remote service settings"
    )
    project: ProjectConfig = Field(
        default_factory=ProjectConfig, description="Project identity"
    )
    rules: RulesConfig = Field(
        default_factory=RulesConfig, description="Rule validation policy"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )


class PipelineInputs(BaseSchema):
    """Per-phase configurations declared in a project file."""

    source: SourceConfig | None = Field(None, description="Source phase input")
    lexer: LexerConfig | None = Field(None, description="Lexer token rules")
    parser: Grammar | None = Field(None, description="Parser grammar")
    analyser: AnalyserRuleSet | None = Field(None, description="Analyser rules")
    translator: TranslatorRuleSet | None = Field(
        None, description="Translator rules"
    )
    optimiser: OptimiserConfig | None = Field(None, description="Optimiser input")

    def get(self, phase: PhaseName) -> PhaseConfiguration | None:
        """Return the configuration declared for a phase.

        Args:
            phase: Phase to look up.

        Returns:
            PhaseConfiguration | None: Declared configuration.
        """
        return getattr(self, PhaseName(phase).value)

    def declared_phases(self) -> list[PhaseName]:
        """Return phases with a configuration, in pipeline order.

        Returns:
            list[PhaseName]: Declared phases.
        """
        return [phase for phase in ALL_PHASES if self.get(phase) is not None]


class ProjectFile(SessionConfig):
    """Top-level project file: session settings plus phase inputs."""

    phases: PipelineInputs = Field(
        default_factory=PipelineInputs, description="Phase configurations"
    )
