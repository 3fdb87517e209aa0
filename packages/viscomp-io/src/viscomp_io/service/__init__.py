"""Compiler service adapters."""

from viscomp_io.service.http_client import HttpCompilerService
from viscomp_io.service.payloads import (
    GENERATE_PATHS,
    SUBMIT_PATHS,
    MalformedPayloadError,
    build_generate_body,
    build_submit_body,
    parse_artifact,
    parse_saved_project,
)

__all__ = [
    "GENERATE_PATHS",
    "SUBMIT_PATHS",
    "HttpCompilerService",
    "MalformedPayloadError",
    "build_generate_body",
    "build_submit_body",
    "parse_artifact",
    "parse_saved_project",
]
