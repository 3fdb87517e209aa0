"""CLI exit code taxonomy and error-to-exit-code registry.

Exit code ranges:
- 0: Success
- 10-19: Client/input errors (config, validation)
- 20-29: Pipeline state errors
- 30-39: Remote service errors (transport, identity)
- 99: Unexpected runtime errors
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """CLI exit codes by failure category."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    VALIDATION_ERROR = 11
    PIPELINE_ERROR = 20
    SERVICE_ERROR = 30
    IDENTITY_ERROR = 31
    RUNTIME_ERROR = 99


# Domain error codes are qualified with a domain prefix; CLI-level codes are
# stored without one.
ERROR_CODE_TO_EXIT_CODE: dict[str, ExitCode] = {
    # --- CLI-level codes (no prefix) ---
    "config_error": ExitCode.CONFIG_ERROR,
    "validation_error": ExitCode.VALIDATION_ERROR,
    "runtime_error": ExitCode.RUNTIME_ERROR,
    # --- Pipeline domain ---
    "pipeline.phase_locked": ExitCode.PIPELINE_ERROR,
    "pipeline.request_in_flight": ExitCode.PIPELINE_ERROR,
    "pipeline.invalid_state": ExitCode.PIPELINE_ERROR,
    "pipeline.missing_configuration": ExitCode.PIPELINE_ERROR,
    # --- Phase failures recorded from the remote service ---
    "phase.transport": ExitCode.SERVICE_ERROR,
    "phase.service": ExitCode.SERVICE_ERROR,
    "phase.identity": ExitCode.IDENTITY_ERROR,
}


def resolve_exit_code(error_code: str, *, domain: str | None = None) -> ExitCode:
    """Resolve an error code string to its ExitCode.

    Args:
        error_code: The error code string (e.g. "validation_error",
            "phase_locked").
        domain: Optional domain prefix (e.g. "pipeline", "phase").
            When provided, the lookup uses ``"{domain}.{error_code}"``
            first, falling back to an unqualified lookup.

    Returns:
        The matching ExitCode, or RUNTIME_ERROR if no mapping is found.
    """
    if domain:
        qualified = f"{domain}.{error_code}"
        if qualified in ERROR_CODE_TO_EXIT_CODE:
            return ERROR_CODE_TO_EXIT_CODE[qualified]

    if error_code in ERROR_CODE_TO_EXIT_CODE:
        return ERROR_CODE_TO_EXIT_CODE[error_code]

    return ExitCode.RUNTIME_ERROR
