"""HTTP adapter for the remote compiler service."""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from viscomp_core.ports.compiler import (
    CompilerServiceProtocol,
    ServiceAck,
    ServiceFailure,
    ServiceResult,
)
from viscomp_io.service.payloads import (
    GENERATE_PATHS,
    PROJECT_PATH,
    SUBMIT_PATHS,
    build_generate_body,
    build_submit_body,
    parse_artifact,
    parse_saved_project,
)
from viscomp_schemas.artifacts import Artifact
from viscomp_schemas.phases import PhaseConfiguration
from viscomp_schemas.primitives import (
    JsonValue,
    PhaseErrorCode,
    PhaseName,
    ProjectId,
)
from viscomp_schemas.project import SavedProject

_log = logging.getLogger(__name__)

_IDENTITY_STATUS_CODES = frozenset({401, 403})


class HttpCompilerService(CompilerServiceProtocol):
    """Compiler service client over JSON/HTTP.

    Network failures, error statuses and malformed bodies are reported as
    ServiceFailure values; nothing here raises for a failed call.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout_s: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Service root URL.
            token: Bearer token sent with every request.
            timeout_s: Request timeout when no client is injected.
            http_client: Optional pre-configured HTTP client for dependency
                injection. If None, a client is created per call.
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout_s = timeout_s
        self._http_client = http_client

    async def submit_configuration(
        self,
        phase: PhaseName,
        project_id: ProjectId,
        configuration: PhaseConfiguration,
    ) -> ServiceResult[ServiceAck]:
        """Store a phase configuration server-side.

        Analyser rules have no storage route of their own; they travel with
        the analysis request, so their submit is acknowledged locally.

        Args:
            phase: Phase being submitted.
            project_id: Server-side project name.
            configuration: Configuration to store.

        Returns:
            ServiceResult[ServiceAck]: Acknowledgement or failure.
        """
        phase = PhaseName(phase)
        path = SUBMIT_PATHS.get(phase)
        if path is None:
            return ServiceResult[ServiceAck](
                value=ServiceAck(message=f"Phase {phase} stored locally")
            )
        body = build_submit_body(configuration, project_id)
        response = await self._post(path, body)
        if isinstance(response, ServiceFailure):
            return ServiceResult[ServiceAck](failure=response)
        message = response.get("message")
        return ServiceResult[ServiceAck](
            value=ServiceAck(message=message if isinstance(message, str) else None)
        )

    async def generate_artifact(
        self,
        phase: PhaseName,
        project_id: ProjectId,
        configuration: PhaseConfiguration | None = None,
    ) -> ServiceResult[Artifact]:
        """Generate a phase artifact.

        Args:
            phase: Phase to generate.
            project_id: Server-side project name.
            configuration: Submitted configuration snapshot.

        Returns:
            ServiceResult[Artifact]: Parsed artifact or failure.
        """
        phase = PhaseName(phase)
        path = GENERATE_PATHS.get(phase)
        if path is None:
            return ServiceResult[Artifact](
                failure=ServiceFailure(
                    kind=PhaseErrorCode.SERVICE,
                    message=f"Phase {phase} is generated locally",
                )
            )
        body = build_generate_body(phase, project_id, configuration)
        response = await self._post(path, body)
        if isinstance(response, ServiceFailure):
            return ServiceResult[Artifact](failure=response)
        try:
            artifact = parse_artifact(phase, response, configuration)
        except ValueError as exc:
            _log.warning("Malformed %s response from %s: %s", phase, path, exc)
            return ServiceResult[Artifact](
                failure=ServiceFailure(
                    kind=PhaseErrorCode.SERVICE,
                    message=f"Malformed response: {exc}",
                )
            )
        return ServiceResult[Artifact](value=artifact)

    async def fetch_project(
        self, project_id: ProjectId
    ) -> ServiceResult[SavedProject]:
        """Load a saved project document.

        Args:
            project_id: Server-side project name.

        Returns:
            ServiceResult[SavedProject]: Saved project or failure.
        """
        response = await self._request(
            "GET", PROJECT_PATH, None, params={"project_name": project_id}
        )
        if isinstance(response, ServiceFailure):
            return ServiceResult[SavedProject](failure=response)
        results = response.get("results")
        document: dict[str, JsonValue] = (
            dict(results) if isinstance(results, Mapping) else {}
        )
        document.setdefault("project_name", project_id)
        try:
            project = parse_saved_project(document)
        except ValueError as exc:
            return ServiceResult[SavedProject](
                failure=ServiceFailure(
                    kind=PhaseErrorCode.SERVICE,
                    message=f"Malformed project: {exc}",
                )
            )
        return ServiceResult[SavedProject](value=project)

    async def _post(
        self, path: str, body: dict[str, JsonValue]
    ) -> dict[str, JsonValue] | ServiceFailure:
        return await self._request("POST", path, body)

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, JsonValue] | None,
        params: dict[str, str] | None = None,
    ) -> dict[str, JsonValue] | ServiceFailure:
        if self._http_client is not None:
            return await self._send(self._http_client, method, path, body, params)
        async with httpx.AsyncClient(timeout=self._timeout_s) as client:
            return await self._send(client, method, path, body, params)

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        body: dict[str, JsonValue] | None,
        params: dict[str, str] | None = None,
    ) -> dict[str, JsonValue] | ServiceFailure:
        """Send a request and decode the JSON object it returns.

        Args:
            client: HTTP client to use.
            method: HTTP method.
            path: Path relative to the base URL.
            body: JSON body, if any.
            params: Query parameters, if any.

        Returns:
            dict | ServiceFailure: Decoded body or classified failure.
        """
        url = f"{self._base_url}{path}"
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            response = await client.request(
                method, url, json=body, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            _log.warning("%s %s timed out", method, url)
            return ServiceFailure(
                kind=PhaseErrorCode.TRANSPORT,
                message=f"Request timed out: {exc}",
            )
        except httpx.HTTPError as exc:
            _log.warning("%s %s failed: %s", method, url, exc)
            return ServiceFailure(
                kind=PhaseErrorCode.TRANSPORT,
                message=f"Request failed: {exc}",
            )
        payload = _decode(response)
        if response.status_code in _IDENTITY_STATUS_CODES:
            return ServiceFailure(
                kind=PhaseErrorCode.IDENTITY,
                message=_error_message(payload, "Unauthorized"),
                status_code=response.status_code,
                details=payload,
            )
        if not response.is_success:
            return ServiceFailure(
                kind=PhaseErrorCode.TRANSPORT,
                message=_error_message(
                    payload, f"Service returned HTTP {response.status_code}"
                ),
                status_code=response.status_code,
                details=payload,
            )
        if payload is None:
            return ServiceFailure(
                kind=PhaseErrorCode.SERVICE,
                message="Malformed response: body is not a JSON object",
                status_code=response.status_code,
            )
        if "error" in payload:
            return ServiceFailure(
                kind=PhaseErrorCode.SERVICE,
                message=_error_message(payload, "Service reported an error"),
                status_code=response.status_code,
                details=payload,
            )
        return payload


def _decode(response: httpx.Response) -> dict[str, JsonValue] | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return dict(payload) if isinstance(payload, Mapping) else None


def _error_message(payload: Mapping[str, JsonValue] | None, fallback: str) -> str:
    if payload is None:
        return fallback
    error = payload.get("error")
    details = payload.get("details")
    if not isinstance(error, str) or not error.strip():
        return fallback
    error = error.strip()
    if isinstance(details, str) and details.strip():
        return f"{error}: {details.strip()}"
    return error
