"""Async HTTP client for the workspace REST API."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from skymount.core.exceptions import ApiError
from skymount.infra.http import BearerAuth, HttpClient, HttpError
from skymount.infra.retry import on_status_code, retry


def _api_error(e: HttpError) -> ApiError:
    """Translate an HTTP failure, keeping the server's own message."""
    try:
        body = json.loads(e.body)
    except ValueError:
        body = None
    if isinstance(body, dict):
        return ApiError(
            status=e.status,
            message=str(body.get("message") or body.get("error") or e.body),
            error_code=str(body.get("error_code", "")),
        )
    return ApiError(status=e.status, message=e.body or f"HTTP {e.status}")


class WorkspaceClient:
    """Async client for ``<host>/api``.

    Shared by the clusters, command execution and instance profile APIs.

    Example:
        async with WorkspaceClient(host="https://...", token="...") as client:
            data = await client.get("/2.0/clusters/list")
    """

    def __init__(self, host: str, token: str, *, timeout: float = 30.0) -> None:
        self._log = logger.bind(component="client")
        self._http = HttpClient(
            f"{host.rstrip('/')}/api",
            BearerAuth(token),
            timeout=timeout,
            default_headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> WorkspaceClient:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            return await self._http.request(method, path, json=json, params=params)
        except HttpError as e:
            self._log.debug(
                "API error {method} {path}: {status}",
                method=method, path=path, status=e.status,
            )
            raise _api_error(e) from e

    @retry(on=on_status_code(429, 503), max_attempts=3, base_delay=1.0)
    async def _retrying_request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self._request(method, path, json=json, params=params)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._retrying_request("GET", path, params=params)

    async def post(
        self,
        path: str,
        body: dict[str, Any] | None = None,
        *,
        idempotent: bool = False,
    ) -> Any:
        """POST ``body`` to ``path``.

        Only ``idempotent`` requests are retried on 429/503: a create that
        failed with 503 may still have been applied by the workspace.
        """
        request = self._retrying_request if idempotent else self._request
        return await request("POST", path, json=body or {})
