"""Remote script execution over the command execution REST API (1.2)."""

from __future__ import annotations

import re
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from skymount.core.exceptions import ApiError, CommandError
from skymount.workspace.client import WorkspaceClient
from skymount.workspace.types import CommandResultsResponse, CommandStatusResponse

_TAG_RE = re.compile(r"<[^>]+>")

TERMINAL_STATUSES = ("Finished", "Cancelled", "Error")


class _CommandPendingError(Exception):
    """Command or context still pending - retry."""


@dataclass(frozen=True, slots=True)
class CommandResults:
    """Results block of a finished command."""

    result_type: str
    data: object = None
    summary: str = ""
    cause: str = ""

    @classmethod
    def from_response(cls, data: CommandResultsResponse | None) -> CommandResults:
        data = data or {}
        return cls(
            result_type=data.get("resultType", ""),
            data=data.get("data"),
            summary=data.get("summary") or "",
            cause=data.get("cause") or "",
        )

    @property
    def failed(self) -> bool:
        return self.result_type == "error"

    def text(self) -> str:
        if self.data is None:
            return ""
        return self.data if isinstance(self.data, str) else str(self.data)

    def error_message(self) -> str:
        """Summary without markup, else the last line of the cause."""
        if self.summary:
            return _TAG_RE.sub("", self.summary).strip()
        lines = [line.strip() for line in self.cause.strip().splitlines() if line.strip()]
        return lines[-1] if lines else "Command failed without a message"

    def raise_on_failure(self) -> None:
        if self.failed:
            raise CommandError(self.error_message(), cause=self.cause)


class CommandExecutor:
    """Runs python scripts on a cluster, implementing CommandChannel.

    Every call gets its own execution context, destroyed afterwards, so
    concurrent scripts on one cluster never share interpreter state.

    Args:
        client: Workspace client.
        timeout: Upper bound for context startup and command completion.
        poll_interval: Delay between status polls.
    """

    def __init__(
        self,
        client: WorkspaceClient,
        *,
        timeout: float = 600.0,
        poll_interval: float = 1.0,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._log = logger.bind(component="commands")

    def _poller(self):
        return retry(
            stop=stop_after_delay(self._timeout),
            wait=wait_fixed(self._poll_interval),
            retry=retry_if_exception_type(_CommandPendingError),
            reraise=True,
        )

    async def execute(self, cluster_id: str, script: str) -> str:
        try:
            return await self._execute(cluster_id, script)
        except ApiError as e:
            raise CommandError(e.message) from e

    async def _execute(self, cluster_id: str, script: str) -> str:
        log = self._log.bind(cluster_id=cluster_id)
        context_id = await self._create_context(cluster_id)
        try:
            command_id = await self._client.post(
                "/1.2/commands/execute",
                {
                    "clusterId": cluster_id,
                    "contextId": context_id,
                    "language": "python",
                    "command": script,
                },
            )
            status = await self._wait_command(cluster_id, context_id, command_id["id"])
        finally:
            await self._destroy_context(cluster_id, context_id)

        results = CommandResults.from_response(status.get("results"))
        if status["status"] != "Finished" and not results.failed:
            raise CommandError(f"Command {status['status']}", cause=results.cause)
        results.raise_on_failure()
        log.trace("Command finished with {result_type} result", result_type=results.result_type)
        return results.text()

    async def _create_context(self, cluster_id: str) -> str:
        data = await self._client.post(
            "/1.2/contexts/create", {"clusterId": cluster_id, "language": "python"}
        )
        context_id: str = data["id"]

        @self._poller()
        async def _poll() -> None:
            status = await self._client.get(
                "/1.2/contexts/status",
                params={"clusterId": cluster_id, "contextId": context_id},
            )
            match status["status"]:
                case "Running":
                    return
                case "Pending":
                    raise _CommandPendingError()
                case other:
                    raise CommandError(f"Execution context is {other}")

        try:
            await _poll()
        except _CommandPendingError as e:
            await self._destroy_context(cluster_id, context_id)
            raise CommandError(
                f"Execution context not ready after {self._timeout:.0f}s"
            ) from e
        except CommandError:
            await self._destroy_context(cluster_id, context_id)
            raise
        return context_id

    async def _wait_command(
        self, cluster_id: str, context_id: str, command_id: str
    ) -> CommandStatusResponse:
        @self._poller()
        async def _poll() -> CommandStatusResponse:
            status: CommandStatusResponse = await self._client.get(
                "/1.2/commands/status",
                params={
                    "clusterId": cluster_id,
                    "contextId": context_id,
                    "commandId": command_id,
                },
            )
            if status["status"] not in TERMINAL_STATUSES:
                raise _CommandPendingError()
            return status

        try:
            return await _poll()
        except _CommandPendingError as e:
            raise CommandError(f"Command timed out after {self._timeout:.0f}s") from e

    async def _destroy_context(self, cluster_id: str, context_id: str) -> None:
        try:
            await self._client.post(
                "/1.2/contexts/destroy",
                {"clusterId": cluster_id, "contextId": context_id},
                idempotent=True,
            )
        except ApiError as e:
            self._log.warning(
                "Could not destroy context {context_id} on {cluster_id}: {error}",
                context_id=context_id, cluster_id=cluster_id, error=e.message,
            )
