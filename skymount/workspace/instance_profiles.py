"""Instance profile registration over the instance-profiles REST API (2.0)."""

from __future__ import annotations

from loguru import logger

from skymount.core.exceptions import ApiError
from skymount.workspace.arn import validate_instance_profile_arn
from skymount.workspace.client import WorkspaceClient
from skymount.workspace.types import InstanceProfileListResponse


class InstanceProfilesAPI:
    """Instance profiles REST API, implementing the IdentityManager protocol.

    ``create`` is create-if-absent, so it is safe to call from every
    orchestration run; concurrent calls for one ARN are serialized by
    SharedResourceGuard.
    """

    def __init__(self, client: WorkspaceClient, *, skip_validation: bool = False) -> None:
        self._client = client
        self._skip_validation = skip_validation
        self._log = logger.bind(component="instance_profiles")

    async def list(self) -> list[str]:
        data: InstanceProfileListResponse | None = await self._client.get(
            "/2.0/instance-profiles/list"
        )
        return [p["instance_profile_arn"] for p in (data or {}).get("instance_profiles", [])]

    async def exists(self, arn: str) -> bool:
        return arn in await self.list()

    async def create(self, arn: str) -> bool:
        validate_instance_profile_arn(arn)
        if await self.exists(arn):
            self._log.debug("Instance profile {arn} already registered", arn=arn)
            return True

        self._log.info("Registering instance profile {arn}", arn=arn)
        try:
            await self._client.post(
                "/2.0/instance-profiles/add",
                {"instance_profile_arn": arn, "skip_validation": self._skip_validation},
                idempotent=True,
            )
        except ApiError as e:
            if not e.already_exists:
                raise
            self._log.debug("Instance profile {arn} registered concurrently", arn=arn)
        return True

    async def delete(self, arn: str) -> None:
        self._log.info("Removing instance profile {arn}", arn=arn)
        try:
            await self._client.post(
                "/2.0/instance-profiles/remove", {"instance_profile_arn": arn}, idempotent=True
            )
        except ApiError as e:
            if not e.is_not_found:
                raise
