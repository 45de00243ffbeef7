"""Mount lifecycle orchestration.

Ties cluster resolution, shared credential registration and MountPoint
together. The only state a caller persists is a MountRecord: name, cluster
id and declared spec. The live mount is always re-derived from the cluster.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, replace

from loguru import logger

from skymount.core.exceptions import ApiError, ClusterUnavailable, ValidationError
from skymount.mounts.guard import SharedResourceGuard, shared_guard
from skymount.mounts.mount import Mounted, MountPoint, NotFound
from skymount.mounts.resolver import ClusterRequirements, ClusterResolver
from skymount.mounts.scripts import validate_mount_name
from skymount.mounts.spec import MountSpec, S3IamMount
from skymount.protocols import CommandChannel, IdentityManager


@dataclass(frozen=True, slots=True)
class MountRecord:
    """Persisted view of one declared mount.

    Args:
        name: Mount name, mounted at ``/mnt/<name>``.
        spec: Declared mount source.
        cluster_id: Cluster the mount was created through. When None, a
            matching cluster is found or provisioned.
        source: Effective source URI, empty until created.
    """

    name: str
    spec: MountSpec
    cluster_id: str | None = None
    source: str = ""


class MountOrchestrator:
    def __init__(
        self,
        resolver: ClusterResolver,
        channel: CommandChannel,
        profiles: IdentityManager,
        guard: SharedResourceGuard = shared_guard,
    ) -> None:
        self._resolver = resolver
        self._channel = channel
        self._profiles = profiles
        self._guard = guard
        self._log = logger.bind(component="orchestrator")

    async def create(self, record: MountRecord) -> MountRecord:
        """Create the mount and return the record with cluster and source set.

        The input record is never modified, so on failure the caller's
        tracked source stays empty.
        """
        requirements = self._validate(record)

        if record.cluster_id is None and requirements.instance_profile_arn:
            await self._register_profile(requirements.instance_profile_arn)

        cluster = await self._resolver.resolve(requirements, cluster_id=record.cluster_id)
        mounted = await MountPoint(self._channel, cluster.cluster_id, record.name).create(
            record.spec
        )
        return replace(record, cluster_id=cluster.cluster_id, source=mounted.source)

    async def read(self, record: MountRecord) -> MountRecord | None:
        """Refresh ``record`` from the cluster; None means the mount is gone."""
        requirements = self._validate(record)
        cluster = await self._resolver.resolve(requirements, cluster_id=record.cluster_id)

        match await MountPoint(self._channel, cluster.cluster_id, record.name).read():
            case Mounted(source):
                return replace(record, cluster_id=cluster.cluster_id, source=source)
            case NotFound(reason):
                self._log.info(
                    "Mount {name} no longer exists ({reason}), dropping it",
                    name=record.name, reason=reason,
                )
                return None

    async def delete(self, record: MountRecord) -> None:
        requirements = self._validate(record)
        cluster = await self._resolver.resolve(requirements, cluster_id=record.cluster_id)
        await MountPoint(self._channel, cluster.cluster_id, record.name).delete()

    async def reconcile(self, records: Iterable[MountRecord]) -> list[MountRecord]:
        """Refresh every record concurrently, dropping mounts that drifted away.

        Every read settles before the first failure, in record order, is raised.
        """
        refreshed = await asyncio.gather(*(self.read(r) for r in records), return_exceptions=True)
        for result in refreshed:
            if isinstance(result, BaseException):
                raise result
        return [r for r in refreshed if r is not None]

    def _validate(self, record: MountRecord) -> ClusterRequirements:
        validate_mount_name(record.name)
        record.spec.validate()
        if (
            isinstance(record.spec, S3IamMount)
            and record.cluster_id is None
            and record.spec.instance_profile is None
        ):
            raise ValidationError("Either cluster_id or instance_profile must be specified")
        return record.spec.cluster_requirements()

    async def _register_profile(self, arn: str) -> None:
        try:
            registered = await self._guard.synchronized(arn, lambda: self._profiles.create(arn))
        except ApiError as e:
            raise ClusterUnavailable(
                None, f"instance profile {arn} could not be registered: {e.message}"
            ) from e
        if not registered:
            raise ClusterUnavailable(None, f"instance profile {arn} could not be registered")

