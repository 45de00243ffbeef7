"""Resolution of the cluster a mount script runs on."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from loguru import logger

from skymount.core.exceptions import (
    ApiError,
    ClusterProvisioningFailed,
    ClusterUnavailable,
)
from skymount.protocols import ClusterManager
from skymount.workspace.arn import parse_arn
from skymount.workspace.clusters import (
    DEFAULT_NODE_TYPE,
    DEFAULT_SPARK_VERSION,
    ClusterInfo,
    ClusterState,
    mounting_cluster_spec,
)

MOUNTING_CLUSTER_PREFIX = "skymount-mount"


@dataclass(frozen=True, slots=True)
class ClusterRequirements:
    """Credential attributes a cluster must carry to run a mount."""

    instance_profile_arn: str | None = None

    def satisfied_by(self, info: ClusterInfo) -> bool:
        if self.instance_profile_arn is None:
            return True
        return info.instance_profile_arn == self.instance_profile_arn

    def mounting_cluster_name(self) -> str:
        if self.instance_profile_arn is None:
            return MOUNTING_CLUSTER_PREFIX
        return f"{MOUNTING_CLUSTER_PREFIX}-{parse_arn(self.instance_profile_arn).resource_name}"


class ClusterResolver:
    """Finds a running, correctly credentialed cluster, or provisions one.

    Args:
        clusters: Cluster management collaborator.
        timeout: How long to wait for a provisioned cluster to run.
        spark_version: Runtime for new clusters. Discovered when None and
            the collaborator supports discovery.
        node_type_id: Node type for new clusters, discovered likewise.
        autotermination_minutes: Idle timeout for new clusters.
    """

    def __init__(
        self,
        clusters: ClusterManager,
        *,
        timeout: float = 1200.0,
        spark_version: str | None = None,
        node_type_id: str | None = None,
        autotermination_minutes: int = 10,
    ) -> None:
        self._clusters = clusters
        self._timeout = timeout
        self._spark_version = spark_version
        self._node_type_id = node_type_id
        self._autotermination_minutes = autotermination_minutes
        self._start_locks: dict[str, asyncio.Lock] = {}
        self._log = logger.bind(component="resolver")

    async def resolve(
        self,
        requirements: ClusterRequirements,
        cluster_id: str | None = None,
    ) -> ClusterInfo:
        if cluster_id is not None:
            return await self._explicit(cluster_id, requirements)

        if (info := await self._find_running(requirements)) is not None:
            self._log.debug(
                "Reusing cluster {cluster_id} ({name})",
                cluster_id=info.cluster_id, name=info.cluster_name,
            )
            return info

        return await self._provision(requirements)

    async def _explicit(self, cluster_id: str, requirements: ClusterRequirements) -> ClusterInfo:
        info = await self._get(cluster_id)
        if not info.is_running:
            if not (info.managed and (info.state is ClusterState.TERMINATED or info.state.is_starting)):
                raise ClusterUnavailable(cluster_id, f"cluster is {info.state}, not RUNNING")
            info = await self._restart(cluster_id)
        if not requirements.satisfied_by(info):
            raise ClusterUnavailable(
                cluster_id,
                f"cluster lacks instance profile {requirements.instance_profile_arn}",
            )
        return info

    async def _get(self, cluster_id: str) -> ClusterInfo:
        try:
            return await self._clusters.get(cluster_id)
        except ApiError as e:
            if e.is_not_found:
                raise ClusterUnavailable(cluster_id, "cluster does not exist") from e
            raise ClusterUnavailable(cluster_id, e.message) from e

    async def _restart(self, cluster_id: str) -> ClusterInfo:
        """Bring a terminated mounting cluster back, once per cluster."""
        lock = self._start_locks.setdefault(cluster_id, asyncio.Lock())
        async with lock:
            info = await self._get(cluster_id)
            if info.is_running:
                return info
            if info.state is ClusterState.TERMINATED:
                self._log.info("Starting terminated mounting cluster {cluster_id}", cluster_id=cluster_id)
                try:
                    await self._clusters.start(cluster_id)
                except ApiError as e:
                    raise ClusterUnavailable(cluster_id, f"cannot start: {e.message}") from e
            try:
                return await self._clusters.wait_until_running(cluster_id, self._timeout)
            except ApiError as e:
                raise ClusterUnavailable(cluster_id, e.message) from e

    async def _find_running(self, requirements: ClusterRequirements) -> ClusterInfo | None:
        try:
            clusters = await self._clusters.list()
        except ApiError as e:
            raise ClusterUnavailable(None, f"cannot list clusters: {e.message}") from e
        candidates = [c for c in clusters if c.is_running and requirements.satisfied_by(c)]
        if not candidates:
            return None
        preferred = requirements.mounting_cluster_name()
        candidates.sort(key=lambda c: c.cluster_name != preferred)
        return candidates[0]

    async def _provision(self, requirements: ClusterRequirements) -> ClusterInfo:
        name = requirements.mounting_cluster_name()
        try:
            spec = mounting_cluster_spec(
                name,
                spark_version=await self._resolve_spark_version(),
                node_type_id=await self._resolve_node_type(),
                instance_profile_arn=requirements.instance_profile_arn,
                autotermination_minutes=self._autotermination_minutes,
            )
            self._log.info("No running cluster matches, provisioning {name}", name=name)
            cluster_id = await self._clusters.create(spec)
        except ApiError as e:
            raise ClusterProvisioningFailed(None, f"cannot create {name}: {e.message}") from e

        try:
            return await self._clusters.wait_until_running(cluster_id, self._timeout)
        except ClusterProvisioningFailed:
            await self._discard(cluster_id)
            raise
        except ApiError as e:
            await self._discard(cluster_id)
            raise ClusterProvisioningFailed(cluster_id, e.message) from e

    async def _discard(self, cluster_id: str) -> None:
        self._log.warning("Cluster {cluster_id} never became usable, deleting it", cluster_id=cluster_id)
        try:
            await self._clusters.permanent_delete(cluster_id)
        except ApiError as e:
            self._log.warning(
                "Could not delete cluster {cluster_id}: {error}",
                cluster_id=cluster_id, error=e.message,
            )

    async def _resolve_spark_version(self) -> str:
        if self._spark_version:
            return self._spark_version
        discover = getattr(self._clusters, "latest_spark_version", None)
        return await discover() if discover else DEFAULT_SPARK_VERSION

    async def _resolve_node_type(self) -> str:
        if self._node_type_id:
            return self._node_type_id
        discover = getattr(self._clusters, "smallest_node_type", None)
        return await discover() if discover else DEFAULT_NODE_TYPE
