"""Cluster management over the clusters REST API (2.0)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
)

from skymount.core.exceptions import ApiError, ClusterProvisioningFailed
from skymount.workspace.client import WorkspaceClient
from skymount.workspace.types import (
    ClusterListResponse,
    ClusterResponse,
    NodeType,
    SparkVersion,
)

DEFAULT_SPARK_VERSION = "13.3.x-scala2.12"
DEFAULT_NODE_TYPE = "i3.xlarge"
MANAGED_TAG = "skymount:managed"


class ClusterState(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    RESTARTING = "RESTARTING"
    RESIZING = "RESIZING"
    TERMINATING = "TERMINATING"
    TERMINATED = "TERMINATED"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> ClusterState:
        try:
            return cls(value or "UNKNOWN")
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_starting(self) -> bool:
        return self in (ClusterState.PENDING, ClusterState.RESTARTING, ClusterState.RESIZING)

    @property
    def is_terminal(self) -> bool:
        return self in (ClusterState.TERMINATING, ClusterState.TERMINATED, ClusterState.ERROR)


@dataclass(frozen=True, slots=True)
class ClusterInfo:
    """Observed cluster identity and credential attributes."""

    cluster_id: str
    state: ClusterState
    cluster_name: str = ""
    state_message: str = ""
    instance_profile_arn: str | None = None
    spark_version: str = ""
    node_type_id: str = ""
    managed: bool = False

    @property
    def is_running(self) -> bool:
        return self.state is ClusterState.RUNNING

    @classmethod
    def from_response(cls, data: ClusterResponse) -> ClusterInfo:
        aws = data.get("aws_attributes") or {}
        return cls(
            cluster_id=data["cluster_id"],
            state=ClusterState.parse(data.get("state")),
            cluster_name=data.get("cluster_name", ""),
            state_message=data.get("state_message", ""),
            instance_profile_arn=aws.get("instance_profile_arn") or None,
            spark_version=data.get("spark_version", ""),
            node_type_id=data.get("node_type_id", ""),
            managed=(data.get("custom_tags") or {}).get(MANAGED_TAG) == "true",
        )


@dataclass(frozen=True, slots=True)
class ClusterSpec:
    """Create request for a cluster."""

    cluster_name: str
    spark_version: str
    node_type_id: str
    num_workers: int = 0
    autotermination_minutes: int = 10
    instance_profile_arn: str | None = None
    spark_conf: dict[str, str] = field(default_factory=dict)
    custom_tags: dict[str, str] = field(default_factory=dict)

    def to_request(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "cluster_name": self.cluster_name,
            "spark_version": self.spark_version,
            "node_type_id": self.node_type_id,
            "num_workers": self.num_workers,
            "autotermination_minutes": self.autotermination_minutes,
        }
        if self.spark_conf:
            body["spark_conf"] = dict(self.spark_conf)
        if self.custom_tags:
            body["custom_tags"] = dict(self.custom_tags)
        if self.instance_profile_arn:
            body["aws_attributes"] = {"instance_profile_arn": self.instance_profile_arn}
        return body


def mounting_cluster_spec(
    name: str,
    *,
    spark_version: str,
    node_type_id: str,
    instance_profile_arn: str | None = None,
    autotermination_minutes: int = 10,
) -> ClusterSpec:
    """Single-node cluster used only to run mount scripts."""
    return ClusterSpec(
        cluster_name=name,
        spark_version=spark_version,
        node_type_id=node_type_id,
        num_workers=0,
        autotermination_minutes=autotermination_minutes,
        instance_profile_arn=instance_profile_arn,
        spark_conf={
            "spark.databricks.cluster.profile": "singleNode",
            "spark.master": "local[*]",
        },
        custom_tags={"ResourceClass": "SingleNode", MANAGED_TAG: "true"},
    )


class _ClusterPendingError(Exception):
    """Cluster still starting - retry."""


class ClustersAPI:
    """Clusters REST API, implementing the ClusterManager protocol.

    Args:
        client: Workspace client.
        poll_interval: Initial delay between state polls.
        max_poll_interval: Backoff cap between state polls.
    """

    def __init__(
        self,
        client: WorkspaceClient,
        *,
        poll_interval: float = 5.0,
        max_poll_interval: float = 30.0,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._max_poll_interval = max_poll_interval
        self._log = logger.bind(component="clusters")

    async def get(self, cluster_id: str) -> ClusterInfo:
        data: ClusterResponse = await self._client.get(
            "/2.0/clusters/get", params={"cluster_id": cluster_id}
        )
        return ClusterInfo.from_response(data)

    async def list(self) -> list[ClusterInfo]:
        data: ClusterListResponse | None = await self._client.get("/2.0/clusters/list")
        return [ClusterInfo.from_response(c) for c in (data or {}).get("clusters", [])]

    async def create(self, spec: ClusterSpec) -> str:
        self._log.info(
            "Creating cluster {name} ({node_type}, {version})",
            name=spec.cluster_name, node_type=spec.node_type_id, version=spec.spark_version,
        )
        data = await self._client.post("/2.0/clusters/create", spec.to_request())
        return data["cluster_id"]

    async def start(self, cluster_id: str) -> None:
        self._log.info("Starting cluster {cluster_id}", cluster_id=cluster_id)
        await self._client.post("/2.0/clusters/start", {"cluster_id": cluster_id}, idempotent=True)

    async def permanent_delete(self, cluster_id: str) -> None:
        self._log.info("Permanently deleting cluster {cluster_id}", cluster_id=cluster_id)
        try:
            await self._client.post(
                "/2.0/clusters/permanent-delete", {"cluster_id": cluster_id}, idempotent=True
            )
        except ApiError as e:
            if not e.is_not_found:
                raise

    async def wait_until_running(self, cluster_id: str, timeout: float = 1200.0) -> ClusterInfo:
        log = self._log.bind(cluster_id=cluster_id)

        @retry(
            stop=stop_after_delay(timeout),
            wait=wait_exponential(
                multiplier=self._poll_interval,
                min=self._poll_interval,
                max=self._max_poll_interval,
            ),
            retry=retry_if_exception_type(_ClusterPendingError),
            reraise=True,
        )
        async def _poll() -> ClusterInfo:
            info = await self.get(cluster_id)
            if info.is_running:
                return info
            if info.state.is_starting:
                log.debug("Cluster is {state}", state=info.state)
                raise _ClusterPendingError(info.state)
            raise ClusterProvisioningFailed(
                cluster_id, f"cluster is {info.state}: {info.state_message}".rstrip(": ")
            )

        try:
            info = await _poll()
        except _ClusterPendingError as e:
            raise ClusterProvisioningFailed(
                cluster_id, f"not running after {timeout:.0f}s (last state {e})"
            ) from e
        log.info("Cluster is running")
        return info

    async def latest_spark_version(self, default: str = DEFAULT_SPARK_VERSION) -> str:
        """Newest LTS runtime without ML/GPU/Photon variants."""
        data = await self._client.get("/2.0/clusters/spark-versions")
        versions: list[SparkVersion] = (data or {}).get("versions", [])
        candidates = [
            v for v in versions
            if "LTS" in v.get("name", "")
            and not any(tag in v["key"] for tag in ("-ml-", "-gpu-", "photon", "-aarch64-"))
        ]
        if not candidates:
            return default
        return max(candidates, key=lambda v: _version_tuple(v["key"]))["key"]

    async def smallest_node_type(self, default: str = DEFAULT_NODE_TYPE) -> str:
        """Node type with the least memory, then the fewest cores."""
        data = await self._client.get("/2.0/clusters/list-node-types")
        node_types: list[NodeType] = (data or {}).get("node_types", [])
        usable = [n for n in node_types if not n.get("is_deprecated", False)]
        if not usable:
            return default
        smallest = min(usable, key=lambda n: (n["memory_mb"], n.get("num_cores", 0)))
        return smallest["node_type_id"]


def _version_tuple(key: str) -> tuple[int, ...]:
    # "13.3.x-scala2.12" -> (13, 3)
    parts = []
    for part in key.split("-", 1)[0].split("."):
        if not part.isdigit():
            break
        parts.append(int(part))
    return tuple(parts)
