from __future__ import annotations

import asyncio
import json
import re
from dataclasses import replace

import pytest

from skymount.core.exceptions import ApiError, ClusterProvisioningFailed, CommandError
from skymount.mounts.guard import SharedResourceGuard
from skymount.mounts.resolver import ClusterResolver
from skymount.orchestrator import MountOrchestrator
from skymount.workspace.clusters import MANAGED_TAG, ClusterInfo, ClusterSpec, ClusterState

_CREATE_RE = re.compile(r"safe_mount\((\".*?\"), (\".*?\"), (\{.*\})\)")
_DELETE_RE = re.compile(r"mount_point = (\".*?\")")
_READ_RE = re.compile(r"mount\.mountPoint == (\".*?\")")


class FakeMountTable:
    """CommandChannel fake holding each cluster's mount table in memory.

    It recognises the three generated scripts and applies them the way the
    remote interpreter would.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, str]] = {}
        self.scripts: list[tuple[str, str]] = []
        self.error: str | None = None

    def mount(self, cluster_id: str, path: str, source: str) -> None:
        self.tables.setdefault(cluster_id, {})[path] = source

    async def execute(self, cluster_id: str, script: str) -> str:
        self.scripts.append((cluster_id, script))
        await asyncio.sleep(0)
        if self.error is not None:
            raise CommandError(self.error, cause=f"Traceback ...\nException: {self.error}")

        table = self.tables.setdefault(cluster_id, {})
        if match := _CREATE_RE.search(script):
            path, source, _config = (json.loads(g) for g in match.groups())
            return table.setdefault(path, source)
        if "dbutils.fs.unmount(mount_point)" in script:
            path = json.loads(_DELETE_RE.search(script).group(1))
            table.pop(path, None)
            return "success"
        if match := _READ_RE.search(script):
            path = json.loads(match.group(1))
            if path in table:
                return table[path]
            raise CommandError("Mount not found", cause="Exception: Mount not found")
        raise AssertionError(f"unexpected script:\n{script}")

    def last_script(self) -> str:
        return self.scripts[-1][1]


class FakeClusters:
    """ClusterManager fake; new clusters reach ``start_state`` on wait."""

    def __init__(self) -> None:
        self.clusters: dict[str, ClusterInfo] = {}
        self.created: list[ClusterSpec] = []
        self.start_state = ClusterState.RUNNING
        self.deleted: list[str] = []
        self.started: list[str] = []

    def add(
        self,
        cluster_id: str,
        state: ClusterState = ClusterState.RUNNING,
        *,
        name: str = "",
        instance_profile_arn: str | None = None,
        managed: bool = False,
    ) -> ClusterInfo:
        info = ClusterInfo(
            cluster_id=cluster_id,
            state=state,
            cluster_name=name or cluster_id,
            instance_profile_arn=instance_profile_arn,
            managed=managed,
        )
        self.clusters[cluster_id] = info
        return info

    async def get(self, cluster_id: str) -> ClusterInfo:
        if cluster_id not in self.clusters:
            raise ApiError(400, f"Cluster {cluster_id} does not exist", "RESOURCE_DOES_NOT_EXIST")
        return self.clusters[cluster_id]

    async def list(self) -> list[ClusterInfo]:
        return list(self.clusters.values())

    async def create(self, spec: ClusterSpec) -> str:
        self.created.append(spec)
        cluster_id = f"new-{len(self.created)}"
        self.add(
            cluster_id,
            ClusterState.PENDING,
            name=spec.cluster_name,
            instance_profile_arn=spec.instance_profile_arn,
            managed=spec.custom_tags.get(MANAGED_TAG) == "true",
        )
        return cluster_id

    async def start(self, cluster_id: str) -> None:
        self.started.append(cluster_id)
        self.clusters[cluster_id] = replace(self.clusters[cluster_id], state=ClusterState.PENDING)

    async def wait_until_running(self, cluster_id: str, timeout: float) -> ClusterInfo:
        info = self.clusters[cluster_id] = replace(self.clusters[cluster_id], state=self.start_state)
        if not info.is_running:
            raise ClusterProvisioningFailed(cluster_id, f"cluster is {info.state}")
        return info

    async def permanent_delete(self, cluster_id: str) -> None:
        self.deleted.append(cluster_id)
        self.clusters.pop(cluster_id, None)


class FakeProfiles:
    """IdentityManager fake counting registrations."""

    def __init__(self) -> None:
        self.registered: set[str] = set()
        self.create_calls = 0
        self.outcome = True

    async def create(self, identity: str) -> bool:
        self.create_calls += 1
        await asyncio.sleep(0.01)
        if self.outcome:
            self.registered.add(identity)
        return self.outcome

    async def delete(self, identity: str) -> None:
        self.registered.discard(identity)


@pytest.fixture
def channel() -> FakeMountTable:
    return FakeMountTable()


@pytest.fixture
def clusters() -> FakeClusters:
    fake = FakeClusters()
    fake.add("this_cluster", instance_profile_arn="abc")
    return fake


@pytest.fixture
def profiles() -> FakeProfiles:
    return FakeProfiles()


@pytest.fixture
def guard() -> SharedResourceGuard:
    return SharedResourceGuard()


@pytest.fixture
def resolver(clusters: FakeClusters) -> ClusterResolver:
    return ClusterResolver(clusters, timeout=5, spark_version="13.3.x-scala2.12", node_type_id="i3.xlarge")


@pytest.fixture
def orchestrator(
    resolver: ClusterResolver,
    channel: FakeMountTable,
    profiles: FakeProfiles,
    guard: SharedResourceGuard,
) -> MountOrchestrator:
    return MountOrchestrator(resolver, channel, profiles, guard)
