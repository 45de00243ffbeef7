"""End-to-end mount lifecycle against in-memory fakes."""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from skymount.core.exceptions import (
    ApiError,
    ClusterUnavailable,
    MountCreateFailed,
    MountReadFailed,
    ValidationError,
)
from skymount.mounts.spec import GcsMount, S3IamMount
from skymount.orchestrator import MountOrchestrator, MountRecord
from skymount.workspace.clusters import ClusterState

PROFILE_ARN = "arn:aws:iam::123456789012:instance-profile/mounts"

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


@pytest.fixture
def record() -> MountRecord:
    return MountRecord(
        name="this_mount",
        spec=S3IamMount("test-s3-bucket"),
        cluster_id="this_cluster",
    )


class TestCreate:
    @pytest.mark.asyncio
    async def test_s3_on_explicit_cluster(self, orchestrator, channel, record) -> None:
        created = await orchestrator.create(record)

        assert created.source == "s3a://test-s3-bucket"
        assert created.cluster_id == "this_cluster"
        cluster_id, script = channel.scripts[-1]
        assert cluster_id == "this_cluster"
        assert "s3a://test-s3-bucket" in script
        assert ", {})" in script
        assert '"/mnt/this_mount"' in script

    @pytest.mark.asyncio
    async def test_missing_credential_rejected_before_remote_call(
        self, orchestrator, channel, clusters, profiles
    ) -> None:
        record = MountRecord(name="this_mount", spec=S3IamMount("test-s3-bucket"))

        with pytest.raises(ValidationError, match="Either cluster_id or instance_profile"):
            await orchestrator.create(record)

        assert channel.scripts == []
        assert clusters.created == []
        assert profiles.create_calls == 0

    @pytest.mark.asyncio
    async def test_malformed_arn_rejected_before_remote_call(self, orchestrator, channel) -> None:
        record = MountRecord(name="this_mount", spec=S3IamMount("test-s3-bucket", "abc"))

        with pytest.raises(ValidationError, match="arn: invalid prefix"):
            await orchestrator.create(record)

        assert channel.scripts == []

    @pytest.mark.asyncio
    async def test_bad_name_rejected(self, orchestrator, channel) -> None:
        record = MountRecord(name="../x", spec=GcsMount("b"), cluster_id="this_cluster")

        with pytest.raises(ValidationError, match="Invalid mount name"):
            await orchestrator.create(record)

        assert channel.scripts == []

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_source_empty(self, orchestrator, channel, record) -> None:
        channel.error = "Some error"

        with pytest.raises(MountCreateFailed) as exc_info:
            await orchestrator.create(record)

        assert str(exc_info.value) == "Some error"
        assert record.source == ""

    @pytest.mark.asyncio
    async def test_profile_registered_and_cluster_provisioned(
        self, orchestrator, clusters, profiles
    ) -> None:
        record = MountRecord(name="raw", spec=S3IamMount("raw-data", PROFILE_ARN))

        created = await orchestrator.create(record)

        assert profiles.registered == {PROFILE_ARN}
        assert created.cluster_id == "new-1"
        assert clusters.created[0].instance_profile_arn == PROFILE_ARN
        assert created.source == "s3a://raw-data"

    @pytest.mark.asyncio
    async def test_concurrent_creates_register_profile_once(
        self, orchestrator, clusters, profiles
    ) -> None:
        clusters.add("with-profile", instance_profile_arn=PROFILE_ARN)
        records = [
            MountRecord(name=f"m{i}", spec=S3IamMount(f"bucket-{i}", PROFILE_ARN))
            for i in range(5)
        ]

        created = await asyncio.gather(*(orchestrator.create(r) for r in records))

        assert profiles.create_calls == 1
        assert {r.cluster_id for r in created} == {"with-profile"}

    @pytest.mark.asyncio
    async def test_failed_registration_retried_later(
        self, orchestrator, profiles, channel
    ) -> None:
        profiles.outcome = False
        record = MountRecord(name="raw", spec=S3IamMount("raw-data", PROFILE_ARN))

        with pytest.raises(ClusterUnavailable, match="could not be registered"):
            await orchestrator.create(record)
        assert channel.scripts == []

        profiles.outcome = True
        created = await orchestrator.create(record)

        assert profiles.create_calls == 2
        assert created.source == "s3a://raw-data"

    @pytest.mark.asyncio
    async def test_registration_api_error_is_unavailable(self, orchestrator, profiles) -> None:
        register = profiles.create
        calls: list[str] = []

        async def flaky_create(identity: str) -> bool:
            calls.append(identity)
            if len(calls) == 1:
                raise ApiError(503, "temporarily unavailable")
            return await register(identity)

        profiles.create = flaky_create
        record = MountRecord(name="raw", spec=S3IamMount("raw-data", PROFILE_ARN))

        with pytest.raises(ClusterUnavailable, match="temporarily unavailable") as exc_info:
            await orchestrator.create(record)
        assert isinstance(exc_info.value.__cause__, ApiError)

        await orchestrator.create(record)
        assert profiles.registered == {PROFILE_ARN}
        assert len(calls) == 2


    @pytest.mark.asyncio
    async def test_explicit_cluster_skips_registration(self, orchestrator, clusters, profiles) -> None:
        clusters.add("c1", instance_profile_arn=PROFILE_ARN)
        record = MountRecord(name="raw", spec=S3IamMount("raw-data", PROFILE_ARN), cluster_id="c1")

        await orchestrator.create(record)

        assert profiles.create_calls == 0

    @pytest.mark.asyncio
    async def test_guard_shared_between_orchestrators(
        self, resolver, channel, profiles, guard, clusters
    ) -> None:
        clusters.add("with-profile", instance_profile_arn=PROFILE_ARN)
        first = MountOrchestrator(resolver, channel, profiles, guard)
        second = MountOrchestrator(resolver, channel, profiles, guard)
        spec = S3IamMount("b", PROFILE_ARN)

        await asyncio.gather(
            first.create(MountRecord(name="a", spec=spec)),
            second.create(MountRecord(name="b", spec=spec)),
        )

        assert profiles.create_calls == 1


class TestReadDelete:
    @pytest.mark.asyncio
    async def test_read_after_create(self, orchestrator, record) -> None:
        created = await orchestrator.create(record)

        assert await orchestrator.read(record) == created

    @pytest.mark.asyncio
    async def test_read_missing_mount_returns_none(self, orchestrator, record) -> None:
        assert await orchestrator.read(record) is None

    @pytest.mark.asyncio
    async def test_read_reflects_remote_drift(self, orchestrator, channel, record) -> None:
        await orchestrator.create(record)
        channel.mount("this_cluster", "/mnt/this_mount", "s3a://moved")

        refreshed = await orchestrator.read(record)

        assert refreshed is not None
        assert refreshed.source == "s3a://moved"

    @pytest.mark.asyncio
    async def test_read_failure_propagates(self, orchestrator, channel, record) -> None:
        channel.error = "Workspace unreachable"

        with pytest.raises(MountReadFailed, match="Workspace unreachable"):
            await orchestrator.read(record)

    @pytest.mark.asyncio
    async def test_delete_then_read(self, orchestrator, record) -> None:
        await orchestrator.create(record)
        await orchestrator.delete(record)

        assert await orchestrator.read(record) is None

    @pytest.mark.asyncio
    async def test_delete_twice(self, orchestrator, record) -> None:
        await orchestrator.create(record)
        await orchestrator.delete(record)
        await orchestrator.delete(record)

    @pytest.mark.asyncio
    async def test_delete_on_missing_cluster(self, orchestrator) -> None:
        record = MountRecord(name="m", spec=GcsMount("b"), cluster_id="ghost")

        with pytest.raises(ClusterUnavailable):
            await orchestrator.delete(record)

    @pytest.mark.asyncio
    async def test_read_restarts_terminated_mounting_cluster(self, orchestrator, clusters) -> None:
        created = await orchestrator.create(
            MountRecord(name="raw", spec=S3IamMount("raw-data", PROFILE_ARN))
        )
        clusters.clusters["new-1"] = replace(clusters.clusters["new-1"], state=ClusterState.TERMINATED)

        refreshed = await orchestrator.read(created)

        assert refreshed == created
        assert clusters.started == ["new-1"]

        await orchestrator.delete(created)
        assert await orchestrator.read(created) is None


@pytest.mark.asyncio
async def test_reconcile_drops_vanished_mounts(orchestrator, channel) -> None:
    kept = MountRecord(name="kept", spec=GcsMount("a"), cluster_id="this_cluster")
    gone = MountRecord(name="gone", spec=GcsMount("b"), cluster_id="this_cluster")
    await orchestrator.create(kept)
    await orchestrator.create(gone)
    channel.tables["this_cluster"].pop("/mnt/gone")

    refreshed = await orchestrator.reconcile([kept, gone])

    assert [r.name for r in refreshed] == ["kept"]
    assert refreshed[0].source == "gs://a"


@pytest.mark.asyncio
async def test_reconcile_settles_reads_before_raising(orchestrator, channel) -> None:
    execute = channel.execute
    completed: list[str] = []

    async def settling_execute(cluster_id: str, script: str) -> str:
        result = await execute(cluster_id, script)
        await asyncio.sleep(0.01)
        completed.append(cluster_id)
        return result

    channel.execute = settling_execute
    channel.mount("this_cluster", "/mnt/kept", "gs://a")
    kept = MountRecord(name="kept", spec=GcsMount("a"), cluster_id="this_cluster")
    lost = MountRecord(name="lost", spec=GcsMount("b"), cluster_id="ghost")

    with pytest.raises(ClusterUnavailable, match="does not exist"):
        await orchestrator.reconcile([kept, lost])

    assert completed == ["this_cluster"]
