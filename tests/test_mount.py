"""Tests for MountPoint create/read/delete and error classification."""

from __future__ import annotations

import pytest

from skymount.core.exceptions import MountCreateFailed, MountDeleteFailed, MountReadFailed
from skymount.mounts.mount import Mounted, MountPoint, NotFound
from skymount.mounts.spec import AzureBlobMount, S3IamMount

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


@pytest.fixture
def point(channel) -> MountPoint:
    return MountPoint(channel, "this_cluster", "this_mount")


@pytest.mark.asyncio
async def test_create_then_read(point, channel) -> None:
    created = await point.create(S3IamMount("test-s3-bucket"))

    assert created == Mounted("s3a://test-s3-bucket")
    assert await point.read() == Mounted("s3a://test-s3-bucket")
    assert channel.tables["this_cluster"] == {"/mnt/this_mount": "s3a://test-s3-bucket"}


@pytest.mark.asyncio
async def test_create_script_carries_config(point, channel) -> None:
    await point.create(AzureBlobMount("data", "acct", "scope", "key"))

    script = channel.last_script()
    assert '"fs.azure.account.key.acct.blob.core.windows.net": "{{secrets/scope/key}}"' in script


@pytest.mark.asyncio
async def test_existing_mount_left_unchanged(point, channel) -> None:
    channel.mount("this_cluster", "/mnt/this_mount", "s3a://other-bucket")

    created = await point.create(S3IamMount("test-s3-bucket"))

    assert created == Mounted("s3a://other-bucket")
    assert channel.tables["this_cluster"]["/mnt/this_mount"] == "s3a://other-bucket"


@pytest.mark.asyncio
async def test_delete_then_read_not_found(point) -> None:
    await point.create(S3IamMount("test-s3-bucket"))
    await point.delete()

    state = await point.read()

    assert isinstance(state, NotFound)
    assert state.reason == "Mount not found"


@pytest.mark.asyncio
async def test_delete_twice_succeeds(point) -> None:
    await point.create(S3IamMount("test-s3-bucket"))
    await point.delete()
    await point.delete()


@pytest.mark.asyncio
async def test_read_of_never_created_mount(point) -> None:
    assert await point.read() == NotFound()


@pytest.mark.asyncio
async def test_create_failure_keeps_remote_message(point, channel) -> None:
    channel.error = "Some error"

    with pytest.raises(MountCreateFailed) as exc_info:
        await point.create(S3IamMount("test-s3-bucket"))

    assert str(exc_info.value) == "Some error"
    assert exc_info.value.name == "this_mount"


@pytest.mark.asyncio
async def test_read_failure_is_not_absence(point, channel) -> None:
    channel.error = "Permission denied on /mnt"

    with pytest.raises(MountReadFailed, match="Permission denied on /mnt"):
        await point.read()


@pytest.mark.asyncio
async def test_delete_failure_is_typed(point, channel) -> None:
    channel.error = "Directory busy"

    with pytest.raises(MountDeleteFailed, match="Directory busy"):
        await point.delete()


@pytest.mark.asyncio
async def test_delete_of_unmounted_path_tolerated(point, channel) -> None:
    channel.error = "Directory not mounted: /mnt/this_mount"

    await point.delete()


@pytest.mark.asyncio
async def test_empty_read_output_means_absent() -> None:
    class Silent:
        async def execute(self, cluster_id: str, script: str) -> str:
            return "  \n"

    assert await MountPoint(Silent(), "c", "m").read() == NotFound()


def test_path() -> None:
    assert MountPoint(None, "c", "this_mount").path == "/mnt/this_mount"  # type: ignore[arg-type]
