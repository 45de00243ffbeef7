from __future__ import annotations

import pytest
from loguru import logger

from skymount import LogConfig, MountOrchestrator, Workspace, WorkspaceConfig, shared_guard
from skymount.mounts.resolver import ClusterResolver
from skymount.workspace.client import WorkspaceClient
from skymount.workspace.clusters import ClustersAPI
from skymount.workspace.commands import CommandExecutor

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]

CONFIG = WorkspaceConfig(
    host="https://dbc-1234.cloud.databricks.com",
    token="dapi-1",
    command_timeout=42.0,
    spark_version="14.3.x-scala2.12",
)


def test_wiring_is_singleton():
    ws = Workspace(CONFIG)

    assert isinstance(ws.mounts, MountOrchestrator)
    assert ws.mounts is ws.mounts
    assert ws.clusters is ws._injector.get(ClustersAPI)
    assert ws._injector.get(ClusterResolver)._spark_version == "14.3.x-scala2.12"
    assert ws._injector.get(CommandExecutor)._timeout == 42.0


def test_guard_is_process_wide():
    first, second = Workspace(CONFIG), Workspace(CONFIG)

    assert first.mounts._guard is shared_guard
    assert second.mounts._guard is shared_guard
    assert first.mounts is not second.mounts


def test_from_profile(tmp_path, monkeypatch):
    (tmp_path / "skymount.toml").write_text(
        '[profiles.dev]\nhost = "https://dbc-1234.cloud.databricks.com"\n'
    )
    monkeypatch.setenv("SKYMOUNT_TOKEN", "dapi-2")

    ws = Workspace.from_profile("dev", project_dir=tmp_path)

    assert ws.config.token == "dapi-2"


@pytest.mark.asyncio
async def test_context_closes_client():
    async with Workspace(CONFIG) as ws:
        client = ws._injector.get(WorkspaceClient)

    assert client._http._session is None or client._http._session.closed


@pytest.mark.asyncio
async def test_logging_handlers_removed_on_exit(tmp_path):
    log_file = tmp_path / "skymount.log"

    async with Workspace(CONFIG, logging=LogConfig(console=False, file=str(log_file))) as ws:
        assert len(ws._handler_ids) == 1
        logger.bind(component="test").info("inside workspace")

    assert ws._handler_ids == []
