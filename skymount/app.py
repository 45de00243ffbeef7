"""Workspace facade: one async context per configured workspace.

Example:
    from skymount import MountRecord, S3IamMount, Workspace

    async with Workspace.from_profile("dev", logging=True) as ws:
        record = await ws.mounts.create(
            MountRecord(
                name="raw",
                spec=S3IamMount(
                    "raw-data",
                    instance_profile="arn:aws:iam::123456789012:instance-profile/mounts",
                ),
            )
        )
        print(record.source)  # s3a://raw-data
"""

from __future__ import annotations

from pathlib import Path

from injector import Injector

from .config import WorkspaceConfig, resolve_workspace
from .logging import LogConfig, _setup_logging, _teardown_logging
from .module import WorkspaceModule
from .orchestrator import MountOrchestrator
from .workspace.client import WorkspaceClient
from .workspace.clusters import ClustersAPI
from .workspace.instance_profiles import InstanceProfilesAPI


class Workspace:
    """Opens the workspace client and exposes the mount orchestrator.

    Args:
        config: Workspace connection settings.
        logging: True for default console logging, or a LogConfig.
    """

    def __init__(self, config: WorkspaceConfig, *, logging: bool | LogConfig = False) -> None:
        self.config = config
        self._injector = Injector([WorkspaceModule(config)])
        match logging:
            case LogConfig():
                self._log_config: LogConfig | None = logging
            case True:
                self._log_config = LogConfig()
            case _:
                self._log_config = None
        self._handler_ids: list[int] = []

    @classmethod
    def from_profile(
        cls,
        profile: str = "default",
        *,
        project_dir: Path | None = None,
        logging: bool | LogConfig = False,
    ) -> Workspace:
        return cls(resolve_workspace(profile, project_dir=project_dir), logging=logging)

    @property
    def mounts(self) -> MountOrchestrator:
        return self._injector.get(MountOrchestrator)

    @property
    def clusters(self) -> ClustersAPI:
        return self._injector.get(ClustersAPI)

    @property
    def instance_profiles(self) -> InstanceProfilesAPI:
        return self._injector.get(InstanceProfilesAPI)

    async def __aenter__(self) -> Workspace:
        if self._log_config is not None:
            self._handler_ids = _setup_logging(self._log_config)
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self._injector.get(WorkspaceClient).close()
        if self._handler_ids:
            _teardown_logging(self._handler_ids)
            self._handler_ids = []
