"""DI module wiring the workspace collaborators into the mount engine.

Usage:
    injector = Injector([WorkspaceModule(config)])
    mounts = injector.get(MountOrchestrator)
"""

from __future__ import annotations

from injector import Binder, Module, provider, singleton

from .config import WorkspaceConfig
from .mounts.guard import SharedResourceGuard, shared_guard
from .mounts.resolver import ClusterResolver
from .orchestrator import MountOrchestrator
from .workspace.client import WorkspaceClient
from .workspace.clusters import ClustersAPI
from .workspace.commands import CommandExecutor
from .workspace.instance_profiles import InstanceProfilesAPI


class WorkspaceModule(Module):
    """Provides one workspace's clients, APIs and orchestrator.

    The SharedResourceGuard is always the process-wide instance, so
    orchestrators built from different injectors still serialize on the
    same instance profile.
    """

    def __init__(self, config: WorkspaceConfig) -> None:
        self._config = config

    def configure(self, binder: Binder) -> None:
        binder.bind(WorkspaceConfig, to=self._config)
        binder.bind(SharedResourceGuard, to=shared_guard)

    @singleton
    @provider
    def provide_client(self, config: WorkspaceConfig) -> WorkspaceClient:
        return WorkspaceClient(config.host, config.token, timeout=config.request_timeout)

    @singleton
    @provider
    def provide_clusters(self, client: WorkspaceClient) -> ClustersAPI:
        return ClustersAPI(client)

    @singleton
    @provider
    def provide_commands(self, client: WorkspaceClient, config: WorkspaceConfig) -> CommandExecutor:
        return CommandExecutor(client, timeout=config.command_timeout)

    @singleton
    @provider
    def provide_instance_profiles(self, client: WorkspaceClient) -> InstanceProfilesAPI:
        return InstanceProfilesAPI(client)

    @singleton
    @provider
    def provide_resolver(self, clusters: ClustersAPI, config: WorkspaceConfig) -> ClusterResolver:
        return ClusterResolver(
            clusters,
            timeout=config.cluster_timeout,
            spark_version=config.spark_version,
            node_type_id=config.node_type_id,
            autotermination_minutes=config.autotermination_minutes,
        )

    @singleton
    @provider
    def provide_orchestrator(
        self,
        resolver: ClusterResolver,
        commands: CommandExecutor,
        profiles: InstanceProfilesAPI,
        guard: SharedResourceGuard,
    ) -> MountOrchestrator:
        return MountOrchestrator(resolver, commands, profiles, guard)


__all__ = ["WorkspaceModule"]
