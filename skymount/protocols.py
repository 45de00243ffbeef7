"""Protocol definitions for the remote collaborators.

The mount engine only talks to the workspace through these seams, so the
REST implementations in ``skymount.workspace`` can be swapped for
in-memory fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from skymount.workspace.clusters import ClusterInfo, ClusterSpec


@runtime_checkable
class CommandChannel(Protocol):
    """Runs a script inside a cluster's interpreter session.

    Pure transport: no interpretation of the output happens here.
    """

    async def execute(self, cluster_id: str, script: str) -> str:
        """Execute ``script`` on ``cluster_id``.

        Returns:
            The script's complete text output.

        Raises:
            CommandError: Remote execution failed. The remote message is
                kept verbatim.
        """
        ...


@runtime_checkable
class ClusterManager(Protocol):
    """Cluster lifecycle operations."""

    async def get(self, cluster_id: str) -> ClusterInfo: ...

    async def list(self) -> list[ClusterInfo]: ...

    async def create(self, spec: ClusterSpec) -> str: ...

    async def start(self, cluster_id: str) -> None: ...

    async def wait_until_running(self, cluster_id: str, timeout: float) -> ClusterInfo:
        """Block until the cluster runs.

        Raises:
            ClusterProvisioningFailed: Error state or timeout.
        """
        ...

    async def permanent_delete(self, cluster_id: str) -> None: ...


@runtime_checkable
class IdentityManager(Protocol):
    """Registration of shared credential objects (instance profiles)."""

    async def create(self, identity: str) -> bool:
        """Register ``identity`` if absent. True when it is registered afterwards."""
        ...

    async def delete(self, identity: str) -> None: ...
