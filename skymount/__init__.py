"""skymount - manage storage mounts on remote compute clusters.

Example:

    from skymount import MountRecord, S3IamMount, Workspace

    async with Workspace.from_profile("dev") as ws:
        record = await ws.mounts.create(
            MountRecord(name="raw", spec=S3IamMount("raw-data", instance_profile=ARN))
        )
        tracked = await ws.mounts.reconcile([record])
"""

# Logging (disables the skymount logger on import)
from skymount.logging import LogConfig

from skymount.app import Workspace
from skymount.config import WorkspaceConfig, load_config, resolve_workspace
from skymount.core.exceptions import (
    ApiError,
    ClusterError,
    ClusterProvisioningFailed,
    ClusterUnavailable,
    CommandError,
    ConfigurationError,
    MountCreateFailed,
    MountDeleteFailed,
    MountError,
    MountReadFailed,
    SkymountError,
    ValidationError,
)
from skymount.mounts import (
    AdlsGen2Mount,
    AzureBlobMount,
    ClusterRequirements,
    ClusterResolver,
    GcsMount,
    Mounted,
    MountPoint,
    MountSpec,
    MountState,
    NotFound,
    S3IamMount,
    S3KeysMount,
    SharedResourceGuard,
    mount_path,
    mount_spec_from_fields,
    shared_guard,
)
from skymount.orchestrator import MountOrchestrator, MountRecord
from skymount.protocols import ClusterManager, CommandChannel, IdentityManager

__version__ = "0.1.0"

__all__ = [
    "AdlsGen2Mount",
    "ApiError",
    "AzureBlobMount",
    "ClusterError",
    "ClusterManager",
    "ClusterProvisioningFailed",
    "ClusterRequirements",
    "ClusterResolver",
    "ClusterUnavailable",
    "CommandChannel",
    "CommandError",
    "ConfigurationError",
    "GcsMount",
    "IdentityManager",
    "LogConfig",
    "MountCreateFailed",
    "MountDeleteFailed",
    "MountError",
    "MountOrchestrator",
    "MountPoint",
    "MountReadFailed",
    "MountRecord",
    "MountSpec",
    "MountState",
    "Mounted",
    "NotFound",
    "S3IamMount",
    "S3KeysMount",
    "SharedResourceGuard",
    "SkymountError",
    "ValidationError",
    "Workspace",
    "WorkspaceConfig",
    "load_config",
    "mount_path",
    "mount_spec_from_fields",
    "resolve_workspace",
    "shared_guard",
]
