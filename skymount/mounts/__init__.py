"""Mount engine: specs, scripts, cluster resolution and the shared-resource guard."""

from .guard import SharedResourceGuard, shared_guard
from .mount import Mounted, MountPoint, MountState, NotFound
from .resolver import ClusterRequirements, ClusterResolver
from .scripts import MOUNT_PREFIX, mount_path
from .spec import (
    AdlsGen2Mount,
    AzureBlobMount,
    GcsMount,
    MountSpec,
    S3IamMount,
    S3KeysMount,
    mount_spec_from_fields,
)

__all__ = [
    "MOUNT_PREFIX",
    "AdlsGen2Mount",
    "AzureBlobMount",
    "ClusterRequirements",
    "ClusterResolver",
    "GcsMount",
    "MountPoint",
    "MountSpec",
    "MountState",
    "Mounted",
    "NotFound",
    "S3IamMount",
    "S3KeysMount",
    "SharedResourceGuard",
    "mount_path",
    "mount_spec_from_fields",
    "shared_guard",
]
