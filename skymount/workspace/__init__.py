"""REST collaborators: clusters, command execution and instance profiles."""

from .arn import Arn, parse_arn, validate_instance_profile_arn
from .client import WorkspaceClient
from .clusters import ClusterInfo, ClusterSpec, ClustersAPI, ClusterState, mounting_cluster_spec
from .commands import CommandExecutor, CommandResults
from .instance_profiles import InstanceProfilesAPI

__all__ = [
    "Arn",
    "ClusterInfo",
    "ClusterSpec",
    "ClusterState",
    "ClustersAPI",
    "CommandExecutor",
    "CommandResults",
    "InstanceProfilesAPI",
    "WorkspaceClient",
    "mounting_cluster_spec",
    "parse_arn",
    "validate_instance_profile_arn",
]
