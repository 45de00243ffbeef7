from .exceptions import (
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

__all__ = [
    "ApiError",
    "ClusterError",
    "ClusterProvisioningFailed",
    "ClusterUnavailable",
    "CommandError",
    "ConfigurationError",
    "MountCreateFailed",
    "MountDeleteFailed",
    "MountError",
    "MountReadFailed",
    "SkymountError",
    "ValidationError",
]
