"""Custom exception hierarchy for skymount.

All skymount-specific exceptions inherit from SkymountError, enabling
callers to catch every skymount failure with a single except clause.

Remote failures keep the remote message verbatim in ``str(exc)``:
the execution environment has no structured error codes, so the text
is all an operator gets to diagnose it.
"""

from __future__ import annotations


class SkymountError(Exception):
    """Base exception for all skymount errors."""


class ValidationError(SkymountError):
    """Raised for a bad or contradictory mount spec, target or name.

    Always raised before any remote call is attempted.
    """


class ConfigurationError(SkymountError):
    """Raised for invalid configuration or missing required settings."""


class ApiError(SkymountError):
    """Raised when a workspace REST API call fails."""

    def __init__(self, status: int, message: str, error_code: str = "") -> None:
        self.status = status
        self.message = message
        self.error_code = error_code
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status == 404 or self.error_code == "RESOURCE_DOES_NOT_EXIST"

    @property
    def already_exists(self) -> bool:
        return self.error_code == "RESOURCE_ALREADY_EXISTS" or "already exists" in self.message


class ClusterError(SkymountError):
    """Base for failures to obtain a usable cluster."""

    def __init__(self, cluster_id: str | None, reason: str) -> None:
        self.cluster_id = cluster_id
        self.reason = reason
        super().__init__(self._format())

    def _format(self) -> str:
        if self.cluster_id:
            return f"Cluster {self.cluster_id}: {self.reason}"
        return self.reason


class ClusterUnavailable(ClusterError):
    """Raised when the target cluster exists but cannot be used."""


class ClusterProvisioningFailed(ClusterError):
    """Raised when a new cluster fails to reach the running state."""


class CommandError(SkymountError):
    """Raised by a command channel when remote execution fails.

    Args:
        message: Remote error message, preserved verbatim.
        cause: Full remote cause (e.g. traceback), when available.
    """

    def __init__(self, message: str, cause: str = "") -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class MountError(SkymountError):
    """Base for remote mount operation failures."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        self.message = message
        super().__init__(message)


class MountCreateFailed(MountError):
    """Raised when the remote mount script fails."""


class MountReadFailed(MountError):
    """Raised when listing mounts fails for a reason other than absence."""


class MountDeleteFailed(MountError):
    """Raised when unmounting fails for a reason other than absence."""
