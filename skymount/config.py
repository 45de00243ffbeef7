"""TOML-based workspace configuration.

Loads ~/.skymount/defaults.toml (global) and skymount.toml (project),
merges them, and resolves named profiles into WorkspaceConfig instances.

Example skymount.toml::

    [profiles.dev]
    host = "https://dbc-1234.cloud.databricks.com"
    cluster_timeout = 900
    spark_version = "13.3.x-scala2.12"

The token is usually left out of project files and supplied through
``SKYMOUNT_TOKEN``.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, TypeAlias

from skymount.core.exceptions import ConfigurationError

RawConfig: TypeAlias = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".skymount" / "defaults.toml"
PROJECT_CONFIG_NAME = "skymount.toml"

ENV_HOST = "SKYMOUNT_HOST"
ENV_TOKEN = "SKYMOUNT_TOKEN"


@dataclass(frozen=True, slots=True)
class WorkspaceConfig:
    """Connection and provisioning settings for one workspace.

    Args:
        host: Workspace URL, e.g. ``https://dbc-1234.cloud.databricks.com``.
        token: Personal access token.
        request_timeout: Per-request HTTP timeout in seconds.
        cluster_timeout: How long to wait for a new cluster to start.
        command_timeout: How long to wait for a remote script to finish.
        spark_version: Runtime for mounting clusters. Discovered if None.
        node_type_id: Node type for mounting clusters. Discovered if None.
        autotermination_minutes: Idle timeout for mounting clusters.
    """

    host: str
    token: str
    request_timeout: float = 30.0
    cluster_timeout: float = 1200.0
    command_timeout: float = 600.0
    spark_version: str | None = None
    node_type_id: str | None = None
    autotermination_minutes: int = 10

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigurationError(f"Workspace host is required (set 'host' or {ENV_HOST})")
        if not self.token:
            raise ConfigurationError(f"Workspace token is required (set 'token' or {ENV_TOKEN})")
        if not self.host.startswith(("https://", "http://")):
            raise ConfigurationError(f"Workspace host must be a URL, got '{self.host}'")

    def __repr__(self) -> str:
        return f"WorkspaceConfig(host={self.host!r}, token=***)"


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("profiles", {})
    return merged


def resolve_workspace(
    profile: str = "default",
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> WorkspaceConfig:
    """Build the WorkspaceConfig for ``profile``.

    Environment variables override file values. A profile that exists
    nowhere is an error unless the environment alone supplies host and
    token.
    """
    env = os.environ if environ is None else environ
    profiles = load_config(project_dir=project_dir, global_path=global_path)["profiles"]

    raw = dict(profiles.get(profile, {}))
    if ENV_HOST in env:
        raw["host"] = env[ENV_HOST]
    if ENV_TOKEN in env:
        raw["token"] = env[ENV_TOKEN]

    if profile not in profiles and not ("host" in raw and "token" in raw):
        raise KeyError(
            f"Profile '{profile}' not found. Available: {', '.join(profiles) or 'none'}"
        )

    known = {f.name for f in fields(WorkspaceConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in profile '{profile}': {', '.join(sorted(unknown))}"
        )

    raw.setdefault("host", "")
    raw.setdefault("token", "")
    raw["host"] = str(raw["host"]).rstrip("/")
    return WorkspaceConfig(**raw)
