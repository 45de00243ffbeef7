"""Generated python scripts for the cluster interpreter.

The scripts use the environment's ``dbutils.fs`` mount primitives and report
back through ``dbutils.notebook.exit``. Values are embedded as JSON
literals, which are valid python for the string-only data involved, and
the config map is rendered with sorted keys so identical inputs always
produce identical scripts.
"""

from __future__ import annotations

import json
import re
import textwrap
from collections.abc import Mapping

from skymount.core.exceptions import ValidationError

MOUNT_PREFIX = "/mnt"
NOT_FOUND_MESSAGE = "Mount not found"

_NAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-]*")


def validate_mount_name(name: str) -> None:
    if not _NAME_RE.fullmatch(name or ""):
        raise ValidationError(
            f"Invalid mount name '{name}': use letters, digits, '_', '-' or '.', "
            "starting with a letter or digit"
        )


def mount_path(name: str) -> str:
    """Canonical mount path for ``name``, e.g. ``/mnt/this_mount``."""
    validate_mount_name(name)
    return f"{MOUNT_PREFIX}/{name}"


def _literal(value: str | Mapping[str, str]) -> str:
    if isinstance(value, Mapping):
        return json.dumps(dict(value), sort_keys=True)
    return json.dumps(value)


def _render(template: str) -> str:
    return textwrap.dedent(template).strip() + "\n"


def create_script(name: str, source: str, config: Mapping[str, str]) -> str:
    """Mount ``source`` at the canonical path unless something is already there.

    An existing mount is left untouched and its source reported back. A
    mount that cannot be listed right after mounting is rolled back.
    """
    return _render(f"""
        def safe_mount(mount_point, mount_source, configs):
            for mount in dbutils.fs.mounts():
                if mount.mountPoint == mount_point:
                    return mount.source
            try:
                dbutils.fs.mount(mount_source, mount_point, extra_configs=configs)
                dbutils.fs.refreshMounts()
                dbutils.fs.ls(mount_point)
                return mount_source
            except Exception as e:
                try:
                    dbutils.fs.unmount(mount_point)
                except Exception as e2:
                    print("Failed to unmount", e2)
                raise e
        mount_source = safe_mount({_literal(mount_path(name))}, {_literal(source)}, {_literal(config)})
        dbutils.notebook.exit(mount_source)
    """)


def read_script(name: str) -> str:
    return _render(f"""
        dbutils.fs.refreshMounts()
        for mount in dbutils.fs.mounts():
            if mount.mountPoint == {_literal(mount_path(name))}:
                dbutils.notebook.exit(mount.source)
        raise Exception({_literal(NOT_FOUND_MESSAGE)})
    """)


def delete_script(name: str) -> str:
    return _render(f"""
        mount_point = {_literal(mount_path(name))}
        dbutils.fs.refreshMounts()
        if not any(mount.mountPoint == mount_point for mount in dbutils.fs.mounts()):
            dbutils.notebook.exit("success")
        dbutils.fs.unmount(mount_point)
        dbutils.fs.refreshMounts()
        for mount in dbutils.fs.mounts():
            if mount.mountPoint == mount_point:
                raise Exception("Failed to unmount " + mount_point)
        dbutils.notebook.exit("success")
    """)
