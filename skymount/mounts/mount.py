"""Create, read and delete one named mount on one cluster.

This is the only place that interprets remote error text. Everything above
it sees ``Mounted``, ``NotFound``, a typed MountError, or a ValidationError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from loguru import logger

from skymount.core.exceptions import (
    CommandError,
    MountCreateFailed,
    MountDeleteFailed,
    MountReadFailed,
)
from skymount.infra.retry import on_exception_message
from skymount.mounts.scripts import (
    NOT_FOUND_MESSAGE,
    create_script,
    delete_script,
    mount_path,
    read_script,
)

if TYPE_CHECKING:
    from skymount.mounts.spec import MountSpec
    from skymount.protocols import CommandChannel

_is_not_found = on_exception_message(NOT_FOUND_MESSAGE)
_is_not_mounted = on_exception_message("not mounted", NOT_FOUND_MESSAGE)


@dataclass(frozen=True, slots=True)
class Mounted:
    """Mount exists remotely with this source URI."""

    source: str


@dataclass(frozen=True, slots=True)
class NotFound:
    """Mount is absent remotely; the caller should stop tracking it."""

    reason: str = NOT_FOUND_MESSAGE


MountState: TypeAlias = Mounted | NotFound


@dataclass(frozen=True, slots=True)
class MountPoint:
    """One mount name on one cluster.

    Holds no mount state: every call re-derives it from the cluster.
    Calls on the same MountPoint are expected to be sequential.
    """

    channel: CommandChannel
    cluster_id: str
    name: str

    @property
    def path(self) -> str:
        return mount_path(self.name)

    async def create(self, spec: MountSpec) -> Mounted:
        source, config = spec.describe()
        script = create_script(self.name, source, config)
        log = logger.bind(component="mount", mount=self.name, cluster_id=self.cluster_id)
        log.info(
            "Mounting {source} at {path} (config keys: {keys})",
            source=source, path=self.path, keys=sorted(config),
        )

        try:
            output = await self.channel.execute(self.cluster_id, script)
        except CommandError as e:
            log.warning("Mount failed: {error}", error=e.message)
            raise MountCreateFailed(self.name, e.message) from e

        effective = output.strip() or source
        if effective != source:
            log.warning(
                "{path} was already mounted from {effective}, left unchanged",
                path=self.path, effective=effective,
            )
        return Mounted(effective)

    async def read(self) -> MountState:
        script = read_script(self.name)
        log = logger.bind(component="mount", mount=self.name, cluster_id=self.cluster_id)

        try:
            output = await self.channel.execute(self.cluster_id, script)
        except CommandError as e:
            if _is_not_found(e):
                log.info("{path} is not mounted", path=self.path)
                return NotFound(e.message)
            raise MountReadFailed(self.name, e.message) from e

        source = output.strip()
        if not source:
            log.info("{path} is not mounted", path=self.path)
            return NotFound()
        return Mounted(source)

    async def delete(self) -> None:
        script = delete_script(self.name)
        log = logger.bind(component="mount", mount=self.name, cluster_id=self.cluster_id)
        log.info("Unmounting {path}", path=self.path)

        try:
            await self.channel.execute(self.cluster_id, script)
        except CommandError as e:
            if _is_not_mounted(e):
                log.debug("{path} was already unmounted", path=self.path)
                return
            raise MountDeleteFailed(self.name, e.message) from e
