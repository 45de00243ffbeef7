"""Keyed once-only guard for shared external resources.

Several orchestration runs may need the same instance profile at the same
time. Registering it concurrently races against the workspace's own
uniqueness checks, so creation goes through ``shared_guard``:

    registered = await shared_guard.synchronized(arn, lambda: profiles.create(arn))

Only successful creations are remembered, for the whole process. A failed
run is reported to the callers that were waiting on it; the next caller
runs the action again.

Entries are guarded by thread locks, so callers on different threads or
event loops (e.g. several ``asyncio.run`` calls) share the same entries.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeAlias

from loguru import logger

GuardedAction: TypeAlias = Callable[[], Awaitable[bool]]

POLL_INTERVAL = 0.01


@dataclass(slots=True)
class _GuardEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    created: bool = False
    runs: int = 0
    last_outcome: bool = False


class SharedResourceGuard:
    """Keyed mutex plus a "known created" flag, one entry per resource identity."""

    def __init__(self, *, poll_interval: float = POLL_INTERVAL) -> None:
        self._entries: dict[str, _GuardEntry] = {}
        self._registry_lock = threading.Lock()
        self._poll_interval = poll_interval
        self._log = logger.bind(component="guard")

    def _entry(self, identity: str) -> _GuardEntry:
        with self._registry_lock:
            entry = self._entries.get(identity)
            if entry is None:
                entry = self._entries[identity] = _GuardEntry()
            return entry

    def known(self, identity: str) -> bool:
        """True once the resource for ``identity`` was created successfully."""
        entry = self._entries.get(identity)
        return entry is not None and entry.created

    async def _acquire(self, entry: _GuardEntry) -> None:
        # Polled: a cancelled waiter must never end up owning the lock.
        while not entry.lock.acquire(blocking=False):
            await asyncio.sleep(self._poll_interval)

    async def synchronized(self, identity: str, action: GuardedAction) -> bool:
        """Run ``action`` for ``identity`` unless it already succeeded.

        Concurrent callers wait for the run in progress and return its
        outcome. Callers arriving after a failed run retry the action. If
        ``action`` raises, the exception propagates to the caller that ran
        it and the waiting callers see False.
        """
        entry = self._entry(identity)
        if entry.created:
            return True

        seen = entry.runs
        await self._acquire(entry)
        try:
            if entry.created:
                return True
            if entry.runs != seen:
                return entry.last_outcome

            self._log.debug("Creating shared resource {identity}", identity=identity)
            try:
                outcome = bool(await action())
            except Exception:
                entry.runs += 1
                entry.last_outcome = False
                raise
            entry.created = outcome
            entry.last_outcome = outcome
            entry.runs += 1
            self._log.debug(
                "Shared resource {identity} outcome: {outcome}",
                identity=identity, outcome=outcome,
            )
            return outcome
        finally:
            entry.lock.release()

    def reset(self) -> None:
        with self._registry_lock:
            self._entries.clear()


shared_guard = SharedResourceGuard()
