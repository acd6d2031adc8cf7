"""
In-memory simulation state store.

Holds the per-session SimulationState (objection pool, ledger, open
objection, phase) keyed by session id, plus one asyncio.Lock per key so a
session processes one trainee message at a time.  A second message that
arrives while a turn is in flight is rejected with TurnInProgressError
rather than queued.

Tradeoff: in-memory dict means single-process only and nothing survives a
restart.  Swap for Redis or Postgres (row lock / version column) in
production; the use cases only touch the methods below.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from simtrainer.core.errors import TurnInProgressError
from simtrainer.domain.state import SimulationState


class SimulationStateStore:
    def __init__(self) -> None:
        self._states: dict[str, SimulationState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_activity: dict[str, float] = {}

    def put(self, state: SimulationState) -> None:
        self._states[state.session_id] = state
        self.touch(state.session_id)

    def get(self, session_id: str) -> SimulationState | None:
        return self._states.get(session_id)

    def delete(self, session_id: str) -> SimulationState | None:
        self._last_activity.pop(session_id, None)
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]
        return self._states.pop(session_id, None)

    def touch(self, session_id: str) -> None:
        self._last_activity[session_id] = time.monotonic()

    def active_session_ids(self) -> list[str]:
        return list(self._states)

    def idle_session_ids(self, idle_seconds: float) -> list[str]:
        """Sessions with no activity for at least ``idle_seconds`` and no turn in flight."""
        now = time.monotonic()
        return [
            sid
            for sid, last in self._last_activity.items()
            if now - last >= idle_seconds and not self.is_busy(sid)
        ]

    def is_busy(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def turn_lock(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock for one turn; fail fast if already held."""
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        if lock.locked():
            raise TurnInProgressError(session_id)
        async with lock:
            yield
        if session_id in self._states:
            self.touch(session_id)
        else:
            self._locks.pop(session_id, None)
