"""
Per-team mutual exclusion for rating updates.

Result ingestion holds the locks of both teams of a fixture while it
snapshots elo, writes the game and applies deltas. Locks are always
acquired in sorted team-id order so two ingestions can never deadlock.

This covers a single process. Across processes the row locks taken with
SELECT ... FOR UPDATE (where the dialect supports them) and the
`elo = elo + delta` increment keep updates from being lost.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List


class TeamLockRegistry:
    """Lazily created asyncio locks keyed by team id."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, team_id: str) -> asyncio.Lock:
        lock = self._locks.get(team_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[team_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *team_ids: str) -> AsyncIterator[None]:
        """Acquire the locks of all given teams, in sorted order."""
        acquired: List[asyncio.Lock] = []
        try:
            for team_id in sorted(set(team_ids)):
                lock = self.lock_for(team_id)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, team_id: str) -> bool:
        lock = self._locks.get(team_id)
        return lock is not None and lock.locked()
