import asyncio
from collections.abc import Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """
    Per-key asyncio locks.

    Entries are reference-counted and removed as soon as nobody holds or waits
    on them, so the registry stays small and a lock never outlives the event
    loop it was created on.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def hold(self, *keys: Hashable):
        # Sorted acquisition order prevents deadlocks between multi-key holders
        ordered = sorted(set(keys), key=repr)
        checked_out: list[Hashable] = []
        held: list[asyncio.Lock] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                checked_out.append(key)
                await lock.acquire()
                held.append(lock)
            yield
        finally:
            for lock in reversed(held):
                lock.release()
            for key in checked_out:
                self._checkin(key)

    def _checkout(self, key: Hashable) -> asyncio.Lock:
        lock, refs = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, refs + 1)
        return lock

    def _checkin(self, key: Hashable) -> None:
        lock, refs = self._locks[key]
        if refs <= 1:
            del self._locks[key]
        else:
            self._locks[key] = (lock, refs - 1)

    def __len__(self) -> int:
        return len(self._locks)
