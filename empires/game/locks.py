# empires/game/locks.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

# One lock per village id; sync endpoints run concurrently in the threadpool.
_registry_lock = threading.Lock()
_village_locks: dict[int, threading.Lock] = {}


def _lock_for(village_id: int) -> threading.Lock:
    with _registry_lock:
        lock = _village_locks.get(village_id)
        if lock is None:
            lock = threading.Lock()
            _village_locks[village_id] = lock
        return lock


@contextmanager
def village_lock(village_id: int) -> Iterator[None]:
    lock = _lock_for(int(village_id))
    with lock:
        yield
