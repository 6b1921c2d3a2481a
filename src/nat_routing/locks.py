"""Per-subnet locking for concurrent reconciliations."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator


class SubnetLocks:
    """Hand out one lock per subnet ID.

    Two handlers reconciling the same subnet at once would both see "no route
    table" and both create one. Holding the subnet's lock across the
    find/create/associate/route sequence closes that window inside a single
    process. Locks are never released from the registry; the set of subnets a
    deployment manages is small.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, Lock] = {}

    def _lock_for(self, subnet_id: str) -> Lock:
        with self._guard:
            lock = self._locks.get(subnet_id)
            if lock is None:
                lock = self._locks[subnet_id] = Lock()
            return lock

    @contextmanager
    def hold(self, subnet_id: str) -> Iterator[None]:
        with self._lock_for(subnet_id):
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
