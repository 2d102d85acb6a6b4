"""Per-identity locking shared by the relay engine and the lifecycle manager."""

from __future__ import annotations

import threading
import zlib
from typing import List


class StripedLock:
    """Fixed set of re-entrant locks selected by identity.

    Two identities may share a stripe; one identity always maps to the same
    stripe, which is all the bind/drain versus lookup/enqueue ordering needs.
    """

    def __init__(self, stripes: int = 64):
        if stripes <= 0:
            raise ValueError("stripes must be positive")
        self._locks: List[threading.RLock] = [threading.RLock() for _ in range(stripes)]

    def __len__(self) -> int:
        return len(self._locks)

    def for_identity(self, identity: str) -> threading.RLock:
        # crc32 rather than hash() so the mapping is stable across processes
        index = zlib.crc32(identity.encode("utf-8")) % len(self._locks)
        return self._locks[index]


__all__ = ["StripedLock"]
