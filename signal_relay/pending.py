"""Per-identity FIFO of signaling messages waiting for their recipient."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from .messages import SignalingMessage

log = logging.getLogger("signal_relay.pending")

DeliverFn = Callable[[SignalingMessage], object]


class PendingQueue:
    """Buffers created lazily on first enqueue and deleted once drained.

    ``max_per_identity`` and ``ttl_s`` default to 0, which leaves buffers
    unbounded and entries without expiry.
    """

    def __init__(self, max_per_identity: int = 0, ttl_s: float = 0.0, clock: Callable[[], float] = time.time):
        self.max_per_identity = max_per_identity
        self.ttl_s = ttl_s
        self._clock = clock
        self._queues: Dict[str, Deque[Tuple[SignalingMessage, float]]] = {}
        self._lock = threading.RLock()

    def enqueue(self, identity: str, message: SignalingMessage) -> None:
        with self._lock:
            queue = self._queues.get(identity)
            if queue is None:
                queue = self._queues[identity] = deque()
            queue.append((message, self._clock()))
            if self.max_per_identity > 0:
                while len(queue) > self.max_per_identity:
                    dropped, _ = queue.popleft()
                    log.warning("pending queue for %s full, dropped %s from %s", identity, dropped.kind.value, dropped.sender)

    def drain(self, identity: str) -> List[SignalingMessage]:
        """Remove and return everything buffered for ``identity`` in order."""

        with self._lock:
            queue = self._queues.pop(identity, None)
        if not queue:
            return []
        return [message for message, _ in queue]

    def drain_and_deliver(self, identity: str, deliver: DeliverFn) -> int:
        """Drain ``identity`` and hand each message to ``deliver``.

        Messages are not re-queued if delivery fails. Returns the number of
        messages handed over.
        """

        messages = self.drain(identity)
        for message in messages:
            deliver(message)
        return len(messages)

    def pending_for(self, identity: str) -> List[SignalingMessage]:
        with self._lock:
            return [message for message, _ in self._queues.get(identity, ())]

    def prune(self, now: Optional[float] = None) -> int:
        if self.ttl_s <= 0:
            return 0
        now = self._clock() if now is None else now
        dropped = 0
        with self._lock:
            for identity in list(self._queues):
                queue = self._queues[identity]
                while queue and (now - queue[0][1]) > self.ttl_s:
                    queue.popleft()
                    dropped += 1
                if not queue:
                    del self._queues[identity]
        if dropped:
            log.info("expired %d pending messages", dropped)
        return dropped

    def identities(self) -> List[str]:
        with self._lock:
            return list(self._queues)

    def size(self) -> int:
        with self._lock:
            return sum(len(q) for q in self._queues.values())

    def clear(self) -> None:
        with self._lock:
            self._queues.clear()

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._queues


__all__ = ["PendingQueue"]
