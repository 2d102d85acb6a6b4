"""Session registry: which identities currently hold an open channel."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .channel import Channel


class SessionRegistry:
    def __init__(self):
        self._sessions: Dict[str, Channel] = {}
        self._lock = threading.RLock()

    def bind(self, identity: str, channel: Channel) -> Optional[Channel]:
        """Install ``channel`` for ``identity``, replacing any previous one.

        The replaced channel is returned but left open.
        """

        with self._lock:
            previous = self._sessions.get(identity)
            self._sessions[identity] = channel
            return previous if previous is not channel else None

    def unbind(self, identity: str, channel: Optional[Channel] = None) -> bool:
        """Remove the session for ``identity`` if present.

        When ``channel`` is given the entry is only removed while it still
        points at that channel, so a superseded connection closing late does
        not evict its replacement.
        """

        with self._lock:
            current = self._sessions.get(identity)
            if current is None:
                return False
            if channel is not None and current is not channel:
                return False
            del self._sessions[identity]
            return True

    def lookup(self, identity: str) -> Optional[Channel]:
        with self._lock:
            return self._sessions.get(identity)

    def is_online(self, identity: str) -> bool:
        return self.lookup(identity) is not None

    def identities(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def clear(self) -> List[Channel]:
        with self._lock:
            channels = list(self._sessions.values())
            self._sessions.clear()
            return channels

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["SessionRegistry"]
