"""Binding transport connections to identities over their lifetime."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .channel import Channel
from .directory import IdentityDirectory
from .locks import StripedLock
from .messages import SignalingMessage, now_ms
from .pending import PendingQueue
from .sessions import SessionRegistry

log = logging.getLogger("signal_relay.lifecycle")


class ConnectionLifecycle:
    """
    Per-connection transitions:
      - open:  bind the channel, then flush anything queued while offline
      - close: unbind and record last-seen in the directory
      - error: unbind only; last-seen is left untouched
    """

    def __init__(
        self,
        sessions: SessionRegistry,
        pending: PendingQueue,
        directory: IdentityDirectory,
        locks: StripedLock,
        clock: Callable[[], int] = now_ms,
    ):
        self.sessions = sessions
        self.pending = pending
        self.directory = directory
        self.locks = locks
        self._clock = clock

    def open(self, identity: str, channel: Channel) -> int:
        """Bind ``channel`` and deliver queued messages ahead of live ones.

        Returns the number of queued messages flushed.
        """

        def deliver(message: SignalingMessage) -> None:
            if not channel.preload(message.encode()):
                log.warning("queued %s for %s lost on flush", message.kind.value, identity)

        with self.locks.for_identity(identity):
            replaced = self.sessions.bind(identity, channel)
            flushed = self.pending.drain_and_deliver(identity, deliver)
        if replaced is not None:
            log.info("%s reconnected, previous session replaced", identity)
        log.info("%s online, flushed %d queued messages", identity, flushed)
        return flushed

    def close(self, identity: str, channel: Optional[Channel] = None) -> Optional[int]:
        if not self._unbind(identity, channel):
            # superseded by a newer connection which is still live
            log.info("%s: stale connection closed", identity)
            return None
        last_seen = self.directory.touch(identity, self._clock())
        log.info("%s disconnected", identity)
        return last_seen

    def error(self, identity: str, channel: Optional[Channel] = None) -> None:
        if self._unbind(identity, channel):
            log.info("%s dropped after transport error", identity)

    def _unbind(self, identity: str, channel: Optional[Channel]) -> bool:
        if channel is not None:
            channel.close()
        with self.locks.for_identity(identity):
            return self.sessions.unbind(identity, channel)


__all__ = ["ConnectionLifecycle"]
