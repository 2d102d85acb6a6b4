"""Routing of signaling messages: deliver live, queue, or drop."""

from __future__ import annotations

import logging
from enum import Enum

from .locks import StripedLock
from .messages import SignalingMessage
from .pending import PendingQueue
from .sessions import SessionRegistry

log = logging.getLogger("signal_relay.relay")


class RouteOutcome(str, Enum):
    DELIVERED = "delivered"
    QUEUED = "queued"
    DROPPED = "dropped"


class RelayEngine:
    """
    Fire-and-forget relay:
      - recipient online  -> send on its channel; a failed send drops the message
      - recipient offline -> offer/answer are queued, ICE candidates are dropped
    The caller is never told which of these happened.
    """

    def __init__(self, sessions: SessionRegistry, pending: PendingQueue, locks: StripedLock):
        self.sessions = sessions
        self.pending = pending
        self.locks = locks

    def route(self, message: SignalingMessage) -> RouteOutcome:
        to = message.recipient
        # Same lock as ConnectionLifecycle.open so we never enqueue after a drain.
        with self.locks.for_identity(to):
            channel = self.sessions.lookup(to)
            if channel is not None:
                if channel.send(message.encode()):
                    outcome = RouteOutcome.DELIVERED
                else:
                    log.warning("send of %s to %s failed, dropping", message.kind.value, to)
                    outcome = RouteOutcome.DROPPED
            elif message.kind.queueable:
                self.pending.enqueue(to, message)
                outcome = RouteOutcome.QUEUED
            else:
                outcome = RouteOutcome.DROPPED
        log.debug("%s %s -> %s: %s", message.kind.value, message.sender, to, outcome.value)
        return outcome


__all__ = ["RouteOutcome", "RelayEngine"]
