"""Outbound channels the relay pushes signaling envelopes into."""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from . import config

log = logging.getLogger("signal_relay.channel")


class Channel:
    """A bidirectional transport bound to one identity.

    ``send`` must never block: it either accepts the frame for delivery and
    returns ``True`` or fails fast with ``False``.
    """

    def __init__(self, identity: str):
        self.identity = identity
        self.alive = True

    def send(self, text: str) -> bool:
        raise NotImplementedError

    def preload(self, text: str) -> bool:
        """Accept a frame flushed from the pending queue on connect.

        Channels with a send cap must not apply it here.
        """

        return self.send(text)

    def close(self) -> None:
        self.alive = False


class WebSocketChannel(Channel):
    """Channel backed by a Starlette WebSocket and an outbox.

    Frames are queued without awaiting and written by :meth:`pump`, which
    the connection handler runs as its own task. Live sends are capped at
    ``buffer`` frames and a full outbox drops the frame instead of stalling
    the caller. The backlog flushed on connect bypasses the cap.

    Both ``send`` and ``preload`` must be called from the event loop that
    owns the socket.
    """

    def __init__(self, ws: WebSocket, identity: str, buffer: int = config.CHANNEL_BUFFER):
        super().__init__(identity)
        self.ws = ws
        self.buffer = buffer
        self._outbox: asyncio.Queue[str] = asyncio.Queue()

    def _writable(self) -> bool:
        return self.alive and self.ws.application_state == WebSocketState.CONNECTED

    def send(self, text: str) -> bool:
        if not self._writable():
            return False
        if self._outbox.qsize() >= self.buffer:
            log.warning("outbox full for %s, dropping frame", self.identity)
            return False
        self._outbox.put_nowait(text)
        return True

    def preload(self, text: str) -> bool:
        if not self._writable():
            return False
        self._outbox.put_nowait(text)
        return True

    async def pump(self) -> None:
        """Write queued frames to the socket until the channel dies."""

        while self.alive:
            text = await self._outbox.get()
            try:
                await self.ws.send_text(text)
            except Exception as exc:
                log.debug("write to %s failed: %s", self.identity, exc)
                self.alive = False

    @property
    def backlog(self) -> int:
        return self._outbox.qsize()


__all__ = ["Channel", "WebSocketChannel"]
