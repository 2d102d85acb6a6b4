"""Signaling message model and the JSON envelopes pushed to peers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

import orjson

from .errors import ValidationError


class MessageKind(str, Enum):
    OFFER = "offer"
    ANSWER = "answer"
    ICE = "ice"

    @property
    def payload_field(self) -> str:
        """Name of the body/envelope field carrying the payload."""

        return "candidate" if self is MessageKind.ICE else self.value

    @property
    def queueable(self) -> bool:
        # ICE candidates are only useful while the peer is live
        return self is not MessageKind.ICE


@dataclass(frozen=True)
class SignalingMessage:
    """An offer, answer or ICE candidate addressed from one identity to another.

    The payload is opaque: it is forwarded verbatim and never inspected.
    """

    kind: MessageKind
    sender: str
    recipient: str
    payload: Any

    @classmethod
    def create(cls, kind: MessageKind | str, sender: Any, recipient: Any, payload: Any) -> "SignalingMessage":
        """Validate the required fields and build a message.

        Raises :class:`ValidationError` when ``sender``, ``recipient`` or the
        payload is missing or empty.
        """

        kind = MessageKind(kind)
        if not sender or not recipient or not payload:
            raise ValidationError("Missing required fields")
        if not isinstance(sender, str) or not isinstance(recipient, str):
            raise ValidationError("from and to must be strings")
        return cls(kind=kind, sender=sender, recipient=recipient, payload=payload)

    def envelope(self) -> Dict[str, Any]:
        return {"type": self.kind.value, "from": self.sender, self.kind.payload_field: self.payload}

    def encode(self) -> str:
        """Serialise the envelope to the text frame sent on a channel."""

        return orjson.dumps(self.envelope()).decode("utf-8")


def now_ms() -> int:
    """Return the current Unix timestamp in milliseconds."""

    return int(time.time() * 1000)


__all__ = ["MessageKind", "SignalingMessage", "now_ms"]
