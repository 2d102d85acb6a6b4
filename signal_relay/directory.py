"""In-memory identity directory holding profiles and public-key bundles."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .messages import now_ms

log = logging.getLogger("signal_relay.directory")


@dataclass
class UserRecord:
    user_id: str
    email: str
    display_name: str
    pre_key_bundle: Any
    profile_image: Optional[str] = None
    last_seen: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "email": self.email,
            "displayName": self.display_name,
            "preKeyBundle": self.pre_key_bundle,
            "profileImage": self.profile_image,
            "lastSeen": self.last_seen,
        }


class IdentityDirectory:
    def __init__(self, clock: Callable[[], int] = now_ms):
        self._users: Dict[str, UserRecord] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def register(
        self,
        user_id: Any,
        email: Any,
        display_name: Any,
        pre_key_bundle: Any,
        profile_image: Optional[str] = None,
    ) -> UserRecord:
        """Create or overwrite the record for ``user_id``."""

        if not user_id or not pre_key_bundle or not email or not display_name:
            raise ValidationError("Missing required fields")
        record = UserRecord(
            user_id=user_id,
            email=email,
            display_name=display_name,
            pre_key_bundle=pre_key_bundle,
            profile_image=profile_image,
            last_seen=self._clock(),
        )
        with self._lock:
            self._users[user_id] = record
        log.info("registered %s", user_id)
        return record

    def get(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            return self._users.get(user_id)

    def lookup(self, user_id: str) -> UserRecord:
        record = self.get(user_id)
        if record is None:
            raise NotFoundError("User not found")
        return record

    def touch(self, user_id: str, when: Optional[int] = None) -> Optional[int]:
        """Set ``last_seen`` for a known user; unknown users are ignored."""

        with self._lock:
            record = self._users.get(user_id)
            if record is None:
                return None
            record.last_seen = self._clock() if when is None else when
            return record.last_seen

    def reap(self, ttl_s: float, is_online: Callable[[str], bool], now: Optional[int] = None) -> List[str]:
        """Drop offline records not seen for ``ttl_s`` seconds."""

        if ttl_s <= 0:
            return []
        now = self._clock() if now is None else now
        cutoff = now - int(ttl_s * 1000)
        with self._lock:
            stale = [
                uid for uid, rec in self._users.items()
                if rec.last_seen < cutoff and not is_online(uid)
            ]
            for uid in stale:
                del self._users[uid]
        if stale:
            log.info("reaped %d stale user records", len(stale))
        return stale

    def clear(self) -> None:
        with self._lock:
            self._users.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)


__all__ = ["UserRecord", "IdentityDirectory"]
