"""Environment-driven settings for the relay process."""

from __future__ import annotations

import os

HOST = os.getenv("RELAY_HOST", "0.0.0.0")
PORT = int(os.getenv("RELAY_PORT", "8787"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()
UVLOOP = bool(os.getenv("UVLOOP"))

# 0 disables the limit
PENDING_MAX_PER_IDENTITY = int(os.getenv("PENDING_MAX_PER_IDENTITY", "0"))
PENDING_TTL_S = float(os.getenv("PENDING_TTL_S", "0"))
USER_TTL_S = float(os.getenv("USER_TTL_S", "0"))
PRUNE_INTERVAL_S = float(os.getenv("PRUNE_INTERVAL_S", "10"))

CHANNEL_BUFFER = int(os.getenv("CHANNEL_BUFFER", "256"))

API_KEY_HEADER = "X-API-Key"


def api_key() -> str | None:
    """Return the shared secret expected in the API key header.

    Read on every call so a rotated secret takes effect without a restart.
    """

    return os.getenv("API_KEY") or None
