# Signaling relay package
#
# Provides:
#  - Session registry and pending queue for signaling messages
#  - Relay engine (deliver-or-enqueue) and connection lifecycle handling
#  - FastAPI HTTP/WebSocket surface
#
# See signal_relay/api.py for the app entry point.
