"""Error taxonomy surfaced by the relay's HTTP layer."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors reported synchronously to a caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RelayError, ValueError):
    status_code = 400


class AuthenticationError(RelayError):
    status_code = 401


class NotFoundError(RelayError, KeyError):
    status_code = 404

    def __str__(self) -> str:
        return self.message


class ConfigurationError(RelayError):
    status_code = 500


__all__ = [
    "RelayError",
    "ValidationError",
    "AuthenticationError",
    "NotFoundError",
    "ConfigurationError",
]
