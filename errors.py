"""Error taxonomy shared by the stores and the HTTP layer."""

from __future__ import annotations


class AirWatchError(Exception):
    """Base class for domain failures with a human-readable message."""


class ConflictError(AirWatchError):
    """An entity with the same identity already exists."""


class NotFoundError(AirWatchError):
    """A referenced entity does not exist."""


class InvalidCredentialError(AirWatchError):
    """A password did not match the stored hash."""


class InvalidTokenError(AirWatchError):
    """A session token is malformed, expired, or badly signed."""


class PersistenceUnavailableError(AirWatchError):
    """The persistent store could not be reached or written."""
