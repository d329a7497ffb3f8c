"""Exception hierarchy shared by the stores, the sync layer and the consoles."""

from __future__ import annotations

from enum import Enum


class FieldForceError(Exception):
    """Base class for all application errors."""


class ConfigurationError(FieldForceError):
    """A mandatory configuration value is missing or invalid."""


class RemoteStoreError(FieldForceError):
    """A request to the remote store failed in transport or was rejected by the backend."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        collection: str | None = None,
        rejected: bool = False,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.collection = collection
        # True when the backend answered and refused the request
        self.rejected = rejected


class UnsupportedOperationError(RemoteStoreError):
    """The transport does not offer the requested operation."""


class InvalidTransitionError(FieldForceError):
    """A status change would move a record backwards out of ``completed``."""


class GeolocationFailure(str, Enum):
    PERMISSION_DENIED = "permission-denied"
    POSITION_UNAVAILABLE = "position-unavailable"
    TIMEOUT = "timeout"
    OTHER = "other"


class GeolocationError(FieldForceError):
    """A position fix could not be obtained."""

    def __init__(self, reason: GeolocationFailure, message: str | None = None) -> None:
        super().__init__(message or reason.value)
        self.reason = reason
