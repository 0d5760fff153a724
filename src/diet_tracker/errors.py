"""Jerarquía de errores del tracker."""

from __future__ import annotations


class DietTrackerError(Exception):
    """Base class for every error raised by diet_tracker."""


class DeserializationError(DietTrackerError):
    """A stored record is missing a field or has a malformed value."""


class StorageError(DietTrackerError):
    """The persistence medium is unavailable or a write failed."""


class ValidationError(DietTrackerError):
    """A caller-supplied value is outside its accepted domain."""


class AuthError(DietTrackerError):
    """The identity provider failed to sign in or out."""
