"""
Exception types shared by the storage, auth and integration layers.
"""

from __future__ import annotations


class StorageError(Exception):
    """Raised when the relational store fails (driver or connectivity)."""


class ConstraintViolationError(StorageError):
    """Raised when a write violates a uniqueness constraint."""


class UpstreamServiceError(Exception):
    """Raised when a third-party text-generation or email call fails."""


class EmailDeliveryError(UpstreamServiceError):
    """The email provider answered, but rejected the message."""
