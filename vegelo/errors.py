from __future__ import annotations

from typing import Iterable


class VegeloError(Exception):
    """Base class for storefront errors surfaced to the user."""


class ValidationError(VegeloError):
    def __init__(self, message: str, fields: Iterable[str] = ()):
        super().__init__(message)
        self.fields = tuple(fields)


class StorageError(VegeloError):
    """Durable write failed (disk full, locked db, unserializable payload)."""

    retryable = True


class RemoteError(VegeloError):
    pass
