"""Exceptions raised by the share register services."""
from __future__ import annotations


class RegisterError(RuntimeError):
    """Base class for share register errors."""


class NotFoundError(RegisterError):
    """Raised when a referenced shareholder or record does not exist in the tenant."""


class ValidationError(RegisterError):
    """Raised when a transaction is malformed or its numbers do not add up."""


class ConflictError(RegisterError):
    """Raised when the register was changed concurrently or a change would orphan holdings."""


class StorageError(RegisterError):
    """Raised when the backing store fails."""


class LedgerImmutableError(RegisterError):
    """Raised when code attempts to modify a persisted ledger entry."""


__all__ = [
    "ConflictError",
    "LedgerImmutableError",
    "NotFoundError",
    "RegisterError",
    "StorageError",
    "ValidationError",
]
