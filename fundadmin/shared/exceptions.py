from __future__ import annotations


class AppError(Exception):
    """Base class for fund-admin service errors."""


class NotFound(AppError):
    """Entity is missing or soft-deleted."""


class ValidationError(AppError):
    """Business rule violated by otherwise well-formed input."""


class DuplicateRecord(ValidationError):
    """A fund-scoped number, name or as-of date is already taken."""


class InvalidTransition(ValidationError):
    """Requested status change is not allowed from the record's current state."""


class ConcurrencyConflict(AppError):
    """Another writer changed the record between read and write."""
