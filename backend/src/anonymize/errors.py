"""Exceptions raised by the anonymisation engine."""

from __future__ import annotations


class AnonymizeError(RuntimeError):
    """Base class for every anonymisation failure."""


class WorkingCopyError(AnonymizeError):
    """Raised when the working copy cannot be created, opened or removed."""


class CopyError(WorkingCopyError):
    """Raised when exporting the source store into the working copy fails."""


class QueryError(AnonymizeError):
    """Raised when a range select or update statement fails."""


class RandomnessError(AnonymizeError):
    """Raised when the secure random source is unavailable."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "secure random source unavailable")


class VerificationError(AnonymizeError):
    """Raised when the anonymised store no longer matches the source shape."""

    def __init__(self, mismatches: dict[str, tuple[int, int]]) -> None:
        self.mismatches = mismatches
        details = ", ".join(
            f"{table} ({expected} -> {actual})" for table, (expected, actual) in sorted(mismatches.items())
        )
        super().__init__(f"Row counts changed for: {details}")
