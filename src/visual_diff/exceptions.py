"""Errors raised by the change detection pipeline."""


class ChangeDetectionError(Exception):
    """Base class for change detection failures."""

    pass


class InvalidSnapshotError(ChangeDetectionError, ValueError):
    """Raised when a snapshot sequence is missing or malformed."""

    pass
