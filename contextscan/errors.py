"""Exception hierarchy for contextscan."""

from __future__ import annotations


class ContextScanError(Exception):
    """Base class for all user-facing contextscan errors."""


class WorkspaceInitError(ContextScanError):
    """The workspace could not be prepared for a scan."""


class StorageError(ContextScanError):
    """A persisted file could not be written or read."""


class DiskFullError(StorageError):
    pass


class StoragePermissionError(StorageError):
    pass


class DocumentationError(ContextScanError):
    """The documentation generator failed or returned an unusable response."""
