"""
Exception types for sproc_sync.

Fatal errors (configuration, malformed metadata, unknown designations) abort a
run immediately. Load errors are recoverable: the synchronizer records the
offending source and carries on with the next routine.
"""

from __future__ import annotations

from typing import Optional


class SprocSyncError(Exception):
    """Base class for all sproc_sync errors."""


class ConfigError(SprocSyncError):
    """A required setting is missing or a setting has an invalid value."""


class UnknownDesignationError(ConfigError):
    """A designation tag outside the closed set of designations."""

    def __init__(self, designation: str):
        super().__init__(f"Unknown designation type: {designation!r}")
        self.designation = designation


class MetadataError(SprocSyncError):
    """The persisted metadata document cannot be decoded."""


class CatalogError(SprocSyncError):
    """A statement against the live database catalog failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class LoaderError(SprocSyncError):
    """A routine source could not be loaded into the database."""


class WrapperError(SprocSyncError):
    """Metadata cannot be turned into a wrapper method."""


class ResultException(SprocSyncError):
    """A stored routine returned a result of an unexpected shape."""


class QueryError(SprocSyncError):
    """The database rejected a query issued by a wrapper method."""

    def __init__(self, message: str, query: str, cause: Optional[BaseException] = None):
        super().__init__(f"{message}\nQuery: {query}")
        self.query = query
        self.cause = cause
