"""
sproc_sync - Stored Routine Loader and Wrapper Generator for MySQL

Keeps the stored routines of a MySQL database in sync with their source files
and generates a Python module with typed wrapper methods for calling them.

Features:
- Incremental loading: only changed routines are reloaded
- Placeholders for column types and constants in routine sources
- Obsolete routines are dropped from the database
- Fourteen result designations (rows, row1, singleton0, bulk, ...)
- LOB parameters streamed in chunks via prepared statements
"""

__version__ = "0.1.0"

from sproc_sync.config import LoaderSettings, Settings, WrapperSettings
from sproc_sync.errors import (
    CatalogError,
    ConfigError,
    LoaderError,
    MetadataError,
    QueryError,
    ResultException,
    SprocSyncError,
    UnknownDesignationError,
    WrapperError,
)
from sproc_sync.models import (
    Designation,
    ParameterDescriptor,
    RoutineMetadata,
    RoutineSource,
    RoutineType,
)
from sproc_sync.loader import Synchronizer, SyncResult
from sproc_sync.wrapper import WrapperGenerator

__all__ = [
    # Configuration
    "Settings",
    "LoaderSettings",
    "WrapperSettings",
    # Errors
    "SprocSyncError",
    "ConfigError",
    "UnknownDesignationError",
    "MetadataError",
    "CatalogError",
    "LoaderError",
    "WrapperError",
    "ResultException",
    "QueryError",
    # Models
    "Designation",
    "RoutineType",
    "RoutineSource",
    "ParameterDescriptor",
    "RoutineMetadata",
    # Pipelines
    "Synchronizer",
    "SyncResult",
    "WrapperGenerator",
]
