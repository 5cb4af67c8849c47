"""
Core data models for the sproc_sync package.

Defines the routine sources discovered on disk, the per-routine metadata that
is persisted between runs, the routine descriptors read from the live catalog,
and the closed set of designations that determine a wrapper's result shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from sproc_sync.errors import MetadataError, UnknownDesignationError


class Designation(str, Enum):
    """Result-handling contract of a stored routine wrapper."""
    BULK = "bulk"
    BULK_INSERT = "bulk_insert"
    LOG = "log"
    MAP = "map"
    NONE = "none"
    ROW0 = "row0"
    ROW1 = "row1"
    ROWS = "rows"
    ROWS_WITH_KEY = "rows_with_key"
    ROWS_WITH_INDEX = "rows_with_index"
    SINGLETON0 = "singleton0"
    SINGLETON1 = "singleton1"
    FUNCTION = "function"
    TABLE = "table"

    @classmethod
    def parse(cls, value: str) -> Designation:
        """Return the designation for a tag, raising on anything outside the set."""
        try:
            return cls(value)
        except ValueError:
            raise UnknownDesignationError(value) from None


class RoutineType(str, Enum):
    """Kind of stored routine."""
    PROCEDURE = "procedure"
    FUNCTION = "function"


# MySQL data types that are sent to the server as long data.
LOB_DATA_TYPES = frozenset({
    "tinyblob",
    "blob",
    "mediumblob",
    "longblob",
    "tinytext",
    "text",
    "mediumtext",
    "longtext",
})


@dataclass
class RoutineSource:
    """A discovered routine source file."""
    path: Path
    routine_name: str
    method_name: Optional[str] = None


@dataclass
class ParameterDescriptor:
    """A parameter of a stored routine, in positional order."""
    name: str
    data_type: str
    dtd_identifier: Optional[str] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    character_set_name: Optional[str] = None
    collation_name: Optional[str] = None
    description: str = ""

    @property
    def is_lob(self) -> bool:
        """Whether values of this parameter must be streamed in chunks."""
        return self.data_type.lower() in LOB_DATA_TYPES

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "data_type": self.data_type,
            "dtd_identifier": self.dtd_identifier,
            "numeric_precision": self.numeric_precision,
            "numeric_scale": self.numeric_scale,
            "character_set_name": self.character_set_name,
            "collation_name": self.collation_name,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ParameterDescriptor:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            data_type=data["data_type"],
            dtd_identifier=data.get("dtd_identifier"),
            numeric_precision=data.get("numeric_precision"),
            numeric_scale=data.get("numeric_scale"),
            character_set_name=data.get("character_set_name"),
            collation_name=data.get("collation_name"),
            description=data.get("description", ""),
        )


@dataclass
class BulkInsertColumn:
    """A column of the temporary table filled by a bulk_insert wrapper."""
    name: str
    data_type: str
    key: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "data_type": self.data_type, "key": self.key}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> BulkInsertColumn:
        return cls(name=data["name"], data_type=data["data_type"], key=data["key"])


@dataclass
class RoutineMetadata:
    """
    Metadata of a successfully loaded stored routine.

    This is what the loader persists between runs and what the wrapper
    generator reads to emit a wrapper method.
    """
    routine_name: str
    designation: Designation
    routine_type: RoutineType = RoutineType.PROCEDURE
    parameters: List[ParameterDescriptor] = field(default_factory=list)

    # Designation arguments
    columns: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    bulk_insert_table: Optional[str] = None
    bulk_insert_columns: List[BulkInsertColumn] = field(default_factory=list)

    # Documentation
    short_description: str = ""
    long_description: str = ""
    hidden: bool = False

    # Load state, used to decide whether a reload is required
    timestamp: Optional[float] = None
    sql_mode: Optional[str] = None
    character_set: Optional[str] = None
    collate: Optional[str] = None
    replace: Dict[str, str] = field(default_factory=dict)

    @property
    def has_lob_parameter(self) -> bool:
        """Whether at least one parameter requires chunked streaming."""
        return any(p.is_lob for p in self.parameters)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "routine_name": self.routine_name,
            "designation": self.designation.value,
            "routine_type": self.routine_type.value,
            "parameters": [p.to_dict() for p in self.parameters],
            "columns": self.columns,
            "return_type": self.return_type,
            "bulk_insert_table": self.bulk_insert_table,
            "bulk_insert_columns": [c.to_dict() for c in self.bulk_insert_columns],
            "short_description": self.short_description,
            "long_description": self.long_description,
            "hidden": self.hidden,
            "timestamp": self.timestamp,
            "sql_mode": self.sql_mode,
            "character_set": self.character_set,
            "collate": self.collate,
            "replace": self.replace,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RoutineMetadata:
        """
        Create from dictionary.

        Raises:
            MetadataError: a required key is missing or has the wrong shape
            UnknownDesignationError: the designation is outside the closed set
        """
        try:
            return cls(
                routine_name=data["routine_name"],
                designation=Designation.parse(data["designation"]),
                routine_type=RoutineType(data.get("routine_type", "procedure")),
                parameters=[ParameterDescriptor.from_dict(p) for p in data.get("parameters", [])],
                columns=list(data.get("columns", [])),
                return_type=data.get("return_type"),
                bulk_insert_table=data.get("bulk_insert_table"),
                bulk_insert_columns=[
                    BulkInsertColumn.from_dict(c) for c in data.get("bulk_insert_columns", [])
                ],
                short_description=data.get("short_description", ""),
                long_description=data.get("long_description", ""),
                hidden=data.get("hidden", False),
                timestamp=data.get("timestamp"),
                sql_mode=data.get("sql_mode"),
                character_set=data.get("character_set"),
                collate=data.get("collate"),
                replace=dict(data.get("replace", {})),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MetadataError(f"Malformed routine metadata: {e!r}") from e


@dataclass
class RdbmsRoutineDescriptor:
    """A stored routine as currently present in the live catalog."""
    routine_name: str
    routine_type: RoutineType
    sql_mode: Optional[str] = None
    character_set_client: Optional[str] = None
    collation_connection: Optional[str] = None


@dataclass
class TableColumn:
    """A table column as reported by the catalog, used for placeholders."""
    table_name: str
    column_name: str
    column_type: str
    character_set_name: Optional[str] = None
