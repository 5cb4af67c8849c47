"""
Loads a single routine source into the database.

The loader decides whether a routine must be (re)loaded, substitutes
placeholders, applies the routine definition to the live database and
collects the metadata the wrapper generator needs.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sproc_sync.catalog.placeholders import substitute
from sproc_sync.errors import CatalogError, LoaderError, WrapperError
from sproc_sync.loader.docblock import DocBlock, parse_doc_block
from sproc_sync.models import (
    BulkInsertColumn,
    Designation,
    ParameterDescriptor,
    RdbmsRoutineDescriptor,
    RoutineMetadata,
    RoutineType,
)
from sproc_sync.wrapper.data_types import python_type_hint

logger = logging.getLogger(__name__)

CREATE_PATTERN = re.compile(
    r"\bcreate\s+(?:definer\s*=\s*\S+\s+)?(procedure|function)\s+`?([A-Za-z0-9_$]+)`?",
    re.IGNORECASE,
)

# Separators between the key columns of a designation tag.
KEY_SEPARATOR = re.compile(r"[\s,]+")


def _split_keys(args: List[str]) -> List[str]:
    """Split designation arguments like `col1, col2` or `col1,col2` into names."""
    return [key for key in KEY_SEPARATOR.split(" ".join(args)) if key]


def _type_hint(data_type: str, what: str) -> str:
    try:
        return python_type_hint(data_type)
    except WrapperError as e:
        raise LoaderError(f"{what}: {e}") from e


class RoutineLoader:
    """
    Loads stored routines from source files into MySQL.

    The catalog does the actual DDL submission; the loader owns the decisions
    around it.
    """

    def __init__(self, catalog):
        """
        Args:
            catalog: Catalog used to apply DDL and read routine parameters (MySqlCatalog)
        """
        self.catalog = catalog

    def load(
        self,
        path: Path,
        old_metadata: Optional[RoutineMetadata],
        replace_pairs: Dict[str, str],
        old_descriptor: Optional[RdbmsRoutineDescriptor],
        sql_mode: str,
        character_set: str,
        collate: str,
    ) -> Optional[RoutineMetadata]:
        """
        Load a stored routine if its source, placeholders or session settings changed.

        Returns:
            The routine's metadata, or None if the routine could not be loaded
        """
        try:
            return self._load(
                Path(path), old_metadata, replace_pairs, old_descriptor,
                sql_mode, character_set, collate,
            )
        except (LoaderError, CatalogError) as e:
            logger.error(f"Error loading {path}: {e}")
            return None

    def must_reload(
        self,
        mtime: float,
        old_metadata: Optional[RoutineMetadata],
        replace_pairs: Dict[str, str],
        old_descriptor: Optional[RdbmsRoutineDescriptor],
        sql_mode: str,
        character_set: str,
        collate: str,
    ) -> bool:
        """Return whether a routine must be loaded again."""
        if old_metadata is None or old_descriptor is None:
            return True

        if old_metadata.timestamp != mtime:
            return True

        for key, value in old_metadata.replace.items():
            if replace_pairs.get(key) != value:
                return True

        if old_descriptor.sql_mode != sql_mode:
            return True
        if old_descriptor.character_set_client != character_set:
            return True
        if old_descriptor.collation_connection != collate:
            return True

        return False

    def _load(
        self,
        path: Path,
        old_metadata: Optional[RoutineMetadata],
        replace_pairs: Dict[str, str],
        old_descriptor: Optional[RdbmsRoutineDescriptor],
        sql_mode: str,
        character_set: str,
        collate: str,
    ) -> RoutineMetadata:
        routine_name = path.stem

        try:
            text = path.read_text(encoding="utf-8")
            mtime = path.stat().st_mtime
        except OSError as e:
            raise LoaderError(f"Unable to read source: {e}") from e

        if not self.must_reload(
            mtime, old_metadata, replace_pairs, old_descriptor, sql_mode, character_set, collate,
        ):
            logger.debug(f"Routine {routine_name} is up to date")
            return old_metadata

        logger.info(f"Loading {routine_name}")

        doc = parse_doc_block(text)
        if doc.designation is None:
            raise LoaderError("Unable to find the designation type of the stored routine")
        designation = Designation.parse(doc.designation)

        routine_type, name_in_source = self._extract_routine_name(text)
        if name_in_source != routine_name:
            raise LoaderError(
                f"Stored routine name '{name_in_source}' does not match file name '{path.name}'"
            )
        if (routine_type == RoutineType.FUNCTION) != (designation == Designation.FUNCTION):
            raise LoaderError(
                f"A stored {routine_type.value} cannot have designation '{designation.value}'"
            )

        sql, used, unknown = substitute(text, replace_pairs)
        if unknown:
            raise LoaderError(f"Unknown placeholder(s): {', '.join(unknown)}")

        self.catalog.set_session(sql_mode, character_set, collate)
        if old_descriptor is not None:
            self.catalog.drop_routine(old_descriptor.routine_type, old_descriptor.routine_name)
        self.catalog.execute_statement(sql)

        parameters = self.catalog.get_routine_parameters(routine_name)
        for param in parameters:
            _type_hint(param.data_type, f"Parameter {param.name}")
        self._attach_descriptions(routine_name, parameters, doc)

        metadata = RoutineMetadata(
            routine_name=routine_name,
            designation=designation,
            routine_type=routine_type,
            parameters=parameters,
            short_description=doc.short_description,
            long_description=doc.long_description,
            hidden=doc.hidden,
            timestamp=mtime,
            sql_mode=sql_mode,
            character_set=character_set,
            collate=collate,
            replace=used,
        )
        self._apply_designation_args(metadata, doc)

        return metadata

    def _extract_routine_name(self, text: str) -> Tuple[RoutineType, str]:
        match = CREATE_PATTERN.search(text)
        if not match:
            raise LoaderError("Unable to find the stored routine name and type")
        return RoutineType(match.group(1).lower()), match.group(2)

    def _attach_descriptions(
        self,
        routine_name: str,
        parameters: List[ParameterDescriptor],
        doc: DocBlock,
    ) -> None:
        names = {p.name for p in parameters}
        for param in parameters:
            if param.name in doc.parameters:
                param.description = doc.parameters[param.name]
            else:
                logger.warning(f"Parameter {param.name} of {routine_name} is not documented")

        for documented in doc.parameters:
            if documented not in names:
                logger.warning(f"Documented parameter {documented} not found in {routine_name}")

    def _apply_designation_args(self, metadata: RoutineMetadata, doc: DocBlock) -> None:
        designation = metadata.designation
        args = doc.designation_args

        if designation in (Designation.ROWS_WITH_KEY, Designation.ROWS_WITH_INDEX):
            if not args:
                raise LoaderError(f"Designation '{designation.value}' requires key columns")
            metadata.columns = _split_keys(args)

        elif designation in (Designation.SINGLETON0, Designation.SINGLETON1):
            metadata.return_type = args[0] if args else None

        elif designation == Designation.FUNCTION:
            data_type = self.catalog.get_function_return_type(metadata.routine_name)
            metadata.return_type = _type_hint(data_type, "Return type") if data_type else None

        elif designation == Designation.BULK_INSERT:
            self._apply_bulk_insert(metadata, args)

    def _apply_bulk_insert(self, metadata: RoutineMetadata, args: List[str]) -> None:
        if not args:
            raise LoaderError("Designation 'bulk_insert' requires a table name")
        if metadata.parameters:
            raise LoaderError("A stored routine with designation 'bulk_insert' cannot have parameters")

        table_name = args[0]

        # The routine creates the temporary table; describe it and drop it again.
        self.catalog.execute_statement(f"CALL {metadata.routine_name}()")
        columns = self.catalog.get_table_columns(table_name)
        self.catalog.execute_statement(f"DROP TEMPORARY TABLE IF EXISTS `{table_name}`")

        for col in columns:
            _type_hint(col.column_type, f"Column {col.column_name} of table '{table_name}'")

        keys = _split_keys(args[1:]) if len(args) > 1 else [c.column_name for c in columns]
        if len(keys) != len(columns):
            raise LoaderError(
                f"Number of keys ({len(keys)}) and number of columns of table "
                f"'{table_name}' ({len(columns)}) differ"
            )

        metadata.bulk_insert_table = table_name
        metadata.bulk_insert_columns = [
            BulkInsertColumn(name=col.column_name, data_type=col.column_type, key=key)
            for col, key in zip(columns, keys)
        ]
