"""
MySQL catalog access using mysql-connector-python.

Reads stored routine descriptors, table column types and routine parameters
from information_schema, and applies routine DDL to the live database.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sproc_sync.errors import CatalogError
from sproc_sync.models import (
    ParameterDescriptor,
    RdbmsRoutineDescriptor,
    RoutineType,
    TableColumn,
)

logger = logging.getLogger(__name__)


class MySqlCatalog:
    """
    Catalog reader and DDL executor for a MySQL schema.

    Uses information_schema views of the current database:
    - ROUTINES
    - PARAMETERS
    - COLUMNS
    """

    def __init__(self, connect_kwargs: Optional[Dict[str, Any]] = None, connection: Any = None):
        """
        Initialize the catalog.

        Args:
            connect_kwargs: Keyword arguments for mysql.connector.connect
            connection: An already open DB-API connection (takes precedence)
        """
        self.connect_kwargs = connect_kwargs or {}
        self._conn = connection

    def connect(self) -> None:
        """Establish database connection."""
        import mysql.connector

        try:
            self._conn = mysql.connector.connect(**self.connect_kwargs)
        except mysql.connector.Error as e:
            raise CatalogError(f"Unable to connect to MySQL: {e}", cause=e) from e

        logger.info(
            f"Connected to MySQL database {self.connect_kwargs.get('database', '')!r} "
            f"on {self.connect_kwargs.get('host', 'localhost')}"
        )

    def disconnect(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        if not self._conn:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a query and return its rows as dictionaries with lower-cased keys."""
        if not self._conn:
            self.connect()

        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, tuple(params))
            if cursor.description is None:
                return []
            names = [d[0].lower() for d in cursor.description]
            return [dict(zip(names, row)) for row in cursor.fetchall()]
        except Exception as e:
            raise CatalogError(f"Query failed: {e}", cause=e) from e
        finally:
            cursor.close()

    def execute_statement(self, sql: str) -> None:
        """Execute a statement that returns no rows."""
        if not self._conn:
            self.connect()

        logger.debug(f"Executing: {sql}")
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql)
            if cursor.description is not None:
                cursor.fetchall()
        except Exception as e:
            raise CatalogError(str(e), cause=e) from e
        finally:
            cursor.close()

    def get_routines(self) -> List[RdbmsRoutineDescriptor]:
        """Get all stored routines of the current schema."""
        rows = self._query("""
            SELECT routine_name,
                   routine_type,
                   sql_mode,
                   character_set_client,
                   collation_connection
            FROM information_schema.ROUTINES
            WHERE routine_schema = DATABASE()
            ORDER BY routine_name
        """)

        return [
            RdbmsRoutineDescriptor(
                routine_name=row["routine_name"],
                routine_type=RoutineType(row["routine_type"].lower()),
                sql_mode=row["sql_mode"],
                character_set_client=row["character_set_client"],
                collation_connection=row["collation_connection"],
            )
            for row in rows
        ]

    def get_all_table_columns(self) -> List[TableColumn]:
        """Get the column types of all tables of the current schema."""
        rows = self._query("""
            SELECT table_name,
                   column_name,
                   column_type,
                   character_set_name
            FROM information_schema.COLUMNS
            WHERE table_schema = DATABASE()
            ORDER BY table_name, ordinal_position
        """)

        return [
            TableColumn(
                table_name=row["table_name"],
                column_name=row["column_name"],
                column_type=row["column_type"],
                character_set_name=row["character_set_name"],
            )
            for row in rows
        ]

    def get_table_columns(self, table_name: str) -> List[TableColumn]:
        """Get the columns of a (possibly temporary) table, in ordinal order."""
        rows = self._query(f"SHOW COLUMNS FROM `{table_name}`")

        return [
            TableColumn(table_name=table_name, column_name=row["field"], column_type=row["type"])
            for row in rows
        ]

    def get_routine_parameters(self, routine_name: str) -> List[ParameterDescriptor]:
        """Get the parameters of a stored routine in positional order."""
        rows = self._query("""
            SELECT parameter_name,
                   data_type,
                   dtd_identifier,
                   numeric_precision,
                   numeric_scale,
                   character_set_name,
                   collation_name
            FROM information_schema.PARAMETERS
            WHERE specific_schema = DATABASE()
              AND specific_name = %s
              AND parameter_name IS NOT NULL
            ORDER BY ordinal_position
        """, (routine_name,))

        return [
            ParameterDescriptor(
                name=row["parameter_name"],
                data_type=row["data_type"],
                dtd_identifier=row["dtd_identifier"],
                numeric_precision=row["numeric_precision"],
                numeric_scale=row["numeric_scale"],
                character_set_name=row["character_set_name"],
                collation_name=row["collation_name"],
            )
            for row in rows
        ]

    def get_function_return_type(self, routine_name: str) -> Optional[str]:
        """Get the data type of the return value of a stored function."""
        rows = self._query("""
            SELECT data_type
            FROM information_schema.PARAMETERS
            WHERE specific_schema = DATABASE()
              AND specific_name = %s
              AND ordinal_position = 0
        """, (routine_name,))

        return rows[0]["data_type"] if rows else None

    def get_correct_sql_mode(self, sql_mode: str) -> str:
        """Return a SQL mode in the canonical order preferred by MySQL."""
        self._query("SET sql_mode = %s", (sql_mode,))
        rows = self._query("SELECT @@sql_mode AS sql_mode")
        return rows[0]["sql_mode"]

    def set_session(self, sql_mode: str, character_set: str, collate: str) -> None:
        """Set the SQL mode, character set and collation of the session."""
        self._query("SET sql_mode = %s", (sql_mode,))
        self.execute_statement(f"SET NAMES {character_set} COLLATE {collate}")

    def drop_routine(self, routine_type: RoutineType, routine_name: str) -> None:
        """Drop a stored routine."""
        self.execute_statement(f"DROP {routine_type.value.upper()} IF EXISTS `{routine_name}`")
