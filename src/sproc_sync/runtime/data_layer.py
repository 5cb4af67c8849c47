"""
Runtime support for generated wrapper modules.

`DataLayer` is the parent class of a generated wrapper class. It owns the
database connection and provides:

- the result helpers used by wrappers without LOB parameters
  (`execute_rows`, `execute_row1`, ...)
- the helpers that render Python values as SQL literals (`quote_int`, ...)
- the prepared-statement hooks used by wrappers with LOB parameters
  (`prepare`, `execute_statement`, `discard_results`, `chunk_size`)

The connection is any DB-API 2.0 connection. Drivers that support prepared
statements with long data plug in through `prepare`; see
`sproc_sync.runtime.mysql`.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from rich.console import Console
from rich.table import Table

from sproc_sync.errors import QueryError, ResultException

logger = logging.getLogger(__name__)

# Upper bound of the chunk size of long data.
MAX_CHUNK_SIZE = 1024 * 1024

_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\0": "\\0",
    "\n": "\\n",
    "\r": "\\r",
    "\x1a": "\\Z",
}


class BulkHandler:
    """
    Receives the rows of a routine with designation `bulk`, one at a time.

    Subclasses override the methods they need; the default implementation
    ignores all rows.
    """

    def start(self) -> None:
        """Called before the first row."""

    def row(self, row: Dict[str, Any]) -> None:
        """Called for each row selected by the stored routine."""

    def stop(self) -> None:
        """Called after the last row."""


class PreparedStatement:
    """Interface of a prepared statement with long-data parameters."""

    @property
    def rowcount(self) -> int:
        raise NotImplementedError

    def bind_nulls(self, count: int) -> None:
        """Bind NULL to each of the `count` placeholders; long data overrides the NULL."""
        raise NotImplementedError

    def send_long_data(self, index: int, chunk: Any) -> None:
        """Append a chunk to the value of the placeholder at `index`."""
        raise NotImplementedError

    def execute(self) -> None:
        raise NotImplementedError

    def iter_rows(self) -> Iterator[Dict[str, Any]]:
        raise NotImplementedError

    def fetch_rows(self) -> List[Dict[str, Any]]:
        return list(self.iter_rows())

    def close(self) -> None:
        raise NotImplementedError


class DataLayer:
    """
    Base class of generated wrapper classes.

    Usage:
        layer = DataLayer(connection)
        rows = layer.execute_rows("call tst_get_all()")
    """

    #: Exception types of the driver that are reported as QueryError.
    database_errors: Tuple[Type[BaseException], ...] = ()
    #: Encoding of text LOB values sent as long data.
    charset: str = "utf-8"

    def __init__(
        self,
        connection: Any = None,
        chunk_size: Optional[int] = None,
        log_queries: bool = False,
        console: Optional[Console] = None,
    ):
        """
        Args:
            connection: DB-API connection to the database
            chunk_size: Size of the chunks LOB values are sent in; derived from
                the server's max_allowed_packet when not given
            log_queries: Record every query with its duration in `query_log`
            console: Console for the `table` designation
        """
        self.connection = connection
        self._chunk_size = chunk_size
        self.log_queries = log_queries
        self.query_log: List[Dict[str, Any]] = []
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def __enter__(self) -> DataLayer:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def chunk_size(self) -> int:
        """Size of the chunks in which LOB values are sent to the server."""
        if self._chunk_size is None:
            packet = int(self.execute_singleton1("select @@max_allowed_packet"))
            self._chunk_size = min(packet - 8, MAX_CHUNK_SIZE)
            logger.debug(f"Using chunk size {self._chunk_size}")
        return self._chunk_size

    @chunk_size.setter
    def chunk_size(self, value: int) -> None:
        if value <= 0:
            raise ValueError(f"Chunk size must be positive, got {value}")
        self._chunk_size = value

    # ------------------------------------------------------------------
    # Query execution
    # ------------------------------------------------------------------

    def _log_query(self, query: str, start: float) -> None:
        if self.log_queries:
            self.query_log.append({"query": query, "time": time.perf_counter() - start})

    def _cursor(self, query: str):
        cursor = self.connection.cursor()
        logger.debug(f"Executing {query}")
        start = time.perf_counter()
        try:
            cursor.execute(query)
        except self.database_errors as e:
            cursor.close()
            raise QueryError(str(e), query, e) from e
        self._log_query(query, start)
        return cursor

    @staticmethod
    def _rows(cursor) -> List[Dict[str, Any]]:
        names = [column[0] for column in cursor.description]
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    @staticmethod
    def _next_set(cursor) -> bool:
        nextset = getattr(cursor, "nextset", None)
        return bool(nextset is not None and nextset())

    def _result_sets(self, query: str) -> Iterator[List[Dict[str, Any]]]:
        """Yield the rows of every result set of a query."""
        cursor = self._cursor(query)
        try:
            while True:
                if cursor.description is not None:
                    yield self._rows(cursor)
                if not self._next_set(cursor):
                    break
        finally:
            cursor.close()

    def _first_result_set(self, query: str) -> List[Dict[str, Any]]:
        """Rows of the first result set; later result sets are discarded."""
        rows: Optional[List[Dict[str, Any]]] = None
        for result_set in self._result_sets(query):
            if rows is None:
                rows = result_set
        return rows or []

    def execute_none(self, query: str) -> int:
        """
        Execute a query without a result set.

        Returns:
            The number of affected rows
        """
        cursor = self._cursor(query)
        try:
            count = cursor.rowcount
            while self._next_set(cursor):
                pass
        finally:
            cursor.close()
        return max(count, 0)

    def execute_rows(self, query: str) -> List[Dict[str, Any]]:
        return self._first_result_set(query)

    def execute_row0(self, query: str) -> Optional[Dict[str, Any]]:
        """Execute a query that selects 0 or 1 row."""
        rows = self._first_result_set(query)
        if len(rows) > 1:
            raise ResultException(f"Expected 0 or 1 row, found {len(rows)} rows.")
        return rows[0] if rows else None

    def execute_row1(self, query: str) -> Dict[str, Any]:
        """Execute a query that selects exactly 1 row."""
        rows = self._first_result_set(query)
        if len(rows) != 1:
            raise ResultException(f"Expected 1 row, found {len(rows)} rows.")
        return rows[0]

    def execute_singleton0(self, query: str) -> Any:
        """Execute a query that selects 0 or 1 row with 1 column."""
        row = self.execute_row0(query)
        return next(iter(row.values())) if row is not None else None

    def execute_singleton1(self, query: str) -> Any:
        """Execute a query that selects exactly 1 row with 1 column."""
        return next(iter(self.execute_row1(query).values()))

    def execute_map(self, query: str) -> Dict[Any, Any]:
        """Map the first column of every row onto its second column."""
        result: Dict[Any, Any] = {}
        for row in self._first_result_set(query):
            key, value = list(row.values())[:2]
            result[key] = value
        return result

    def execute_bulk(self, bulk_handler: BulkHandler, query: str) -> None:
        """Pass every row of the first result set to a bulk handler."""
        bulk_handler.start()
        for row in self._first_result_set(query):
            bulk_handler.row(row)
        bulk_handler.stop()

    def log_rows(self, rows: List[Dict[str, Any]]) -> int:
        for row in rows:
            logger.info(" ".join("" if v is None else str(v) for v in row.values()))
        return len(rows)

    def execute_log(self, query: str) -> int:
        """
        Log the rows of all result sets of a query.

        Returns:
            The total number of logged rows
        """
        return sum(self.log_rows(rows) for rows in self._result_sets(query))

    def show_table(self, rows: List[Dict[str, Any]]) -> int:
        """Print rows as a table."""
        if rows:
            table = Table(show_header=True, header_style="bold")
            for name in rows[0]:
                table.add_column(str(name))
            for row in rows:
                table.add_row(*("NULL" if v is None else str(v) for v in row.values()))
            self.console.print(table)
        return len(rows)

    def execute_table(self, query: str) -> int:
        """
        Print the rows of all result sets of a query as tables.

        Returns:
            The total number of printed rows
        """
        return sum(self.show_table(rows) for rows in self._result_sets(query))

    # ------------------------------------------------------------------
    # Prepared statements
    # ------------------------------------------------------------------

    def prepare(self, query: str) -> PreparedStatement:
        """Prepare a query with `?` placeholders for LOB values."""
        raise NotImplementedError(f"{type(self).__name__} does not support prepared statements")

    def execute_statement(self, stmt: PreparedStatement, query: str) -> None:
        logger.debug(f"Executing prepared statement {query}")
        start = time.perf_counter()
        try:
            stmt.execute()
        except self.database_errors as e:
            raise QueryError(str(e), query, e) from e
        self._log_query(query, start)

    def discard_results(self) -> None:
        """Discard result sets left over after a prepared statement was closed."""

    def lob_bytes(self, value: Any) -> Optional[bytes]:
        """Return a LOB value as bytes; `chunk_size` counts bytes, not characters."""
        if isinstance(value, str):
            return value.encode(self.charset)
        return value

    # ------------------------------------------------------------------
    # Literals
    # ------------------------------------------------------------------

    @staticmethod
    def quote_int(value: Any) -> str:
        if value is None:
            return "NULL"
        return str(int(value))

    @staticmethod
    def quote_decimal(value: Any) -> str:
        if value is None:
            return "NULL"
        number = value if isinstance(value, Decimal) else Decimal(str(value))
        if not number.is_finite():
            raise ValueError(f"Cannot render {value!r} as a decimal literal")
        return str(number)

    @staticmethod
    def quote_float(value: Any) -> str:
        if value is None:
            return "NULL"
        return repr(float(value))

    @staticmethod
    def quote_str(value: Any) -> str:
        if value is None:
            return "NULL"
        text = str(value)
        return "'" + "".join(_ESCAPES.get(c, c) for c in text) + "'"

    @staticmethod
    def quote_binary(value: Any) -> str:
        if value is None:
            return "NULL"
        return "X'" + bytes(value).hex() + "'"
