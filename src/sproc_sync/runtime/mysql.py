"""
MySQL data layer using mysql-connector-python.

LOB values are streamed with the binary protocol of the pure Python
connection: the statement is prepared with `cmd_stmt_prepare`, each chunk is
sent with `cmd_stmt_send_long_data` and the statement is executed with NULL
bound to every placeholder. The server uses the long data of a placeholder in
place of its bound NULL.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Dict, Iterator, Optional, Tuple

import mysql.connector
from mysql.connector.constants import FieldFlag

from sproc_sync.errors import QueryError
from sproc_sync.runtime.data_layer import DataLayer, PreparedStatement

logger = logging.getLogger(__name__)


class MySqlPreparedStatement(PreparedStatement):
    """A server-side prepared statement on a pure Python MySQL connection."""

    def __init__(self, connection, query: str):
        self.connection = connection
        self.query = query
        self._prepared = connection.cmd_stmt_prepare(query.encode("utf-8"))
        self._statement_id = self._prepared["statement_id"]
        self._data: Tuple[Any, ...] = ()
        self._result: Any = None

    def bind_nulls(self, count: int) -> None:
        self._data = (None,) * count

    def send_long_data(self, index: int, chunk: Any) -> None:
        if isinstance(chunk, str):
            chunk = chunk.encode(self.connection.python_charset)
        self.connection.cmd_stmt_send_long_data(self._statement_id, index, io.BytesIO(chunk))

    def execute(self) -> None:
        self._result = self.connection.cmd_stmt_execute(
            self._statement_id,
            data=self._data,
            parameters=self._prepared["parameters"],
        )

    @property
    def rowcount(self) -> int:
        if isinstance(self._result, dict):
            return self._result.get("affected_rows", 0)
        return 0

    def _value(self, column, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)) and not column[7] & FieldFlag.BINARY:
            return value.decode(self.connection.python_charset)
        return value

    def iter_rows(self) -> Iterator[Dict[str, Any]]:
        if not isinstance(self._result, tuple):
            return
        columns = self._result[1]
        rows, _ = self.connection.get_rows(binary=True, columns=columns)
        names = [column[0] for column in columns]
        for row in rows:
            yield {
                name: self._value(column, value)
                for name, column, value in zip(names, columns, row)
            }

    def close(self) -> None:
        self.connection.cmd_stmt_close(self._statement_id)


class MySqlDataLayer(DataLayer):
    """
    Data layer over a mysql-connector-python connection.

    Usage:
        with MyDataLayer.connect(host="localhost", user="app", database="app") as dl:
            dl.tst_foo(1, "bar")
            dl.commit()
    """

    database_errors = (mysql.connector.Error,)

    @classmethod
    def connect(
        cls,
        chunk_size: Optional[int] = None,
        log_queries: bool = False,
        **connect_kwargs: Any,
    ) -> MySqlDataLayer:
        """
        Open a connection and return a data layer over it.

        Args:
            chunk_size: Size of the chunks LOB values are sent in
            log_queries: Record every query with its duration
            **connect_kwargs: Arguments for mysql.connector.connect
        """
        connect_kwargs.setdefault("use_pure", True)
        connect_kwargs.setdefault("autocommit", False)
        logger.debug(f"Connecting to {connect_kwargs.get('host', 'localhost')}")
        connection = mysql.connector.connect(**connect_kwargs)
        return cls(connection, chunk_size=chunk_size, log_queries=log_queries)

    @property
    def charset(self) -> str:
        return self.connection.python_charset

    def prepare(self, query: str) -> MySqlPreparedStatement:
        try:
            return MySqlPreparedStatement(self.connection, query)
        except self.database_errors as e:
            raise QueryError(str(e), query, e) from e

    def discard_results(self) -> None:
        if getattr(self.connection, "unread_result", False):
            self.connection.consume_results()
