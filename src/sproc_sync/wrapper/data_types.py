"""
MySQL data type knowledge for the wrapper generator.

Maps MySQL data types onto Python type hints and onto the runtime helper that
renders a Python value as a SQL literal.
"""

from __future__ import annotations

from typing import Dict, Tuple

from sproc_sync.errors import WrapperError
from sproc_sync.models import LOB_DATA_TYPES

# data type -> (python type hint, runtime quoting helper)
MYSQL_TYPE_MAP: Dict[str, Tuple[str, str]] = {
    "tinyint": ("int", "quote_int"),
    "smallint": ("int", "quote_int"),
    "mediumint": ("int", "quote_int"),
    "int": ("int", "quote_int"),
    "integer": ("int", "quote_int"),
    "bigint": ("int", "quote_int"),
    "year": ("int", "quote_int"),
    "bit": ("int", "quote_int"),
    "decimal": ("Decimal", "quote_decimal"),
    "numeric": ("Decimal", "quote_decimal"),
    "float": ("float", "quote_float"),
    "double": ("float", "quote_float"),
    "real": ("float", "quote_float"),
    "char": ("str", "quote_str"),
    "varchar": ("str", "quote_str"),
    "tinytext": ("str", "quote_str"),
    "text": ("str", "quote_str"),
    "mediumtext": ("str", "quote_str"),
    "longtext": ("str", "quote_str"),
    "enum": ("str", "quote_str"),
    "set": ("str", "quote_str"),
    "json": ("str", "quote_str"),
    "date": ("str", "quote_str"),
    "datetime": ("str", "quote_str"),
    "timestamp": ("str", "quote_str"),
    "time": ("str", "quote_str"),
    "binary": ("bytes", "quote_binary"),
    "varbinary": ("bytes", "quote_binary"),
    "tinyblob": ("bytes", "quote_binary"),
    "blob": ("bytes", "quote_binary"),
    "mediumblob": ("bytes", "quote_binary"),
    "longblob": ("bytes", "quote_binary"),
}


def base_type(data_type: str) -> str:
    """Return the bare type name of a data type or column type, e.g. `int(10) unsigned` -> `int`."""
    return data_type.strip().lower().split("(", 1)[0].split(" ", 1)[0]


def _lookup(data_type: str) -> Tuple[str, str]:
    try:
        return MYSQL_TYPE_MAP[base_type(data_type)]
    except KeyError:
        raise WrapperError(f"Unsupported data type: {data_type!r}") from None


def python_type_hint(data_type: str) -> str:
    """Python type hint for values of a MySQL data type."""
    return _lookup(data_type)[0]


def quote_function(data_type: str) -> str:
    """Name of the runtime helper that renders a value of a MySQL data type as a literal."""
    return _lookup(data_type)[1]


def is_lob(data_type: str) -> bool:
    """Whether a MySQL data type is sent to the server as long data."""
    return base_type(data_type) in LOB_DATA_TYPES


def escape_expression(data_type: str, expression: str, lob_as_string: bool = False) -> str:
    """
    Return Python code that renders an expression as a SQL literal.

    LOB values are sent as long data and get a `?` placeholder instead, unless
    LOBs are treated as strings.
    """
    if is_lob(data_type) and not lob_as_string:
        return "?"
    return f"{{self.{quote_function(data_type)}({expression})}}"
