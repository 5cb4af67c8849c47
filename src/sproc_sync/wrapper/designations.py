"""
Designation strategies.

Every designation owns the code emitted for its result handling:

- the return type of the wrapper method
- extra leading parameters of the wrapper method (e.g. a bulk handler)
- the result handler of the direct call path
- the fetch and return code of the prepared-statement (LOB) path

`STRATEGIES` covers every member of `Designation`; `strategy_for` is the only
way to look one up.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Tuple, Union

from sproc_sync.errors import UnknownDesignationError, WrapperError
from sproc_sync.models import Designation, RoutineMetadata

if TYPE_CHECKING:
    from sproc_sync.wrapper.routine_wrapper import RoutineWrapper


@dataclass(frozen=True)
class ExtraParameter:
    """A wrapper parameter that does not correspond to a routine parameter."""
    name: str
    type_hint: str
    description: str


@dataclass(frozen=True)
class DesignationStrategy:
    designation: Designation
    return_type: Callable[[RoutineMetadata], str]
    result_handler: Callable[["RoutineWrapper", str], None]
    lob_fetch: Callable[["RoutineWrapper"], None]
    lob_return: Callable[["RoutineWrapper"], None]
    extra_parameters: Tuple[ExtraParameter, ...] = ()


def _returns(type_hint: str) -> Callable[[RoutineMetadata], str]:
    return lambda routine: type_hint


def _delegate(method: str) -> Callable[["RoutineWrapper", str], None]:
    """Result handler that hands the query to a runtime helper."""
    def handler(w: RoutineWrapper, query: str) -> None:
        w.code.append(f"return self.{method}({query})")
    return handler


def _fetch_rows(w: RoutineWrapper) -> None:
    w.code.append("_rows = _stmt.fetch_rows()")


def _check_row_count(w: RoutineWrapper, condition: str, expected: str) -> None:
    w.code.append(f"if {condition}:")
    w.code.indent()
    w.code.append(f'raise ResultException(f"Expected {expected}, found {{len(_rows)}} rows.")')
    w.code.dedent()


# none

def _none_fetch(w: RoutineWrapper) -> None:
    w.code.append("_count = _stmt.rowcount")


def _none_return(w: RoutineWrapper) -> None:
    w.code.append("return _count")


# row0 / row1 / rows

def _row0_return(w: RoutineWrapper) -> None:
    _check_row_count(w, "len(_rows) > 1", "0 or 1 row")
    w.code.append("return _rows[0] if _rows else None")


def _row1_return(w: RoutineWrapper) -> None:
    _check_row_count(w, "len(_rows) != 1", "1 row")
    w.code.append("return _rows[0]")


def _rows_return(w: RoutineWrapper) -> None:
    w.code.append("return _rows")


# rows_with_key / rows_with_index

def _nesting_expression(columns: List[str], leaf: str) -> str:
    expression = "_result"
    for column in columns[:-1]:
        expression += f".setdefault(_row[{column!r}], {{}})"
    if leaf == "row":
        return f"{expression}[_row[{columns[-1]!r}]] = _row"
    return f"{expression}.setdefault(_row[{columns[-1]!r}], []).append(_row)"


def _write_nesting(w: RoutineWrapper, leaf: str) -> None:
    columns = w.routine.columns
    if not columns:
        raise WrapperError(
            f"Routine {w.routine.routine_name} with designation "
            f"'{w.routine.designation.value}' has no key columns"
        )
    w.code.append("_result: Dict[Any, Any] = {}")
    w.code.append("for _row in _rows:")
    w.code.indent()
    w.code.append(_nesting_expression(columns, leaf))
    w.code.dedent()
    w.code.append("return _result")


def _keyed_handler(leaf: str) -> Callable[["RoutineWrapper", str], None]:
    def handler(w: RoutineWrapper, query: str) -> None:
        w.code.append(f"_rows = self.execute_rows({query})")
        _write_nesting(w, leaf)
    return handler


def _keyed_return(leaf: str) -> Callable[["RoutineWrapper"], None]:
    return lambda w: _write_nesting(w, leaf)


# singleton0 / singleton1 / function

def _singleton0_type(routine: RoutineMetadata) -> str:
    return f"Optional[{routine.return_type or 'Any'}]"


def _singleton1_type(routine: RoutineMetadata) -> str:
    return routine.return_type or "Any"


def _singleton0_return(w: RoutineWrapper) -> None:
    _check_row_count(w, "len(_rows) > 1", "0 or 1 row")
    w.code.append("return next(iter(_rows[0].values())) if _rows else None")


def _singleton1_return(w: RoutineWrapper) -> None:
    _check_row_count(w, "len(_rows) != 1", "1 row")
    w.code.append("return next(iter(_rows[0].values()))")


# map / log / table

def _map_return(w: RoutineWrapper) -> None:
    w.code.append("_result: Dict[Any, Any] = {}")
    w.code.append("for _row in _rows:")
    w.code.indent()
    w.code.append("_key, _value = list(_row.values())[:2]")
    w.code.append("_result[_key] = _value")
    w.code.dedent()
    w.code.append("return _result")


def _log_return(w: RoutineWrapper) -> None:
    w.code.append("return self.log_rows(_rows)")


def _table_return(w: RoutineWrapper) -> None:
    w.code.append("return self.show_table(_rows)")


# bulk

def _bulk_handler(w: RoutineWrapper, query: str) -> None:
    w.code.append(f"self.execute_bulk(bulk_handler, {query})")


def _bulk_fetch(w: RoutineWrapper) -> None:
    w.code.append("bulk_handler.start()")
    w.code.append("for _row in _stmt.iter_rows():")
    w.code.indent()
    w.code.append("bulk_handler.row(_row)")
    w.code.dedent()
    w.code.append("bulk_handler.stop()")


def _no_return(w: RoutineWrapper) -> None:
    pass


# bulk_insert

def _bulk_insert_handler(w: RoutineWrapper, query: str) -> None:
    routine = w.routine
    if not routine.bulk_insert_table or not routine.bulk_insert_columns:
        raise WrapperError(f"Routine {routine.routine_name} has no bulk insert table")

    from sproc_sync.wrapper.data_types import quote_function

    columns = ", ".join(f"`{c.name}`" for c in routine.bulk_insert_columns)
    values = ", ".join(
        f"{{self.{quote_function(c.data_type)}(_row[{c.key!r}])}}"
        for c in routine.bulk_insert_columns
    )

    w.code.append(f"self.execute_none({query})")
    w.code.append("if rows:")
    w.code.indent()
    w.code.append(f'_values = ", ".join(f"({values})" for _row in rows)')
    w.code.append(
        f'self.execute_none(f"insert into `{routine.bulk_insert_table}`({columns}) values {{_values}}")'
    )
    w.code.dedent()


def _bulk_insert_lob(w: RoutineWrapper) -> None:
    raise WrapperError(
        f"Routine {w.routine.routine_name} with designation 'bulk_insert' cannot have LOB parameters"
    )


STRATEGIES: Dict[Designation, DesignationStrategy] = {
    Designation.NONE: DesignationStrategy(
        Designation.NONE, _returns("int"),
        _delegate("execute_none"), _none_fetch, _none_return,
    ),
    Designation.ROW0: DesignationStrategy(
        Designation.ROW0, _returns("Optional[Dict[str, Any]]"),
        _delegate("execute_row0"), _fetch_rows, _row0_return,
    ),
    Designation.ROW1: DesignationStrategy(
        Designation.ROW1, _returns("Dict[str, Any]"),
        _delegate("execute_row1"), _fetch_rows, _row1_return,
    ),
    Designation.ROWS: DesignationStrategy(
        Designation.ROWS, _returns("List[Dict[str, Any]]"),
        _delegate("execute_rows"), _fetch_rows, _rows_return,
    ),
    Designation.ROWS_WITH_KEY: DesignationStrategy(
        Designation.ROWS_WITH_KEY, _returns("Dict[Any, Any]"),
        _keyed_handler("row"), _fetch_rows, _keyed_return("row"),
    ),
    Designation.ROWS_WITH_INDEX: DesignationStrategy(
        Designation.ROWS_WITH_INDEX, _returns("Dict[Any, Any]"),
        _keyed_handler("list"), _fetch_rows, _keyed_return("list"),
    ),
    Designation.SINGLETON0: DesignationStrategy(
        Designation.SINGLETON0, _singleton0_type,
        _delegate("execute_singleton0"), _fetch_rows, _singleton0_return,
    ),
    Designation.SINGLETON1: DesignationStrategy(
        Designation.SINGLETON1, _singleton1_type,
        _delegate("execute_singleton1"), _fetch_rows, _singleton1_return,
    ),
    Designation.FUNCTION: DesignationStrategy(
        Designation.FUNCTION, _singleton1_type,
        _delegate("execute_singleton1"), _fetch_rows, _singleton1_return,
    ),
    Designation.MAP: DesignationStrategy(
        Designation.MAP, _returns("Dict[Any, Any]"),
        _delegate("execute_map"), _fetch_rows, _map_return,
    ),
    Designation.LOG: DesignationStrategy(
        Designation.LOG, _returns("int"),
        _delegate("execute_log"), _fetch_rows, _log_return,
    ),
    Designation.TABLE: DesignationStrategy(
        Designation.TABLE, _returns("int"),
        _delegate("execute_table"), _fetch_rows, _table_return,
    ),
    Designation.BULK: DesignationStrategy(
        Designation.BULK, _returns("None"),
        _bulk_handler, _bulk_fetch, _no_return,
        extra_parameters=(
            ExtraParameter(
                "bulk_handler", "BulkHandler",
                "The handler for the rows selected by the stored routine.",
            ),
        ),
    ),
    Designation.BULK_INSERT: DesignationStrategy(
        Designation.BULK_INSERT, _returns("None"),
        _bulk_insert_handler, _bulk_insert_lob, _bulk_insert_lob,
        extra_parameters=(
            ExtraParameter(
                "rows", "List[Dict[str, Any]]",
                "The rows to insert into the table created by the stored routine.",
            ),
        ),
    ),
}


def strategy_for(designation: Union[Designation, str]) -> DesignationStrategy:
    """
    Return the strategy of a designation.

    Raises:
        UnknownDesignationError: the designation is outside the closed set
    """
    if not isinstance(designation, Designation):
        designation = Designation.parse(designation)

    strategy = STRATEGIES.get(designation)
    if strategy is None:
        raise UnknownDesignationError(designation.value)
    return strategy
