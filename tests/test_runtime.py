"""
Tests for the runtime data layer and for generated wrapper methods.

Generated modules are compiled and their methods are called against a fake
DB-API connection and fake prepared statements.
"""

import io
import logging
from decimal import Decimal

import pytest
from rich.console import Console

from sproc_sync.errors import QueryError, ResultException
from sproc_sync.models import BulkInsertColumn
from sproc_sync.runtime import BulkHandler, DataLayer
from sproc_sync.wrapper import WrapperGenerator

from fakes import FakeConnection, compile_wrapper, parameter, routine, with_fake_statements


class CollectingHandler(BulkHandler):
    def __init__(self):
        self.events = []

    def start(self):
        self.events.append("start")

    def row(self, row):
        self.events.append(row)

    def stop(self):
        self.events.append("stop")


@pytest.fixture
def wrapper_class(wrapper_settings):
    """Compile a wrapper module for the given routines and return its class."""

    def _compile(*routines):
        metadata = {r.routine_name: r for r in routines}
        source, _ = WrapperGenerator(wrapper_settings).generate(metadata)
        return compile_wrapper(source, "AppDataLayer")

    return _compile


class TestQuoting:
    """Tests for the literal helpers."""

    def test_null(self):
        for quote in (DataLayer.quote_int, DataLayer.quote_decimal, DataLayer.quote_float,
                      DataLayer.quote_str, DataLayer.quote_binary):
            assert quote(None) == "NULL"

    def test_numbers(self):
        assert DataLayer.quote_int(42) == "42"
        assert DataLayer.quote_int(True) == "1"
        assert DataLayer.quote_decimal(Decimal("12.50")) == "12.50"
        assert DataLayer.quote_decimal(0.1) == "0.1"
        assert DataLayer.quote_float(2.5) == "2.5"

    def test_non_finite_decimal(self):
        with pytest.raises(ValueError):
            DataLayer.quote_decimal(Decimal("NaN"))

    def test_strings(self):
        assert DataLayer.quote_str("abc") == "'abc'"
        assert DataLayer.quote_str("it's") == "'it\\'s'"
        assert DataLayer.quote_str("a\\b\nc") == "'a\\\\b\\nc'"

    def test_binary(self):
        assert DataLayer.quote_binary(b"\x00\xff") == "X'00ff'"
        assert DataLayer.quote_binary(b"") == "X''"


class TestDataLayer:
    """Tests for the result helpers of DataLayer."""

    def test_multiple_result_sets(self):
        connection = FakeConnection({"call tst_two()": [[{"a": 1}], [{"b": 2}], 0]})
        layer = DataLayer(connection)

        assert layer.execute_rows("call tst_two()") == [{"a": 1}]

    def test_execute_none_counts_affected_rows(self):
        layer = DataLayer(FakeConnection({"call tst_upd()": [3]}))

        assert layer.execute_none("call tst_upd()") == 3

    def test_execute_log(self, caplog):
        connection = FakeConnection({"call tst_log()": [[{"msg": "one"}], [{"msg": "two"}, {"msg": "three"}]]})
        layer = DataLayer(connection)

        with caplog.at_level(logging.INFO, logger="sproc_sync.runtime.data_layer"):
            count = layer.execute_log("call tst_log()")

        assert count == 3
        assert [r.getMessage() for r in caplog.records] == ["one", "two", "three"]

    def test_execute_table(self):
        output = io.StringIO()
        connection = FakeConnection({"call tst_show()": [[{"id": 1, "name": "x"}, {"id": 2, "name": None}]]})
        layer = DataLayer(connection, console=Console(file=output, width=80))

        assert layer.execute_table("call tst_show()") == 2
        assert "name" in output.getvalue()
        assert "NULL" in output.getvalue()

    def test_query_error(self):
        class Layer(DataLayer):
            database_errors = (RuntimeError,)

        layer = Layer(FakeConnection({"call tst_bad()": RuntimeError("boom")}))

        with pytest.raises(QueryError) as exc_info:
            layer.execute_none("call tst_bad()")

        assert exc_info.value.query == "call tst_bad()"

    def test_query_log(self):
        layer = DataLayer(FakeConnection({"call tst_a()": [0]}), log_queries=True)
        layer.execute_none("call tst_a()")

        assert [entry["query"] for entry in layer.query_log] == ["call tst_a()"]

    def test_chunk_size_from_max_allowed_packet(self):
        connection = FakeConnection({"select @@max_allowed_packet": [[{"@@max_allowed_packet": 1000}]]})

        assert DataLayer(connection).chunk_size == 992

    def test_chunk_size_is_capped(self):
        connection = FakeConnection({"select @@max_allowed_packet": [[{"@@max_allowed_packet": 67108864}]]})

        assert DataLayer(connection).chunk_size == 1024 * 1024

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            DataLayer(FakeConnection()).chunk_size = 0


class TestGeneratedDirectPath:
    """Tests for generated wrappers without LOB parameters."""

    def test_row1(self, wrapper_class):
        cls = wrapper_class(routine("tst_get_user", "row1", [parameter("p_usr_id", "int")]))
        connection = FakeConnection({
            "call tst_get_user(1)": [[{"usr_id": 1, "usr_name": "alice"}]],
            "call tst_get_user(2)": [[]],
            "call tst_get_user(3)": [[{"usr_id": 3}, {"usr_id": 3}]],
        })
        layer = cls(connection)

        assert layer.tst_get_user(1) == {"usr_id": 1, "usr_name": "alice"}
        with pytest.raises(ResultException):
            layer.tst_get_user(2)
        with pytest.raises(ResultException):
            layer.tst_get_user(3)

    def test_singleton0(self, wrapper_class):
        cls = wrapper_class(routine("tst_count", "singleton0", [parameter("p_name", "varchar")]))
        connection = FakeConnection({
            "call tst_count('none')": [[]],
            "call tst_count('one')": [[{"n": 7}]],
            "call tst_count('two')": [[{"n": 1}, {"n": 2}]],
        })
        layer = cls(connection)

        assert layer.tst_count("none") is None
        assert layer.tst_count("one") == 7
        with pytest.raises(ResultException):
            layer.tst_count("two")

    def test_null_argument(self, wrapper_class):
        cls = wrapper_class(routine("tst_get_user", "row0", [parameter("p_usr_id", "int")]))
        connection = FakeConnection({"call tst_get_user(NULL)": [[]]})

        assert cls(connection).tst_get_user(None) is None

    def test_rows_with_key(self, wrapper_class):
        cls = wrapper_class(routine("tst_keyed", "rows_with_key", columns=["cmp_id", "usr_id"]))
        rows = [
            {"cmp_id": 1, "usr_id": 10, "name": "a"},
            {"cmp_id": 1, "usr_id": 11, "name": "b"},
            {"cmp_id": 2, "usr_id": 10, "name": "c"},
        ]
        layer = cls(FakeConnection({"call tst_keyed()": [rows]}))

        assert layer.tst_keyed() == {
            1: {10: rows[0], 11: rows[1]},
            2: {10: rows[2]},
        }

    def test_rows_with_index(self, wrapper_class):
        cls = wrapper_class(routine("tst_indexed", "rows_with_index", columns=["cmp_id"]))
        rows = [{"cmp_id": 1, "n": 1}, {"cmp_id": 1, "n": 2}, {"cmp_id": 2, "n": 3}]
        layer = cls(FakeConnection({"call tst_indexed()": [rows]}))

        assert layer.tst_indexed() == {1: [rows[0], rows[1]], 2: [rows[2]]}

    def test_map(self, wrapper_class):
        cls = wrapper_class(routine("tst_map", "map"))
        layer = cls(FakeConnection({"call tst_map()": [[{"k": "a", "v": 1}, {"k": "b", "v": 2}]]}))

        assert layer.tst_map() == {"a": 1, "b": 2}

    def test_function(self, wrapper_class):
        cls = wrapper_class(routine("tst_add", "function", [parameter("p_a", "int"), parameter("p_b", "int")]))
        layer = cls(FakeConnection({"select tst_add(1, 2)": [[{"tst_add(1, 2)": 3}]]}))

        assert layer.tst_add(1, 2) == 3

    def test_bulk(self, wrapper_class):
        cls = wrapper_class(routine("tst_bulk", "bulk"))
        layer = cls(FakeConnection({"call tst_bulk()": [[{"id": 1}, {"id": 2}]]}))
        handler = CollectingHandler()

        assert layer.tst_bulk(handler) is None
        assert handler.events == ["start", {"id": 1}, {"id": 2}, "stop"]

    def test_bulk_insert(self, wrapper_class):
        cls = wrapper_class(routine(
            "tst_ins", "bulk_insert",
            bulk_insert_table="tmp_rows",
            bulk_insert_columns=[
                BulkInsertColumn("tmp_id", "int(11)", "id"),
                BulkInsertColumn("tmp_name", "varchar(40)", "name"),
            ],
        ))
        connection = FakeConnection()
        layer = cls(connection)

        layer.tst_ins([{"id": 1, "name": "a"}, {"id": 2, "name": None}])

        assert connection.queries == [
            "call tst_ins()",
            "insert into `tmp_rows`(`tmp_id`, `tmp_name`) values (1, 'a'), (2, NULL)",
        ]

    def test_bulk_insert_without_rows(self, wrapper_class):
        cls = wrapper_class(routine(
            "tst_ins", "bulk_insert",
            bulk_insert_table="tmp_rows",
            bulk_insert_columns=[BulkInsertColumn("tmp_id", "int(11)", "id")],
        ))
        connection = FakeConnection()

        cls(connection).tst_ins([])

        assert connection.queries == ["call tst_ins()"]


class TestGeneratedLobPath:
    """Tests for generated wrappers with LOB parameters."""

    def test_multi_chunk_value(self, wrapper_class):
        cls = with_fake_statements(
            wrapper_class(routine("tst_store", "none", [parameter("p_id", "int"), parameter("p_data", "blob")])),
            rowcount=1,
        )
        layer = cls(FakeConnection(), chunk_size=4)
        data = b"0123456789"

        assert layer.tst_store(5, data) == 1

        stmt = layer.statements[0]
        assert stmt.query == "call tst_store(5, ?)"
        assert stmt.chunks[0] == [b"0123", b"4567", b"89"]
        assert stmt.value(0) == data
        assert stmt.executed
        assert stmt.closed

    def test_text_value(self, wrapper_class):
        cls = with_fake_statements(wrapper_class(routine("tst_store", "none", [parameter("p_text", "longtext")])))
        layer = cls(FakeConnection(), chunk_size=4)

        layer.tst_store("abcdef")

        assert layer.statements[0].chunks[0] == [b"abcd", b"ef"]

    def test_multibyte_text_chunks_fit_chunk_size(self, wrapper_class):
        cls = with_fake_statements(wrapper_class(routine("tst_store", "none", [parameter("p_text", "longtext")])))
        layer = cls(FakeConnection(), chunk_size=4)
        text = "é" * 8

        layer.tst_store(text)

        chunks = layer.statements[0].chunks[0]
        assert [len(chunk) for chunk in chunks] == [4, 4, 4, 4]
        assert layer.statements[0].value(0).decode("utf-8") == text

    def test_statement_closed_after_failed_execute(self, wrapper_class):
        cls = with_fake_statements(
            wrapper_class(routine("tst_find", "row1", [parameter("p_data", "blob")])),
            execute_error=RuntimeError("Lost connection"),
        )
        cls.database_errors = (RuntimeError,)
        layer = cls(FakeConnection(), chunk_size=4)

        with pytest.raises(QueryError):
            layer.tst_find(b"x")

        assert layer.statements[0].closed
        assert layer.discarded == 1

    def test_null_value_sends_no_data(self, wrapper_class):
        cls = with_fake_statements(wrapper_class(routine("tst_store", "none", [parameter("p_data", "blob")])))
        layer = cls(FakeConnection(), chunk_size=4)

        layer.tst_store(None)

        assert layer.statements[0].value(0) is None

    def test_result_independent_of_chunk_size(self, wrapper_class):
        metadata = routine("tst_find", "row1", [parameter("p_data", "blob")])
        rows = [{"id": 1}]
        data = bytes(range(256)) * 3

        results = []
        for chunk_size in (1, 7, 256, 10000):
            layer = with_fake_statements(wrapper_class(metadata), rows=rows)(FakeConnection(), chunk_size=chunk_size)
            results.append(layer.tst_find(data))
            assert layer.statements[0].value(0) == data

        assert results == [{"id": 1}] * 4

    def test_row1_contract(self, wrapper_class):
        cls = with_fake_statements(wrapper_class(routine("tst_find", "row1", [parameter("p_data", "blob")])), rows=[])
        layer = cls(FakeConnection(), chunk_size=4)

        with pytest.raises(ResultException):
            layer.tst_find(b"x")

    def test_singleton0_contract(self, wrapper_class):
        metadata = routine("tst_find", "singleton0", [parameter("p_data", "blob")], return_type="int")

        empty = with_fake_statements(wrapper_class(metadata), rows=[])(FakeConnection(), chunk_size=4)
        one = with_fake_statements(wrapper_class(metadata), rows=[{"n": 5}])(FakeConnection(), chunk_size=4)
        two = with_fake_statements(wrapper_class(metadata), rows=[{"n": 5}, {"n": 6}])(FakeConnection(), chunk_size=4)

        assert empty.tst_find(b"x") is None
        assert one.tst_find(b"x") == 5
        with pytest.raises(ResultException):
            two.tst_find(b"x")

    def test_rows_with_key(self, wrapper_class):
        rows = [{"k": "a", "v": 1}, {"k": "b", "v": 2}]
        metadata = routine("tst_keyed", "rows_with_key", [parameter("p_data", "blob")], columns=["k"])
        layer = with_fake_statements(wrapper_class(metadata), rows=rows)(FakeConnection(), chunk_size=4)

        assert layer.tst_keyed(b"x") == {"a": rows[0], "b": rows[1]}

    def test_bulk(self, wrapper_class):
        metadata = routine("tst_bulk", "bulk", [parameter("p_data", "blob")])
        layer = with_fake_statements(wrapper_class(metadata), rows=[{"id": 1}])(FakeConnection(), chunk_size=4)
        handler = CollectingHandler()

        layer.tst_bulk(handler, b"x")

        assert handler.events == ["start", {"id": 1}, "stop"]

    def test_prepare_not_supported_by_base(self, wrapper_class):
        cls = wrapper_class(routine("tst_store", "none", [parameter("p_data", "blob")]))

        with pytest.raises(NotImplementedError):
            cls(FakeConnection(), chunk_size=4).tst_store(b"x")
