"""
Tests for the routine loader.
"""

import os

import pytest

from sproc_sync.errors import UnknownDesignationError
from sproc_sync.loader.routine_loader import RoutineLoader
from sproc_sync.models import Designation, RoutineType, TableColumn

from fakes import parameter

SESSION = ("STRICT_ALL_TABLES", "utf8mb4", "utf8mb4_general_ci")


def load(loader, path, old_metadata=None, replace_pairs=None, old_descriptor=None, session=SESSION):
    return loader.load(path, old_metadata, replace_pairs or {}, old_descriptor, *session)


class TestRoutineLoader:
    """Tests for RoutineLoader.load."""

    def test_load_new_routine(self, catalog, write_source):
        catalog.parameters["tst_get_user"] = [parameter("p_usr_id", "int")]
        path = write_source(
            "tst_get_user",
            designation="row1",
            params="in p_usr_id @usr.usr_id%type@",
            doc="Selects a user.\n\n@param p_usr_id The ID of the user.",
        )

        metadata = load(RoutineLoader(catalog), path, replace_pairs={"@USR.USR_ID%TYPE@": "int(10)"})

        assert metadata.routine_name == "tst_get_user"
        assert metadata.designation == Designation.ROW1
        assert metadata.routine_type == RoutineType.PROCEDURE
        assert metadata.short_description == "Selects a user."
        assert metadata.parameters[0].description == "The ID of the user."
        assert metadata.replace == {"@USR.USR_ID%TYPE@": "int(10)"}
        assert metadata.timestamp == os.path.getmtime(path)
        assert "in p_usr_id int(10)" in catalog.statements[-1]
        assert catalog.session == SESSION
        assert "tst_get_user" in catalog.routines

    def test_unchanged_routine_is_not_reloaded(self, catalog, write_source):
        path = write_source("tst_a", designation="none")
        loader = RoutineLoader(catalog)

        first = load(loader, path)
        statements = len(catalog.statements)
        second = load(loader, path, old_metadata=first, old_descriptor=catalog.routines["tst_a"])

        assert second is first
        assert len(catalog.statements) == statements
        assert catalog.dropped == []

    def test_changed_placeholder_forces_reload(self, catalog, write_source):
        path = write_source("tst_a", designation="none", body="begin\n  select @C_MAX@;\nend")
        loader = RoutineLoader(catalog)

        first = load(loader, path, replace_pairs={"@C_MAX@": "10"})
        second = load(
            loader, path,
            old_metadata=first,
            replace_pairs={"@C_MAX@": "20"},
            old_descriptor=catalog.routines["tst_a"],
        )

        assert second.replace == {"@C_MAX@": "20"}
        assert catalog.dropped == ["tst_a"]

    def test_changed_sql_mode_forces_reload(self, catalog, write_source):
        path = write_source("tst_a", designation="none")
        loader = RoutineLoader(catalog)

        first = load(loader, path)
        second = load(
            loader, path,
            old_metadata=first,
            old_descriptor=catalog.routines["tst_a"],
            session=("ONLY_FULL_GROUP_BY", "utf8mb4", "utf8mb4_general_ci"),
        )

        assert second is not first
        assert second.sql_mode == "ONLY_FULL_GROUP_BY"

    def test_name_mismatch(self, catalog, source_dir):
        path = source_dir / "tst_a.psql"
        path.write_text("/** @type none */\ncreate procedure tst_b() begin end\n")

        assert load(RoutineLoader(catalog), path) is None
        assert catalog.statements == []

    def test_missing_designation(self, catalog, source_dir):
        path = source_dir / "tst_a.psql"
        path.write_text("/** Does things. */\ncreate procedure tst_a() begin end\n")

        assert load(RoutineLoader(catalog), path) is None

    def test_unknown_designation_is_fatal(self, catalog, write_source):
        path = write_source("tst_a", designation="rows_with_magic")

        with pytest.raises(UnknownDesignationError):
            load(RoutineLoader(catalog), path)

    def test_unknown_placeholder(self, catalog, write_source):
        path = write_source("tst_a", body="begin\n  select @C_UNKNOWN@;\nend")

        assert load(RoutineLoader(catalog), path) is None
        assert catalog.statements == []

    def test_procedure_with_function_designation(self, catalog, write_source):
        path = write_source("tst_a", designation="function")

        assert load(RoutineLoader(catalog), path) is None

    def test_ddl_failure(self, catalog, write_source):
        catalog.failing.add("tst_a")
        path = write_source("tst_a")

        assert load(RoutineLoader(catalog), path) is None

    def test_function_return_type(self, catalog, write_source):
        catalog.function_types["tst_add"] = "int"
        path = write_source(
            "tst_add",
            designation="function",
            kind="function",
            params="p_a int, p_b int",
            body="returns int\nreturn p_a + p_b;",
        )

        metadata = load(RoutineLoader(catalog), path)

        assert metadata.routine_type == RoutineType.FUNCTION
        assert metadata.return_type == "int"

    def test_rows_with_key_columns(self, catalog, write_source):
        path = write_source("tst_a", designation="rows_with_key cmp_id,usr_id")

        metadata = load(RoutineLoader(catalog), path)

        assert metadata.columns == ["cmp_id", "usr_id"]

    def test_rows_with_key_columns_with_spaces(self, catalog, write_source):
        path = write_source("tst_a", designation="rows_with_key cmp_id, usr_id")

        metadata = load(RoutineLoader(catalog), path)

        assert metadata.columns == ["cmp_id", "usr_id"]

    def test_unsupported_return_type(self, catalog, write_source):
        catalog.function_types["tst_shape"] = "geometry"
        path = write_source(
            "tst_shape",
            designation="function",
            kind="function",
            body="returns geometry\nreturn point(0, 0);",
        )

        assert load(RoutineLoader(catalog), path) is None

    def test_unsupported_parameter_type(self, catalog, write_source):
        catalog.parameters["tst_a"] = [parameter("p_shape", "geometry")]
        path = write_source("tst_a", params="in p_shape geometry")

        assert load(RoutineLoader(catalog), path) is None

    def test_rows_with_key_requires_columns(self, catalog, write_source):
        path = write_source("tst_a", designation="rows_with_key")

        assert load(RoutineLoader(catalog), path) is None

    def test_singleton_return_type(self, catalog, write_source):
        path = write_source("tst_a", designation="singleton0 int")

        assert load(RoutineLoader(catalog), path).return_type == "int"

    def test_bulk_insert(self, catalog, write_source):
        catalog.table_columns["tmp_rows"] = [
            TableColumn("tmp_rows", "tmp_id", "int(11)"),
            TableColumn("tmp_rows", "tmp_name", "varchar(40)"),
        ]
        path = write_source("tst_a", designation="bulk_insert tmp_rows id,name")

        metadata = load(RoutineLoader(catalog), path)

        assert metadata.bulk_insert_table == "tmp_rows"
        assert [(c.name, c.key) for c in metadata.bulk_insert_columns] == [
            ("tmp_id", "id"),
            ("tmp_name", "name"),
        ]
        assert "CALL tst_a()" in catalog.statements
        assert "DROP TEMPORARY TABLE IF EXISTS `tmp_rows`" in catalog.statements

    def test_bulk_insert_keys_with_spaces(self, catalog, write_source):
        catalog.table_columns["tmp_rows"] = [
            TableColumn("tmp_rows", "tmp_id", "int(11)"),
            TableColumn("tmp_rows", "tmp_name", "varchar(40)"),
        ]
        path = write_source("tst_a", designation="bulk_insert tmp_rows id, name")

        metadata = load(RoutineLoader(catalog), path)

        assert [c.key for c in metadata.bulk_insert_columns] == ["id", "name"]

    def test_bulk_insert_key_count_mismatch(self, catalog, write_source):
        catalog.table_columns["tmp_rows"] = [TableColumn("tmp_rows", "tmp_id", "int(11)")]
        path = write_source("tst_a", designation="bulk_insert tmp_rows id,name")

        assert load(RoutineLoader(catalog), path) is None
