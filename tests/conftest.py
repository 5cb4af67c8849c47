"""Shared fixtures for the sproc_sync tests."""

import textwrap
from pathlib import Path

import pytest

from sproc_sync.config import LoaderSettings, WrapperSettings

from fakes import FakeCatalog


@pytest.fixture
def catalog():
    """An empty in-memory catalog."""
    return FakeCatalog()


@pytest.fixture
def source_dir(tmp_path):
    path = tmp_path / "psql"
    path.mkdir()
    return path


@pytest.fixture
def write_source(source_dir):
    """Factory writing a routine source file with a doc block."""

    def _write(
        name: str,
        designation: str = "none",
        params: str = "",
        doc: str = "",
        kind: str = "procedure",
        body: str = "begin\n  select 1;\nend",
        subdir: str = "",
    ) -> Path:
        directory = source_dir / subdir if subdir else source_dir
        directory.mkdir(parents=True, exist_ok=True)
        doc_lines = "".join(f" * {line}\n" if line else " *\n" for line in doc.splitlines())
        text = (
            "/**\n"
            f"{doc_lines}"
            f" * @type {designation}\n"
            " */\n"
            f"create {kind} {name}({params})\n"
            f"{textwrap.dedent(body)}\n"
        )
        path = directory / f"{name}.psql"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def loader_settings(tmp_path):
    return LoaderSettings(
        sources="psql/**/*.psql",
        metadata=tmp_path / "etc" / "routines.json",
        sql_mode="STRICT_ALL_TABLES",
        character_set="utf8mb4",
        collate="utf8mb4_general_ci",
        constants={},
    )


@pytest.fixture
def wrapper_settings(tmp_path):
    return WrapperSettings(
        wrapper_file=tmp_path / "app" / "data_layer.py",
        wrapper_class="AppDataLayer",
        parent_class="sproc_sync.runtime.data_layer:DataLayer",
        metadata=tmp_path / "etc" / "routines.json",
    )
