from __future__ import annotations

import importlib.util
from pathlib import Path

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlmodel import SQLModel

import servicedesk.db  # noqa: F401  registers the tables on the metadata

VERSIONS = Path(__file__).resolve().parents[1] / "infra" / "alembic" / "versions"


def _load_initial_migration():
    [path] = sorted(VERSIONS.glob("*_initial_schema.py"))
    spec = importlib.util.spec_from_file_location("initial_schema", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_initial_migration_matches_table_models():
    migration = _load_initial_migration()
    engine = sa.create_engine("sqlite://")

    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()
        inspector = sa.inspect(connection)
        for table in SQLModel.metadata.sorted_tables:
            migrated = {column["name"] for column in inspector.get_columns(table.name)}
            assert migrated == set(table.columns.keys()), table.name
            indexed = {tuple(index["column_names"]) for index in inspector.get_indexes(table.name)}
            for column in table.columns:
                if column.index:
                    assert (column.name,) in indexed, f"{table.name}.{column.name}"

        ticket_columns = {column["name"]: column["type"] for column in inspector.get_columns("tickets")}
        for name in ("title", "affected_system", "assigned_team"):
            assert isinstance(ticket_columns[name], sa.Text), name

        with Operations.context(MigrationContext.configure(connection)):
            migration.downgrade()
        assert sa.inspect(connection).get_table_names() == []
