# partitioner/tests/test_postgresql_dialect.py
from contextlib import contextmanager
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects.postgresql.base import PGDialect

from partitioner.dialects import PostgresqlDialect, get_dialect
from partitioner.partitions.strategy import EqualityConstraint, RangeConstraint
from partitioner.table_manager import PartitionCreator


@pytest.fixture
def pg():
    return PGDialect()


@pytest.fixture
def dialect(pg):
    return PostgresqlDialect(pg)


def render(statement, pg):
    return str(statement.compile(dialect=pg))


def make_sql_manager(dialect):
    sql_manager = MagicMock()
    sql_manager.dialect = dialect
    sql_manager.has_table.return_value = False
    conn = MagicMock()

    @contextmanager
    def connection(existing=None):
        yield existing or conn

    sql_manager.connection.side_effect = connection
    return sql_manager, conn


def executed(sql_manager, pg):
    return [render(c.args[0], pg) for c in sql_manager.execute.call_args_list]

def test_get_dialect_selects_postgresql(pg):
    assert isinstance(get_dialect(pg), PostgresqlDialect)
    assert get_dialect(pg).max_identifier_length == 63

def test_range_check_and_create_statement(dialect, pg):
    constraint = RangeConstraint("created_at", datetime(2024, 3, 5), datetime(2024, 3, 6))
    check = dialect.render_check(constraint)
    assert check == "created_at >= '2024-03-05 00:00:00' AND created_at < '2024-03-06 00:00:00'"

    statement = dialect.create_partition_statement(MagicMock(), "events", "events_20240305", check)
    assert render(statement, pg) == (
        "CREATE TABLE events_20240305 ( CHECK ( created_at >= '2024-03-05 00:00:00' "
        "AND created_at < '2024-03-06 00:00:00' ) ) INHERITS ( events )"
    )

def test_equality_check_quotes_values(dialect):
    check = dialect.render_check(EqualityConstraint("name", "o'neil"))
    assert check == "lower(name) = 'o''neil'"

def test_identifiers_are_quoted(dialect, pg):
    statement = dialect.drop_partition_statement("user")
    assert render(statement, pg) == 'DROP TABLE "user" CASCADE'
    assert render(dialect.count_own_rows_statement("Events"), pg) == 'SELECT count(*) AS row_count FROM ONLY "Events"'

def test_owner_grant_and_cluster_statements(dialect, pg):
    assert render(dialect.set_owner_statement("events_one", "app_owner"), pg) == (
        "ALTER TABLE events_one OWNER TO app_owner"
    )
    assert render(dialect.grant_statement("events_one", "reporting", ["SELECT", "UPDATE"]), pg) == (
        "GRANT SELECT, UPDATE ON events_one TO reporting"
    )
    assert render(dialect.grant_statement("events_one", "public", ["SELECT"]), pg) == (
        "GRANT SELECT ON events_one TO PUBLIC"
    )
    assert render(dialect.cluster_statement("events_one", "ix_events_one_name"), pg) == (
        "ALTER TABLE events_one CLUSTER ON ix_events_one_name"
    )

def test_catalog_queries(dialect):
    conn = MagicMock()
    conn.execute.return_value.scalars.return_value = ["events_20240305"]
    assert dialect.children_of(conn, "events", ["events_20240305", "events_20240306"], MagicMock()) == ["events_20240305"]

    conn = MagicMock()
    conn.execute.return_value = [("SELECT",), ("insert",)]
    assert dialect.privileges_of(conn, "events_one", "reporting") == {"SELECT", "INSERT"}

    conn = MagicMock()
    conn.execute.return_value.mappings.return_value.all.return_value = [
        {
            "name": "events_name_idx",
            "table_name": "events",
            "definition": "CREATE INDEX events_name_idx ON public.events USING btree (name)",
            "clustered": True,
        }
    ]
    indexes = dialect.list_indexes(conn, "events")
    assert indexes[0].clustered
    assert indexes[0].rewrite_for("events_one").definition == (
        "CREATE INDEX events_one_name_idx ON public.events_one USING btree (name)"
    )

def test_advisory_lock(dialect):
    conn = MagicMock()
    dialect.acquire_lock(conn, "events_20240305")
    statement, params = conn.execute.call_args.args
    assert "pg_advisory_lock(hashtext(:key))" in statement.text
    assert params == {"key": "events_20240305"}
    conn.commit.assert_called_once()

    dialect.release_lock(conn, "events_20240305")
    assert "pg_advisory_unlock" in conn.execute.call_args.args[0].text

def test_creator_applies_owner_and_missing_grants(dialect, pg):
    sql_manager, conn = make_sql_manager(dialect)
    schema_mirror = MagicMock()
    schema_mirror.owner_of.return_value = "app_owner"
    schema_mirror.privileges_of.return_value = {"SELECT"}
    index_manager = MagicMock()
    index_manager.rewrite_indexes.return_value = []
    conn.execute.return_value.scalar.return_value = "postgres"

    creator = PartitionCreator(
        sql_manager, schema_mirror, index_manager, permissions={"reporting": "select, update"}
    )
    constraint = EqualityConstraint("name", "one")
    assert creator.create("events", "events_one", constraint) == "events_one"

    assert executed(sql_manager, pg) == [
        "CREATE TABLE events_one ( CHECK ( lower(name) = 'one' ) ) INHERITS ( events )",
        "ALTER TABLE events_one OWNER TO app_owner",
        "GRANT UPDATE ON events_one TO reporting",
    ]
    index_manager.mirror_indexes.assert_called_once_with("events", "events_one", conn=conn, indexes=[])

def test_creator_skips_complete_partition_steps(dialect, pg):
    sql_manager, conn = make_sql_manager(dialect)
    sql_manager.has_table.return_value = True
    schema_mirror = MagicMock()
    schema_mirror.owner_of.return_value = "app_owner"
    schema_mirror.privileges_of.return_value = {"SELECT", "UPDATE"}
    index_manager = MagicMock()
    index_manager.rewrite_indexes.return_value = []
    conn.execute.return_value.scalar.return_value = "app_owner"

    creator = PartitionCreator(
        sql_manager, schema_mirror, index_manager, permissions={"reporting": ["select", "update"]}
    )
    creator.repair("events", "events_one")
    assert executed(sql_manager, pg) == []
