# partitioner/tests/test_sql_manager.py
import threading
from datetime import date, datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from partitioner.dialects import SqliteDialect
from partitioner.exceptions import MissingBaseTable, MissingPartitionColumn
from partitioner.partitions.strategy import EqualityConstraint, RangeConstraint
from partitioner.sql_manager import CREATION_LOCK_STRIPES, SQLManager, retry
from partitioner.utils.sql_helpers import KeyType

def test_requires_url_or_engine():
    with pytest.raises(ValueError):
        SQLManager()

def test_sqlite_dialect_is_selected(sql_manager):
    assert isinstance(sql_manager.dialect, SqliteDialect)
    assert sql_manager.dialect_name == "sqlite"

def test_execute_and_fetch(sql_manager):
    sql_manager.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
    sql_manager.execute("INSERT INTO notes (body) VALUES (:body)", {"body": "a:b"})
    rows = sql_manager.fetch_all("SELECT body FROM notes")
    assert rows == [{"body": "a:b"}]
    assert sql_manager.has_table("notes")
    assert "notes" in sql_manager.list_tables()

def test_quote_literal_escapes_quotes(sql_manager):
    assert sql_manager.quote_literal("O'Brien") == "'O''Brien'"
    with pytest.raises(ValueError):
        sql_manager.quote_literal("bad\x00value")

def test_quote_identifier(sql_manager):
    assert sql_manager.quote_identifier("events") == "events"
    assert sql_manager.quote_identifier("Mixed Case") == '"Mixed Case"'

def test_column_type(sql_manager, date_models, string_models):
    assert sql_manager.column_type("date_models", "created_at") is KeyType.TEMPORAL
    assert sql_manager.column_type("string_models", "name") is KeyType.STRING
    assert sql_manager.column_type("date_models", "amount") is KeyType.UNSUPPORTED

def test_column_type_errors(sql_manager, date_models):
    with pytest.raises(MissingBaseTable):
        sql_manager.column_type("nope", "created_at")
    with pytest.raises(MissingPartitionColumn):
        sql_manager.column_type("date_models", "nope")

def test_list_indexes(sql_manager, date_models):
    indexes = sql_manager.list_indexes("date_models")
    assert [index.name for index in indexes] == ["ix_date_models_created_at"]
    assert "ON date_models" in indexes[0].definition

def test_retry_retries_operational_errors():
    calls = []

    @retry(retries=3, delay=0)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3

def test_retry_never_retries_duplicates():
    calls = []

    @retry(retries=3, delay=0)
    def duplicate():
        calls.append(1)
        raise OperationalError("CREATE TABLE t", {}, Exception("table t already exists"))

    with pytest.raises(OperationalError):
        duplicate()
    assert len(calls) == 1

def test_creation_lock_serializes_same_key(sql_manager):
    inside = []
    overlap = []

    def worker():
        with sql_manager.creation_lock("events_20240101"):
            if inside:
                overlap.append(True)
            inside.append(True)
            threading.Event().wait(0.02)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert not overlap

def test_creation_lock_uses_dialect_lock(sql_manager):
    dialect = MagicMock(wraps=sql_manager.dialect)
    manager = SQLManager(engine=sql_manager.engine, dialect=dialect)
    with manager.creation_lock("events_20240101") as conn:
        dialect.acquire_lock.assert_called_once_with(conn, "events_20240101")
        dialect.release_lock.assert_not_called()
    dialect.release_lock.assert_called_once()

def test_creation_locks_are_bounded(sql_manager):
    for i in range(500):
        with sql_manager.creation_lock(f"events_{i}"):
            pass
    assert len(sql_manager._creation_locks) == CREATION_LOCK_STRIPES
    assert sql_manager._lock_for("events_1") is sql_manager._lock_for("events_1")

def test_sqlite_lower_folds_unicode(sql_manager):
    rows = sql_manager.fetch_all("SELECT lower('ÄRGER') AS folded, lower(NULL) AS missing")
    assert rows == [{"folded": "ärger", "missing": None}]

def test_check_pattern_matches_rendered_check(sql_manager):
    dialect = sql_manager.dialect
    day = RangeConstraint("created_at", datetime(2024, 3, 5), datetime(2024, 3, 6))
    assert dialect.check_pattern(day).search(f"CREATE TABLE t (CHECK ({dialect.render_check(day)}))")

    any_column = RangeConstraint(None, date(2024, 3, 5), date(2024, 3, 6))
    assert dialect.check_pattern(any_column).search(dialect.render_check(day))
    assert not dialect.check_pattern(any_column).search("created_at >= '2024-03-05' AND updated_at < '2024-03-06'")

    value = EqualityConstraint("name", "o'neil")
    assert dialect.check_pattern(value).search(dialect.render_check(value))
    assert not dialect.check_pattern(EqualityConstraint("name", "roles")).search(dialect.render_check(value))
