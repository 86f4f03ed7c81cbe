# partitioner/tests/conftest.py
import pytest
from sqlalchemy import Column, Date, DateTime, Float, Index, Integer, MetaData, String, Table

from partitioner.sql_manager import SQLManager


@pytest.fixture
def sql_manager(tmp_path):
    manager = SQLManager(url=f"sqlite:///{tmp_path / 'partitions.db'}")
    yield manager
    manager.engine.dispose()


@pytest.fixture
def metadata():
    return MetaData()


@pytest.fixture
def date_models(sql_manager, metadata):
    table = Table(
        "date_models",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("created_at", DateTime, nullable=True),
        Column("amount", Float),
        Index("ix_date_models_created_at", "created_at"),
    )
    table.create(sql_manager.engine)
    return table


@pytest.fixture
def day_models(sql_manager, metadata):
    table = Table(
        "day_models",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("day", Date),
        Column("note", String(50)),
    )
    table.create(sql_manager.engine)
    return table


@pytest.fixture
def string_models(sql_manager, metadata):
    table = Table(
        "string_models",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(50)),
        Column("score", Integer),
        Index("ix_string_models_score", "score"),
    )
    table.create(sql_manager.engine)
    return table
