# partitioner/dialects/__init__.py

"""
Dialects Package
----------------
Database-specific statement templates and catalog queries for partitioning.

Features:
- Import PostgreSQL and SQLite dialects
- Select a dialect explicitly from the engine's dialect name
"""

from sqlalchemy.engine import Dialect as SADialect

from .base import Dialect
from .postgresql import PostgresqlDialect
from .sqlite import SqliteDialect

DIALECTS = {
    "postgresql": PostgresqlDialect,
    "sqlite": SqliteDialect,
}


def get_dialect(sa_dialect: SADialect) -> Dialect:
    """
    Return the partitioning dialect matching a SQLAlchemy dialect.

    Args:
        sa_dialect (sqlalchemy.engine.Dialect): Dialect of the target engine.

    Returns:
        Dialect: PostgresqlDialect or SqliteDialect.

    Raises:
        ValueError: If the database is not supported.
    """
    dialect_cls = DIALECTS.get(sa_dialect.name)
    if dialect_cls is None:
        raise ValueError(f"Unsupported database dialect: {sa_dialect.name}")
    return dialect_cls(sa_dialect)


__all__ = ["DIALECTS", "Dialect", "PostgresqlDialect", "SqliteDialect", "get_dialect"]
