# partitioner/dialects/sqlite.py

"""
SQLite Dialect
--------------
SQLite has no table inheritance, ownership, GRANT or clustering. A partition
is a standalone table with the base table's columns and the partition CHECK
constraint; that constraint is also what tells partitions apart from other
tables sharing the name prefix. Index definitions are read back from
sqlite_master.
"""

from typing import Any, List

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..utils.sql_helpers import IndexDefinition
from .base import Dialect


class SqliteDialect(Dialect):
    name = "sqlite"

    INDEX_QUERY = """
        SELECT name, tbl_name, sql
          FROM sqlite_master
         WHERE type = 'index'
           AND tbl_name = :table
           AND sql IS NOT NULL
         ORDER BY name
    """
    TABLE_SQL_QUERY = "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = :table"

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDefinition]:
        # automatic indexes (sql IS NULL) come from UNIQUE / PRIMARY KEY constraints,
        # which are copied with the table itself
        rows = conn.execute(text(self.INDEX_QUERY), {"table": table}).mappings().all()
        return [
            IndexDefinition(name=row["name"], table=row["tbl_name"], definition=row["sql"])
            for row in rows
        ]

    def children_of(
        self, conn: Connection, base_table: str, candidates: List[str], strategy: Any
    ) -> List[str]:
        # no inheritance catalog: a table is a partition only if it carries
        # the CHECK constraint its name implies
        children = []
        for name in candidates:
            sql = conn.execute(text(self.TABLE_SQL_QUERY), {"table": name}).scalar()
            if not sql:
                continue
            patterns = [self.check_pattern(c) for c in strategy.constraints_for_name(name)]
            if any(pattern.search(sql) for pattern in patterns):
                children.append(name)
        return children
