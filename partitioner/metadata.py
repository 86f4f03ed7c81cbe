# partitioner/metadata.py

"""
Schema Mirror
-------------
Reads what a partition must replicate from its base table: owner, columns,
indexes and privileges, and lists the partitions that already exist.

Features:
- Owner lookup, failing fast when the base table is missing
- Column schemas cached per table, with explicit refresh
- Index definitions validated for rewriting before any partition is created
- Partition listing by naming pattern, filtered to structural children
"""

import logging
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.engine import Connection
from sqlalchemy.types import TypeEngine

from .exceptions import MissingPartitionColumn, UnknownOwner, UnrewritableIndexName
from .sql_manager import SQLManager
from .utils.sql_helpers import IndexDefinition

logger = logging.getLogger("partitioner.metadata")


class SchemaMirror:
    def __init__(self, sql_manager: SQLManager):
        """
        Args:
            sql_manager (SQLManager): Executor and catalog access.
        """
        self.sql_manager = sql_manager
        self.schemas: Dict[str, Dict[str, TypeEngine]] = {}  # table_name -> columns

    # -------------------------
    # Ownership
    # -------------------------
    def owner_of(self, table_name: str, conn: Optional[Connection] = None) -> Optional[str]:
        """
        Return the owner of a table, or None where the database has no ownership.

        Raises:
            UnknownOwner: If the table cannot be located, or has no recorded owner.
        """
        dialect = self.sql_manager.dialect
        with self.sql_manager.connection(conn) as active:
            if not self.sql_manager.has_table(table_name, conn=active):
                raise UnknownOwner(table_name)
            owner = dialect.owner_of(active, table_name)
        if dialect.supports_ownership and not owner:
            raise UnknownOwner(table_name)
        return owner

    # -------------------------
    # Columns
    # -------------------------
    def columns_of(
        self, table_name: str, conn: Optional[Connection] = None, refresh: bool = False
    ) -> Dict[str, TypeEngine]:
        """
        Return column name -> type for a table.

        Raises:
            MissingBaseTable: If the table does not exist.
        """
        if refresh or table_name not in self.schemas:
            self.schemas[table_name] = self.sql_manager.columns(table_name, conn=conn)
            logger.debug(f"Registered schema for table '{table_name}': {list(self.schemas[table_name])}")
        return self.schemas[table_name]

    def require_column(self, table_name: str, column: str, conn: Optional[Connection] = None) -> TypeEngine:
        """
        Return the type of a column that must exist on the table.

        Raises:
            MissingBaseTable: If the table does not exist.
            MissingPartitionColumn: If the column does not exist.
        """
        columns = self.columns_of(table_name, conn=conn)
        if column not in columns:
            columns = self.columns_of(table_name, conn=conn, refresh=True)
        if column not in columns:
            raise MissingPartitionColumn(table_name, column)
        return columns[column]

    def forget(self, table_name: str) -> None:
        self.schemas.pop(table_name, None)

    # -------------------------
    # Indexes & Privileges
    # -------------------------
    def indexes_of(self, table_name: str, conn: Optional[Connection] = None) -> List[IndexDefinition]:
        """
        Return the table's index definitions, in index-name order.

        Raises:
            UnrewritableIndexName: If an index name does not contain the table name.
        """
        indexes = self.sql_manager.list_indexes(table_name, conn=conn)
        for index in indexes:
            if table_name not in index.name:
                raise UnrewritableIndexName(index.name, table_name)
        return indexes

    def privileges_of(self, table_name: str, principal: str, conn: Optional[Connection] = None) -> Set[str]:
        with self.sql_manager.connection(conn) as active:
            return self.sql_manager.dialect.privileges_of(active, table_name, principal)

    # -------------------------
    # Partitions
    # -------------------------
    def partitions_of(self, table_name: str, strategy: Any, conn: Optional[Connection] = None) -> List[str]:
        """
        List existing partitions of a base table, sorted by name.

        Args:
            table_name (str): Base table.
            strategy: A strategy or a name pattern; provides ``matches`` and ``constraints_for_name``.
        """
        with self.sql_manager.connection(conn) as active:
            candidates = sorted(
                name for name in self.sql_manager.list_tables(conn=active) if strategy.matches(name)
            )
            return self.sql_manager.dialect.children_of(active, table_name, candidates, strategy)
