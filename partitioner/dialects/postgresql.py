# partitioner/dialects/postgresql.py

"""
PostgreSQL Dialect
------------------
Partitions are inheritance children of the base table (CREATE TABLE ...
INHERITS), owned by the base table's owner, with grants and indexes copied
from the catalog. Concurrent creators of the same partition are serialized
with a session-level advisory lock keyed by the partition name.
"""

from typing import Any, Iterable, List, Optional, Set

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.sql.base import Executable

from ..utils.sql_helpers import IndexDefinition
from .base import Dialect


class PostgresqlDialect(Dialect):
    name = "postgresql"
    supports_ownership = True
    supports_grants = True
    supports_clustering = True

    CREATE_PARTITION = "CREATE TABLE {partition} ( CHECK ( {check} ) ) INHERITS ( {base} )"
    DROP_PARTITION = "DROP TABLE {partition} CASCADE"
    SET_OWNER = "ALTER TABLE {partition} OWNER TO {owner}"
    GRANT = "GRANT {privileges} ON {partition} TO {principal}"
    CLUSTER = "ALTER TABLE {partition} CLUSTER ON {index}"
    COUNT_OWN_ROWS = "SELECT count(*) AS row_count FROM ONLY {table}"

    OWNER_QUERY = """
        SELECT pg_get_userbyid(c.relowner) AS owner
          FROM pg_class c
         WHERE c.relkind IN ('r', 'p')
           AND c.relname = :table
           AND pg_table_is_visible(c.oid)
    """

    INDEX_QUERY = """
        SELECT i.relname AS name,
               c.relname AS table_name,
               pg_get_indexdef(i.oid) AS definition,
               x.indisclustered AS clustered
          FROM pg_index x
          JOIN pg_class c ON c.oid = x.indrelid
          JOIN pg_class i ON i.oid = x.indexrelid
         WHERE c.relkind = 'r'
           AND i.relkind = 'i'
           AND c.relname = :table
           AND pg_table_is_visible(c.oid)
         ORDER BY i.relname
    """

    CLUSTERED_QUERY = """
        SELECT x.indisclustered AS clustered
          FROM pg_index x
          JOIN pg_class i ON i.oid = x.indexrelid
         WHERE i.relname = :index
           AND pg_table_is_visible(i.oid)
    """

    CHILDREN_QUERY = """
        SELECT c.relname AS name
          FROM pg_inherits h
          JOIN pg_class c ON c.oid = h.inhrelid
          JOIN pg_class p ON p.oid = h.inhparent
         WHERE p.relname = :table
           AND pg_table_is_visible(p.oid)
    """

    PRIVILEGES_QUERY = """
        SELECT privilege_type
          FROM information_schema.role_table_grants
         WHERE table_name = :table
           AND grantee = :principal
    """

    LOCK = "SELECT pg_advisory_lock(hashtext(:key))"
    UNLOCK = "SELECT pg_advisory_unlock(hashtext(:key))"

    # -------------------------
    # Statement Rendering
    # -------------------------
    def quote_principal(self, principal: str) -> str:
        if principal.upper() == "PUBLIC":
            return "PUBLIC"
        return self.quote_identifier(principal)

    def create_partition_statement(
        self, conn: Connection, base_table: str, partition: str, check: str
    ) -> Executable:
        return self.ddl(
            self.CREATE_PARTITION.format(
                partition=self.quote_identifier(partition),
                check=check,
                base=self.quote_identifier(base_table),
            )
        )

    def set_owner_statement(self, partition: str, owner: str) -> Executable:
        return self.ddl(
            self.SET_OWNER.format(
                partition=self.quote_identifier(partition), owner=self.quote_identifier(owner)
            )
        )

    def grant_statement(self, partition: str, principal: str, privileges: Iterable[str]) -> Executable:
        # privileges are validated verbs, see utils.sql_helpers.normalize_privileges
        return self.ddl(
            self.GRANT.format(
                privileges=", ".join(privileges),
                partition=self.quote_identifier(partition),
                principal=self.quote_principal(principal),
            )
        )

    def cluster_statement(self, partition: str, index: str) -> Executable:
        return self.ddl(
            self.CLUSTER.format(
                partition=self.quote_identifier(partition), index=self.quote_identifier(index)
            )
        )

    # -------------------------
    # Catalog Queries
    # -------------------------
    def owner_of(self, conn: Connection, table: str) -> Optional[str]:
        return conn.execute(text(self.OWNER_QUERY), {"table": table}).scalar()

    def privileges_of(self, conn: Connection, table: str, principal: str) -> Set[str]:
        grantee = "PUBLIC" if principal.upper() == "PUBLIC" else principal
        rows = conn.execute(text(self.PRIVILEGES_QUERY), {"table": table, "principal": grantee})
        return {row[0].upper() for row in rows}

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDefinition]:
        rows = conn.execute(text(self.INDEX_QUERY), {"table": table}).mappings().all()
        return [
            IndexDefinition(
                name=row["name"],
                table=row["table_name"],
                definition=row["definition"],
                clustered=bool(row["clustered"]),
            )
            for row in rows
        ]

    def is_clustered(self, conn: Connection, index: str) -> bool:
        return bool(conn.execute(text(self.CLUSTERED_QUERY), {"index": index}).scalar())

    def children_of(
        self, conn: Connection, base_table: str, candidates: List[str], strategy: Any
    ) -> List[str]:
        children = set(conn.execute(text(self.CHILDREN_QUERY), {"table": base_table}).scalars())
        return [name for name in candidates if name in children]

    # -------------------------
    # Cross-process Locking
    # -------------------------
    def acquire_lock(self, conn: Connection, key: str) -> None:
        conn.execute(text(self.LOCK), {"key": key})
        conn.commit()

    def release_lock(self, conn: Connection, key: str) -> None:
        conn.execute(text(self.UNLOCK), {"key": key})
        conn.commit()
