# partitioner/dialects/base.py

"""
Base Dialect
------------
Statement templates and catalog queries shared by every supported database.

A Dialect is built once per SQLManager from the SQLAlchemy dialect of its
engine and handed to every component that renders DDL. Templates are plain
format strings; every identifier placed into them is quoted by SQLAlchemy's
identifier preparer and every value goes through quote_literal.
"""

import re
from datetime import date, datetime
from string import Formatter
from typing import Any, Dict, Iterable, List, Optional, Pattern, Set

from sqlalchemy import CheckConstraint, Column, MetaData, Table, UniqueConstraint, inspect, text
from sqlalchemy.engine import Connection, Dialect as SADialect
from sqlalchemy.schema import CreateTable
from sqlalchemy.sql.base import Executable
from sqlalchemy.sql.elements import TextClause

from ..utils.sql_helpers import IndexDefinition


class Dialect:
    name = "generic"
    supports_ownership = False
    supports_grants = False
    supports_clustering = False

    CHECK_TEMPLATES: Dict[str, str] = {
        "range": "{column} >= {start} AND {column} < {end}",
        "equality": "lower({column}) = {value}",
    }
    DROP_PARTITION = "DROP TABLE {partition}"
    COUNT_OWN_ROWS = "SELECT count(*) AS row_count FROM {table}"

    def __init__(self, sa_dialect: SADialect):
        """
        Args:
            sa_dialect (sqlalchemy.engine.Dialect): Dialect of the target engine.
        """
        self.sa_dialect = sa_dialect
        self.preparer = sa_dialect.identifier_preparer

    @property
    def max_identifier_length(self) -> int:
        return self.sa_dialect.max_identifier_length

    # -------------------------
    # Quoting
    # -------------------------
    def quote_identifier(self, name: str) -> str:
        """Quote a name where the database requires it (reserved words, upper case, other characters)."""
        return self.preparer.quote(name)

    def quote_literal(self, value: Any) -> str:
        """Render a value as a SQL string literal."""
        if isinstance(value, datetime):
            value = value.isoformat(sep=" ")
        elif isinstance(value, date):
            value = value.isoformat()
        value = str(value)
        if "\x00" in value:
            raise ValueError("NUL characters cannot be rendered as a SQL literal")
        return "'" + value.replace("'", "''") + "'"

    # -------------------------
    # Statement Rendering
    # -------------------------
    def ddl(self, sql: str) -> TextClause:
        """Wrap rendered DDL in text(), escaping colons so literals are never read as bind parameters."""
        return text(sql.replace(":", "\\:"))

    def render_check(self, constraint: Any) -> str:
        """
        Render a partition constraint as a boolean SQL expression.

        Args:
            constraint: RangeConstraint or EqualityConstraint; selects its template by ``kind``.
        """
        template = self.CHECK_TEMPLATES[constraint.kind]
        values = {"column": self.quote_identifier(constraint.column)}
        for key, literal in constraint.literals().items():
            values[key] = self.quote_literal(literal)
        return template.format(**values)

    def check_pattern(self, constraint: Any) -> Pattern:
        """
        Regex matching the CHECK expression render_check produces for ``constraint``.

        Date bounds match with or without a time of day. A constraint whose
        column is None matches any column name, used the same way throughout.
        """
        parts = []
        literals = constraint.literals()
        column_seen = False
        for prefix, field, _, _ in Formatter().parse(self.CHECK_TEMPLATES[constraint.kind]):
            parts.append(re.escape(prefix))
            if field is None:
                continue
            if field != "column":
                parts.append(self._literal_pattern(literals[field]))
            elif constraint.column is not None:
                parts.append(re.escape(self.quote_identifier(constraint.column)))
            elif column_seen:
                parts.append("(?P=column)")
            else:
                parts.append(r'(?P<column>"[^"]+"|\w+)')
                column_seen = True
        return re.compile("".join(parts))

    def _literal_pattern(self, value: Any) -> str:
        if isinstance(value, datetime):
            value = value.date()
        if isinstance(value, date):
            return re.escape("'" + value.isoformat()) + r"(?: [^']*)?'"
        return re.escape(self.quote_literal(value))

    def create_partition_statement(
        self, conn: Connection, base_table: str, partition: str, check: str
    ) -> Executable:
        """
        Build CREATE TABLE for a partition carrying the base table's columns,
        primary key and unique constraints, plus the partition CHECK constraint.
        """
        inspector = inspect(conn)
        pk_columns = set(inspector.get_pk_constraint(base_table).get("constrained_columns") or [])

        columns = []
        for col in inspector.get_columns(base_table):
            default = col.get("default")
            columns.append(
                Column(
                    col["name"],
                    col["type"],
                    nullable=col.get("nullable", True),
                    primary_key=col["name"] in pk_columns,
                    server_default=text(default) if default is not None else None,
                )
            )
        uniques = [
            UniqueConstraint(*uc["column_names"])
            for uc in inspector.get_unique_constraints(base_table)
        ]
        table = Table(partition, MetaData(), *columns, *uniques, CheckConstraint(self.ddl(check)))
        return CreateTable(table)

    def drop_partition_statement(self, partition: str) -> Executable:
        return self.ddl(self.DROP_PARTITION.format(partition=self.quote_identifier(partition)))

    def count_own_rows_statement(self, table: str) -> Executable:
        return self.ddl(self.COUNT_OWN_ROWS.format(table=self.quote_identifier(table)))

    def set_owner_statement(self, partition: str, owner: str) -> Executable:
        raise NotImplementedError(f"{self.name} does not support table ownership")

    def grant_statement(self, partition: str, principal: str, privileges: Iterable[str]) -> Executable:
        raise NotImplementedError(f"{self.name} does not support GRANT")

    def cluster_statement(self, partition: str, index: str) -> Executable:
        raise NotImplementedError(f"{self.name} does not support clustering")

    # -------------------------
    # Catalog Queries
    # -------------------------
    def owner_of(self, conn: Connection, table: str) -> Optional[str]:
        return None

    def privileges_of(self, conn: Connection, table: str, principal: str) -> Set[str]:
        return set()

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDefinition]:
        raise NotImplementedError(f"{self.name} cannot list index definitions")

    def is_clustered(self, conn: Connection, index: str) -> bool:
        return False

    def children_of(
        self, conn: Connection, base_table: str, candidates: List[str], strategy: Any
    ) -> List[str]:
        """
        Filter candidate partition names down to structural children of the base table.

        Args:
            strategy: Names the candidates; provides ``constraints_for_name``.
        """
        return list(candidates)

    # -------------------------
    # Cross-process Locking
    # -------------------------
    def acquire_lock(self, conn: Connection, key: str) -> None:
        """Take a database-wide lock keyed by ``key`` on ``conn``. No-op by default."""

    def release_lock(self, conn: Connection, key: str) -> None:
        """Release the lock taken by acquire_lock."""
