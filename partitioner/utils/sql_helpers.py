# partitioner/utils/sql_helpers.py

"""
SQL Helpers
-----------
Reusable SQL utilities shared by the partitioning layer.

Features:
- Classify column types into partition key kinds
- Parse and rewrite index definitions for partition tables
- Normalize permission grants
- Null detection for raw key values (None, NaN, NaT)
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd
from sqlalchemy import Table
from sqlalchemy.types import Date, DateTime, String, TypeEngine

from ..exceptions import UnrewritableIndexName


PRIVILEGES = frozenset(
    {"SELECT", "INSERT", "UPDATE", "DELETE", "TRUNCATE", "REFERENCES", "TRIGGER", "ALL"}
)

_QUALIFIER = r'(?:(?:"[^"]+"|\w+)\.)?'


class KeyType(str, Enum):
    """Partition key classification of a column type."""
    TEMPORAL = "temporal"
    STRING = "string"
    UNSUPPORTED = "unsupported"


def classify_type(column_type: TypeEngine) -> KeyType:
    """
    Classify a SQLAlchemy column type as a partition key kind.

    Args:
        column_type (TypeEngine): Reflected or declared column type.

    Returns:
        KeyType: TEMPORAL for Date/DateTime, STRING for String and its subclasses.
    """
    if isinstance(column_type, (DateTime, Date)):
        return KeyType.TEMPORAL
    if isinstance(column_type, String):
        return KeyType.STRING
    return KeyType.UNSUPPORTED


# -------------------------
# Index Definitions
# -------------------------
@dataclass(frozen=True)
class IndexDefinition:
    """An index on a table, as the DDL statement that recreates it."""

    name: str
    table: str
    definition: str
    clustered: bool = False

    def rewrite_for(self, partition_name: str, max_length: Optional[int] = None) -> "IndexDefinition":
        """
        Rewrite this definition so it targets a partition table.

        The index name must contain the base table name; it is replaced by the
        partition name, and so is the table in the ``ON`` clause.

        Args:
            partition_name (str): Target partition table.
            max_length (int, optional): Identifier length limit of the database.

        Returns:
            IndexDefinition: Definition scoped to the partition.

        Raises:
            UnrewritableIndexName: If the name or the ON clause cannot be rewritten.
        """
        if self.table not in self.name:
            raise UnrewritableIndexName(self.name, self.table)

        new_name = self.name.replace(self.table, partition_name)
        if max_length:
            new_name = new_name[:max_length]

        name_re = re.compile(
            r"(\bINDEX\s+(?:CONCURRENTLY\s+)?(?:IF\s+NOT\s+EXISTS\s+)?" + _QUALIFIER + r')("?)'
            + re.escape(self.name) + r"\2(?=\s)",
            re.IGNORECASE,
        )
        on_re = re.compile(
            r"(\bON\s+(?:ONLY\s+)?" + _QUALIFIER + r')("?)'
            + re.escape(self.table) + r"\2(?=[\s(]|$)",
            re.IGNORECASE,
        )

        definition, named = name_re.subn(
            lambda m: f"{m.group(1)}{m.group(2)}{new_name}{m.group(2)}", self.definition, count=1
        )
        definition, targeted = on_re.subn(
            lambda m: f"{m.group(1)}{m.group(2)}{partition_name}{m.group(2)}", definition, count=1
        )
        if not (named and targeted):
            raise UnrewritableIndexName(self.name, self.table)

        return replace(self, name=new_name, table=partition_name, definition=definition)


# -------------------------
# Permissions
# -------------------------
def normalize_privileges(perms: Optional[Mapping[str, Union[str, Iterable[str]]]]) -> Dict[str, List[str]]:
    """
    Normalize a principal -> privileges mapping.

    Privileges may be given as a comma separated string ("select, update") or
    as a list. Verbs are upper-cased, de-duplicated and validated.

    Args:
        perms (Mapping): Raw permission grants.

    Returns:
        Dict[str, List[str]]: principal -> sorted privilege verbs.

    Raises:
        ValueError: On an empty principal or unknown privilege verb.
    """
    normalized: Dict[str, List[str]] = {}
    for principal, privileges in (perms or {}).items():
        principal = str(principal).strip()
        if not principal:
            raise ValueError("Permission grant with an empty principal")
        if isinstance(privileges, str):
            privileges = privileges.split(",")
        verbs = set()
        for verb in privileges:
            verb = " ".join(str(verb).upper().split())
            if verb == "ALL PRIVILEGES":
                verb = "ALL"
            if not verb:
                continue
            if verb not in PRIVILEGES:
                raise ValueError(f"Unsupported privilege '{verb}' for principal '{principal}'")
            verbs.add(verb)
        if verbs:
            normalized[principal] = sorted(verbs)
    return normalized


# -------------------------
# Utility
# -------------------------
def is_null(value: Any) -> bool:
    """Return True for None, NaN, NaT and pandas NA."""
    if value is None:
        return True
    return bool(pd.api.types.is_scalar(value) and pd.isna(value))


def table_name_of(model: Any) -> str:
    """
    Derive a table name from a table name, a SQLAlchemy Table or a declarative model.

    Args:
        model (Any): str, Table, or class with ``__table__`` / ``__tablename__``.

    Returns:
        str: The table name.
    """
    if isinstance(model, str):
        return model
    if isinstance(model, Table):
        return model.name
    table = getattr(model, "__table__", None)
    if isinstance(table, Table):
        return table.name
    name = getattr(model, "__tablename__", None)
    if name:
        return name
    raise TypeError(f"Cannot derive a table name from {model!r}")
