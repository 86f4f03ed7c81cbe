# partitioner/exceptions.py

"""
Partitioning Errors
-------------------
Error taxonomy raised by the partitioning layer.

Every error derives from PartitionError so callers can catch the whole family.
SQLAlchemy errors that do not map to one of these kinds propagate unchanged.
"""

from typing import Any, Optional

from sqlalchemy.exc import DBAPIError

# SQLSTATE codes reported by PostgreSQL for duplicate relations / objects
_DUPLICATE_SQLSTATES = {"42P07", "42710"}


class PartitionError(Exception):
    """Base class for every partitioning failure."""


class UnsupportedKeyType(PartitionError):
    def __init__(self, table_name: str, column: str, column_type: Any):
        super().__init__(
            f"Unable to partition based on {table_name}.{column} of type {column_type}"
        )
        self.table_name = table_name
        self.column = column
        self.column_type = column_type


class MissingBaseTable(PartitionError):
    def __init__(self, table_name: str, message: Optional[str] = None):
        super().__init__(message or f"cannot find base table {table_name}")
        self.table_name = table_name


class UnknownOwner(MissingBaseTable):
    def __init__(self, table_name: str):
        super().__init__(table_name, f"owner of base table {table_name} is unknown")


class MissingPartitionColumn(PartitionError):
    def __init__(self, table_name: str, column: str):
        super().__init__(f"cannot find partitioning column {column} in the table {table_name}")
        self.table_name = table_name
        self.column = column


class UnrewritableIndexName(PartitionError):
    def __init__(self, index_name: str, table_name: str):
        super().__init__(
            f"parent index name [{index_name}] should contain the name of the parent table [{table_name}]"
        )
        self.index_name = index_name
        self.table_name = table_name


class NullPartitionKey(PartitionError):
    def __init__(self, table_name: str, column: str):
        super().__init__(f'partitioning column "{column}" of {table_name} cannot be NULL')
        self.table_name = table_name
        self.column = column


class InvalidPartitionKey(PartitionError, ValueError):
    """Raised when a key value cannot be turned into a valid partition name or bound."""


class PartitionAlreadyExists(PartitionError):
    def __init__(self, partition_name: str):
        super().__init__(f"partition {partition_name} already exists")
        self.partition_name = partition_name


class PartialPartitionError(PartitionError):
    """
    Raised when a partition table was created but a later step (owner, grants,
    indexes) failed. The partition is usable; run a repair pass to finish it.
    """

    def __init__(self, partition_name: str, step: str, cause: BaseException):
        super().__init__(
            f"partition {partition_name} was created but step '{step}' failed: {cause}"
        )
        self.partition_name = partition_name
        self.step = step
        self.cause = cause


def is_already_exists(exc: BaseException) -> bool:
    """Return True if a database error reports a duplicate table or object."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in _DUPLICATE_SQLSTATES:
        return True
    if getattr(orig, "sqlstate", None) in _DUPLICATE_SQLSTATES:
        return True
    return "already exists" in str(orig or exc).lower()
