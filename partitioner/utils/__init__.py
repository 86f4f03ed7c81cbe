# partitioner/utils/__init__.py

"""
Utils Package
-------------
Shared helpers for the partitioning layer: type classification, index
definition rewriting, permission normalization.
"""

from .sql_helpers import (
    PRIVILEGES,
    IndexDefinition,
    KeyType,
    classify_type,
    is_null,
    normalize_privileges,
    table_name_of,
)

__all__ = [
    "PRIVILEGES",
    "IndexDefinition",
    "KeyType",
    "classify_type",
    "is_null",
    "normalize_privileges",
    "table_name_of",
]
