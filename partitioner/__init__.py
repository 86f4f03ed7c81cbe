# partitioner/__init__.py

"""
Table Partitioning Package
--------------------------
Unified interface for partitioning base tables by a date or string column:
lazy partition creation on insert, owner/grant/index mirroring, and
retention pruning.
"""

import logging
from typing import Any, List, Optional

from . import sql_manager
from . import metadata
from . import table_manager
from . import data_loader
from . import utils
from . import partitions
from . import indexing
from .config import PartitionSettings, get_settings
from .data_loader import InsertRouter, LoadReport
from .exceptions import (
    InvalidPartitionKey,
    MissingBaseTable,
    MissingPartitionColumn,
    NullPartitionKey,
    PartialPartitionError,
    PartitionAlreadyExists,
    PartitionError,
    UnknownOwner,
    UnrewritableIndexName,
    UnsupportedKeyType,
)
from .metadata import SchemaMirror
from .partitions import (
    PartitionManager,
    PartitionOptions,
    PartitionPruner,
    auto_partition_tables,
    load_partition_config,
)
from .sql_manager import SQLManager
from .table_manager import PartitionCreator
from .utils.sql_helpers import table_name_of

# Logger
logger = logging.getLogger("partitioner")
logger.setLevel(get_settings().log_level.upper())
if not logger.hasHandlers():
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(ch)

# -------------------------
# High-Level Partitioning API
# -------------------------

def partition(sql_manager: SQLManager, base_table: Any, field: str, **options: Any) -> PartitionManager:
    """
    Partition a base table by ``field``.

    Safe to call again for a table that is already partitioned; existing
    partitions are picked up, never dropped.

    Args:
        sql_manager (SQLManager): Target database.
        base_table: Table name, SQLAlchemy Table or declarative model.
        field (str): Partition column (Date/DateTime or string).
        **options: interval (day, week, month, year), perms / permissions,
            table_name, verbose.
    """
    options.setdefault("interval", get_settings().default_interval)
    return PartitionManager(sql_manager, base_table, field, **options)


def prune(sql_manager: SQLManager, base_table: Any, keep_count: int, field: Optional[str] = None, **options: Any) -> int:
    """
    Drop all but the ``keep_count`` most recent partitions of a base table.

    Without ``field`` only date-suffixed partitions (YYYY, YYYYMM, YYYYMMDD)
    are considered.

    Returns:
        int: Number of partitions dropped.
    """
    if field is not None:
        return partition(sql_manager, base_table, field, **options).prune(keep_count)

    opts = PartitionOptions(**options)
    table_name = opts.table_name or table_name_of(base_table)
    pruner = PartitionPruner(sql_manager, SchemaMirror(sql_manager), table_name, verbose=opts.verbose)
    return pruner.prune(keep_count)


def repair(sql_manager: SQLManager, base_table: Any, field: str, **options: Any) -> List[str]:
    """Re-apply owner, grants and indexes to every partition; returns the partitions checked."""
    return partition(sql_manager, base_table, field, **options).repair()


__all__ = [
    "InsertRouter",
    "InvalidPartitionKey",
    "LoadReport",
    "MissingBaseTable",
    "MissingPartitionColumn",
    "NullPartitionKey",
    "PartialPartitionError",
    "PartitionAlreadyExists",
    "PartitionCreator",
    "PartitionError",
    "PartitionManager",
    "PartitionOptions",
    "PartitionSettings",
    "SQLManager",
    "SchemaMirror",
    "UnknownOwner",
    "UnrewritableIndexName",
    "UnsupportedKeyType",
    "auto_partition_tables",
    "get_settings",
    "load_partition_config",
    "partition",
    "prune",
    "repair",
]
