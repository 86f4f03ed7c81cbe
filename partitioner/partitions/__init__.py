# partitioner/partitions/__init__.py

"""
Partitions Package
------------------
Helpers for partitioning several base tables from configuration.

Features:
- Import PartitionManager and the key strategies
- Configure many tables from a list of dicts or a YAML file
"""

import logging
import os
from typing import Any, Dict, List

import yaml

from ..sql_manager import SQLManager
from .partition_manager import PartitionManager, PartitionOptions
from .pruner import DatePartitionPattern, PartitionPruner
from .resolver import PartitionResolver
from .routes import RouteTable
from .strategy import EqualityStrategy, Interval, RangeStrategy, strategy_for

logger = logging.getLogger("partitioner.partitions")


def auto_partition_tables(
    sql_manager: SQLManager,
    tables_config: List[Dict[str, Any]]
) -> Dict[str, PartitionManager]:
    """
    Set up partitioning for multiple tables based on configuration.

    Args:
        sql_manager (SQLManager): SQLManager instance for database execution.
        tables_config (List[Dict]): List of table configurations. Each config can include:
            - table (str): Base table name.
            - field (str): Column to partition by.
            - interval (str, optional): day, week, month or year for date columns.
            - perms / permissions (Dict, optional): principal -> privileges for every partition.
            - keep_count (int, optional): Prune to this many partitions after setup.
            - verbose (bool, optional): Log every executed statement.

    Returns:
        Dict[str, PartitionManager]: Managers keyed by base table name.
    """
    managers: Dict[str, PartitionManager] = {}
    for config in tables_config:
        options = dict(config)
        table = options.pop("table", None)
        field = options.pop("field", None)
        keep_count = options.pop("keep_count", None)
        if not table or not field:
            raise ValueError(f"Partition config needs 'table' and 'field': {config}")

        manager = PartitionManager(sql_manager, table, field, **options)
        if keep_count is not None:
            manager.prune(keep_count)
        managers[manager.table_name] = manager
    return managers


def load_partition_config(file_path: str) -> List[Dict[str, Any]]:
    """
    Read table configurations from a YAML file.

    The file holds either a list of table configs or a mapping with a
    ``tables`` list.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file holds neither form.
    """
    if not os.path.exists(file_path):
        logger.error(f"YAML file not found: {file_path}")
        raise FileNotFoundError(f"File not found: {file_path}")

    logger.info(f"Reading partition config: {file_path}")
    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get("tables")
    if not isinstance(data, list) or not all(isinstance(entry, dict) for entry in data):
        raise ValueError(f"Partition config '{file_path}' must be a list of tables or a mapping with 'tables'")
    return data


__all__ = [
    "DatePartitionPattern",
    "EqualityStrategy",
    "Interval",
    "PartitionManager",
    "PartitionOptions",
    "PartitionPruner",
    "PartitionResolver",
    "RangeStrategy",
    "RouteTable",
    "auto_partition_tables",
    "load_partition_config",
    "strategy_for",
]
