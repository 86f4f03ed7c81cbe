# partitioner/partitions/pruner.py

"""
Partition Pruner
----------------
Retention for partitioned tables: keep the most recent N partitions, drop the rest.

Partition names sort in key order within one base table (YYYY, YYYYMM,
YYYYMMDD or lower-case values), so the oldest partitions come first.
"""

import logging
import re
import threading
from typing import Any, List, Optional

from ..metadata import SchemaMirror
from ..sql_manager import SQLManager
from .routes import RouteTable
from .strategy import Interval, RangeStrategy

logger = logging.getLogger("partitioner.pruner")

_INTERVALS_BY_DIGITS = {4: [Interval.YEAR], 6: [Interval.MONTH], 8: [Interval.DAY, Interval.WEEK]}


class DatePartitionPattern:
    """Date-suffixed partition names (YYYY, YYYYMM or YYYYMMDD) of a base table."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        self.partition_pattern = re.compile(rf"^{re.escape(table_name)}_\d{{4}}(?:\d{{2}}){{0,2}}$")

    def matches(self, table_name: str) -> bool:
        return bool(self.partition_pattern.match(table_name))

    def constraints_for_name(self, table_name: str) -> List[Any]:
        """Every range constraint a date-suffixed name could have been created with, column unknown."""
        if not self.matches(table_name):
            return []
        digits = len(table_name) - len(self.table_name) - 1
        constraints = []
        for interval in _INTERVALS_BY_DIGITS[digits]:
            strategy = RangeStrategy(self.table_name, None, interval, with_time=False)
            constraints.extend(strategy.constraints_for_name(table_name))
        return constraints


class PartitionPruner:
    def __init__(
        self,
        sql_manager: SQLManager,
        schema_mirror: SchemaMirror,
        base_table: str,
        strategy: Any = None,
        routes: Optional[RouteTable] = None,
        verbose: bool = False,
    ):
        """
        Args:
            sql_manager (SQLManager): Executes the drops.
            schema_mirror (SchemaMirror): Lists existing partitions.
            base_table (str): Table whose partitions are pruned.
            strategy: Key strategy (or pattern) naming the partitions; date names if omitted.
            routes (RouteTable, optional): Routes to remove for dropped partitions.
            verbose (bool): Log every executed statement at INFO.
        """
        self.sql_manager = sql_manager
        self.schema_mirror = schema_mirror
        self.base_table = base_table
        self.strategy = strategy or DatePartitionPattern(base_table)
        self.routes = routes
        self.verbose = verbose
        self._lock = threading.Lock()

    def list_partitions(self) -> List[str]:
        """Existing partitions, oldest first."""
        return sorted(self.schema_mirror.partitions_of(self.base_table, self.strategy))

    def prune(self, keep_count: int) -> int:
        """
        Drop all but the ``keep_count`` most recent partitions.

        Args:
            keep_count (int): Number of partitions to keep.

        Returns:
            int: Number of partitions dropped, ``max(0, total - keep_count)``.
        """
        if keep_count < 0:
            raise ValueError(f"keep_count must be >= 0, got {keep_count}")

        with self._lock:
            partitions = self.list_partitions()
            doomed = partitions[: max(0, len(partitions) - keep_count)]
            for partition in doomed:
                logger.info(f"Dropping: {partition}")
                self.sql_manager.execute(
                    self.sql_manager.dialect.drop_partition_statement(partition), verbose=self.verbose
                )
                if self.routes is not None:
                    self.routes.remove(partition)
        logger.info(f"Pruned {len(doomed)} of {len(partitions)} partitions of '{self.base_table}'")
        return len(doomed)
