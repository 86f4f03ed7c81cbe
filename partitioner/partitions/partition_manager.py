# partitioner/partitions/partition_manager.py

"""
Partition Manager
-----------------
Sets up partitioning of one base table and exposes its operations.

Features:
- Strategy chosen once from the partition column's type (range for
  Date/DateTime, equality for strings)
- Partitions created lazily on insert, with owner, grants and indexes of the base
- Retention pruning and repair of incomplete partitions
- Reading all partitions back into a DataFrame
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, literal, select

from ..data_loader import InsertRouter, LoadReport
from ..exceptions import MissingPartitionColumn
from ..indexing.index_manager import IndexManager
from ..metadata import SchemaMirror
from ..sql_manager import SQLManager
from ..table_manager import PartitionCreator
from ..utils.sql_helpers import classify_type, table_name_of
from .pruner import PartitionPruner
from .resolver import PartitionResolver
from .routes import RouteTable
from .strategy import Interval, strategy_for

logger = logging.getLogger("partitioner.partition_manager")


class PartitionOptions(BaseModel):
    """Options accepted by partition(), prune() and repair()."""

    model_config = ConfigDict(extra="forbid")

    interval: Interval = Interval.DAY
    perms: Optional[Dict[str, Union[str, List[str]]]] = Field(
        default=None, validation_alias=AliasChoices("perms", "permissions")
    )
    table_name: Optional[str] = None
    verbose: bool = False


class PartitionManager:
    def __init__(self, sql_manager: SQLManager, base_table: Any, field: str, **options: Any):
        """
        Initialize PartitionManager for one base table.

        Args:
            sql_manager (SQLManager): SQLManager instance for executing queries.
            base_table: Table name, SQLAlchemy Table or declarative model.
            field (str): Partition column.
            **options: interval, perms/permissions, table_name, verbose.

        Raises:
            MissingBaseTable: If the base table does not exist.
            MissingPartitionColumn: If the column does not exist.
            UnsupportedKeyType: If the column is neither temporal nor string.
            UnknownOwner: If the base table's owner cannot be determined.
        """
        self.options = PartitionOptions(**options)
        self.sql_manager = sql_manager
        self.table_name = self.options.table_name or table_name_of(base_table)
        self.field = field
        self.verbose = self.options.verbose

        self.schema_mirror = SchemaMirror(sql_manager)
        columns = self.schema_mirror.columns_of(self.table_name)
        if field not in columns:
            raise MissingPartitionColumn(self.table_name, field)
        column_type = columns[field]
        self.strategy = strategy_for(
            classify_type(column_type),
            self.table_name,
            field,
            interval=self.options.interval,
            with_time=isinstance(column_type, DateTime),
            column_type=column_type,
        )
        self.schema_mirror.owner_of(self.table_name)

        self.routes = RouteTable(self.table_name, columns)
        self.index_manager = IndexManager(sql_manager, self.schema_mirror, verbose=self.verbose)
        self.creator = PartitionCreator(
            sql_manager,
            self.schema_mirror,
            self.index_manager,
            permissions=self.options.perms,
            routes=self.routes,
            verbose=self.verbose,
        )
        self.resolver = PartitionResolver(sql_manager, self.strategy, self.creator, self.routes)
        self.router = InsertRouter(sql_manager, self.resolver, verbose=self.verbose)
        self.pruner = PartitionPruner(
            sql_manager,
            self.schema_mirror,
            self.table_name,
            strategy=self.strategy,
            routes=self.routes,
            verbose=self.verbose,
        )

        for partition in self.pruner.list_partitions():
            self.routes.install(partition)
        logger.info(
            f"Partitioning '{self.table_name}' by '{field}' ({type(self.strategy).__name__}); "
            f"{len(self.routes)} existing partitions"
        )

    # -------------------------
    # Writes
    # -------------------------
    def insert(self, row: Mapping[str, Any]) -> str:
        """Insert one row into its partition; returns the partition name."""
        return self.router.insert(row)

    def load_data(self, data: Union[pd.DataFrame, List[Dict[str, Any]]], batch_size: int = 1000) -> LoadReport:
        return self.router.load_data(data, batch_size=batch_size)

    def resolve(self, value: Any) -> str:
        """Return (creating if needed) the partition for a key value."""
        return self.resolver.resolve(value)

    # -------------------------
    # Maintenance
    # -------------------------
    def partitions(self) -> List[str]:
        return self.pruner.list_partitions()

    def prune(self, keep_count: int) -> int:
        return self.pruner.prune(keep_count)

    def repair(self) -> List[str]:
        """
        Re-apply owner, grants and indexes to every existing partition.

        Returns:
            List[str]: The partitions checked.
        """
        partitions = self.partitions()
        for partition in partitions:
            self.creator.repair(self.table_name, partition)
        return partitions

    # -------------------------
    # Reads
    # -------------------------
    def read_data(self, with_partition: bool = False) -> pd.DataFrame:
        """
        Read the rows of every partition into one DataFrame.

        Args:
            with_partition (bool): Add a 'partition' column naming each row's partition.
        """
        columns = list(self.routes.columns)
        if with_partition:
            columns.append("partition")
        frames = []
        with self.sql_manager.connection() as conn:
            for partition in self.partitions():
                target = self.routes.install(partition)
                query = select(target)
                if with_partition:
                    query = query.add_columns(literal(partition).label("partition"))
                frames.append(pd.read_sql(query, conn))
        if not frames:
            return pd.DataFrame(columns=columns)
        return pd.concat(frames, ignore_index=True)

    def base_row_count(self) -> int:
        """Rows stored in the base table itself, excluding its partitions."""
        rows = self.sql_manager.fetch_all(self.sql_manager.dialect.count_own_rows_statement(self.table_name))
        return int(rows[0]["row_count"])
