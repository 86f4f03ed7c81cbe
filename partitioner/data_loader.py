# partitioner/data_loader.py

"""
Insert Router
-------------
Routes rows of a partitioned base table into their partitions.

Features:
- Single-row insert: resolve the partition, insert the row with its key
  converted to the column's Python type (ISO strings become dates)
- Batch load from a DataFrame or list of dicts, grouped per partition
- Null-key rows rejected (individually in batch loads)
- Stale routes (partition dropped elsewhere) forgotten and retried once
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd
from sqlalchemy import insert
from sqlalchemy.exc import DBAPIError

from .exceptions import InvalidPartitionKey, NullPartitionKey
from .sql_manager import SQLManager
from .utils.sql_helpers import is_null

logger = logging.getLogger("partitioner.data_loader")


@dataclass
class LoadReport:
    """Outcome of a batch load: rows inserted per partition and rejected row positions."""

    inserted: Dict[str, int] = field(default_factory=dict)
    rejected: List[int] = field(default_factory=list)

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())


def _clean_value(value: Any) -> Any:
    if is_null(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def _clean_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: _clean_value(value) for key, value in row.items()}


class InsertRouter:
    def __init__(self, sql_manager: SQLManager, resolver: Any, verbose: bool = False):
        """
        Initialize InsertRouter.

        Args:
            sql_manager (SQLManager): SQL connection & execution manager.
            resolver (PartitionResolver): Maps key values to (possibly new) partitions.
            verbose (bool): Log every insert at INFO.
        """
        self.sql_manager = sql_manager
        self.resolver = resolver
        self.verbose = verbose

    @property
    def column(self) -> str:
        return self.resolver.strategy.column

    @property
    def routes(self):
        return self.resolver.routes

    def insert(self, row: Mapping[str, Any]) -> str:
        """
        Insert one row into the partition for its key.

        Args:
            row (Mapping): Column -> value; must include the partition column.

        Returns:
            str: The partition the row was written to.

        Raises:
            NullPartitionKey: If the key is missing, None, NaN or NaT.
            InvalidPartitionKey: If the key cannot be converted; no partition is created.
        """
        row = self._bind_key(_clean_row(row))
        return self._write(row.get(self.column), [row])

    def load_data(
        self,
        data: Union[pd.DataFrame, List[Dict[str, Any]]],
        batch_size: int = 1000,
    ) -> LoadReport:
        """
        Load many rows, grouped per partition and inserted in batches.

        Rows whose key is null or unusable are skipped and recorded by position
        in the report; the other rows are still inserted.

        Args:
            data (DataFrame or List[Dict]): Rows to insert.
            batch_size (int): Number of rows per insert statement.

        Returns:
            LoadReport: Inserted counts per partition and rejected positions.
        """
        if isinstance(data, pd.DataFrame):
            records = data.to_dict(orient="records")
        elif isinstance(data, list):
            records = data
        else:
            raise TypeError("Data must be a Pandas DataFrame or list of dicts")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        report = LoadReport()
        groups: Dict[Tuple[str, Tuple[str, ...]], List[Dict[str, Any]]] = {}
        keys: Dict[str, Any] = {}
        for position, record in enumerate(records):
            try:
                row = self._bind_key(_clean_row(record))
                value = row.get(self.column)
                partition = self.resolver.resolve(value)
            except (NullPartitionKey, InvalidPartitionKey) as e:
                logger.warning(f"Rejected row {position}: {e}")
                report.rejected.append(position)
                continue
            keys.setdefault(partition, value)
            groups.setdefault((partition, tuple(row)), []).append(row)

        logger.info(
            f"Loading {len(records) - len(report.rejected)} rows into {len(keys)} partitions "
            f"of '{self.resolver.base_table}' in batches of {batch_size}"
        )
        for (partition, _), rows in groups.items():
            for i in range(0, len(rows), batch_size):
                batch = rows[i:i + batch_size]
                written = self._write(keys[partition], batch, partition=partition)
                report.inserted[written] = report.inserted.get(written, 0) + len(batch)

        if report.rejected:
            logger.warning(f"Rejected {len(report.rejected)} rows with a null or invalid partition key")
        logger.info(f"Successfully loaded {report.total_inserted} rows into '{self.resolver.base_table}'")
        return report

    # -------------------------
    # Helper Methods
    # -------------------------
    def _bind_key(self, row: Dict[str, Any]) -> Dict[str, Any]:
        value = row.get(self.column)
        if value is not None:
            row[self.column] = self.resolver.strategy.bind_value(value)
        return row

    def _write(self, value: Any, rows: List[Dict[str, Any]], partition: Optional[str] = None) -> str:
        partition = partition or self.resolver.resolve(value)
        try:
            self._insert_rows(partition, rows)
        except DBAPIError:
            if self.sql_manager.has_table(partition):
                raise
            # dropped since the route was installed
            logger.warning(f"Partition '{partition}' no longer exists; resolving again")
            self.resolver.forget(partition)
            partition = self.resolver.resolve(value)
            self._insert_rows(partition, rows)
        return partition

    def _insert_rows(self, partition: str, rows: Iterable[Dict[str, Any]]) -> None:
        rows = list(rows)
        target = self.routes.install(partition)
        level = logging.INFO if self.verbose else logging.DEBUG
        logger.log(level, f"Inserting {len(rows)} rows into '{partition}'")
        with self.sql_manager.engine.begin() as conn:
            conn.execute(insert(target), rows)
