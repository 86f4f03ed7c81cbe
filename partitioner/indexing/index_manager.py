# partitioner/indexing/index_manager.py

"""
Index Manager
-------------
Mirrors a base table's indexes onto its partitions.

Features:
- Rewrite every base index definition for a partition name (all validated up front)
- Create only the indexes the partition is missing, so mirroring can be re-run
- Carry the clustering flag over where the database supports it
"""

import logging
from typing import List, Optional

from sqlalchemy.engine import Connection

from ..metadata import SchemaMirror
from ..sql_manager import SQLManager
from ..utils.sql_helpers import IndexDefinition

logger = logging.getLogger("partitioner.index_manager")


class IndexManager:
    def __init__(self, sql_manager: SQLManager, schema_mirror: SchemaMirror, verbose: bool = False):
        """
        Initialize IndexManager.

        Args:
            sql_manager (SQLManager): SQLManager instance for executing statements.
            schema_mirror (SchemaMirror): Source of base table index definitions.
            verbose (bool): Log every executed statement at INFO.
        """
        self.sql_manager = sql_manager
        self.schema_mirror = schema_mirror
        self.verbose = verbose

    def rewrite_indexes(
        self, base_table: str, partition: str, conn: Optional[Connection] = None
    ) -> List[IndexDefinition]:
        """
        Rewrite all of the base table's index definitions for a partition.

        Raises:
            UnrewritableIndexName: If any base index cannot be rewritten; nothing is created.
        """
        max_length = self.sql_manager.dialect.max_identifier_length
        return [
            index.rewrite_for(partition, max_length=max_length)
            for index in self.schema_mirror.indexes_of(base_table, conn=conn)
        ]

    def mirror_indexes(
        self,
        base_table: str,
        partition: str,
        conn: Optional[Connection] = None,
        indexes: Optional[List[IndexDefinition]] = None,
    ) -> List[str]:
        """
        Create the partition's copies of the base table's indexes.

        Args:
            base_table (str): Table the indexes are read from.
            partition (str): Partition to index.
            conn (Connection, optional): Connection to run on.
            indexes (List[IndexDefinition], optional): Already rewritten definitions.

        Returns:
            List[str]: Names of the indexes created by this call.
        """
        dialect = self.sql_manager.dialect
        if indexes is None:
            indexes = self.rewrite_indexes(base_table, partition, conn=conn)

        with self.sql_manager.connection(conn) as active:
            existing = {index.name for index in self.sql_manager.list_indexes(partition, conn=active)}
            created = []
            for index in indexes:
                if index.name not in existing:
                    self.sql_manager.execute(dialect.ddl(index.definition), conn=active, verbose=self.verbose)
                    created.append(index.name)
                    logger.info(f"Created index '{index.name}' on partition '{partition}'")
                if (
                    index.clustered
                    and dialect.supports_clustering
                    and not dialect.is_clustered(active, index.name)
                ):
                    self.sql_manager.execute(
                        dialect.cluster_statement(partition, index.name), conn=active, verbose=self.verbose
                    )
                    logger.info(f"Set clustering of partition '{partition}' on '{index.name}'")
        return created
