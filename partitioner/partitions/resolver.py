# partitioner/partitions/resolver.py

"""
Partition Resolver
------------------
Maps a raw key value to the partition that must hold it, creating the
partition on first use.

Concurrent resolvers of the same new partition serialize on the SQLManager's
creation scope for that name; whoever enters second finds the table and
yields. A duplicate-table error from the store is still treated as success.
"""

import logging
from typing import Any

from ..exceptions import InvalidPartitionKey, NullPartitionKey, PartitionAlreadyExists
from ..sql_manager import SQLManager
from ..table_manager import PartitionCreator
from ..utils.sql_helpers import is_null
from .routes import RouteTable
from .strategy import PartitionKeyStrategy

logger = logging.getLogger("partitioner.resolver")


class PartitionResolver:
    def __init__(
        self,
        sql_manager: SQLManager,
        strategy: PartitionKeyStrategy,
        creator: PartitionCreator,
        routes: RouteTable,
    ):
        """
        Args:
            sql_manager (SQLManager): Existence checks and creation scope.
            strategy (PartitionKeyStrategy): Naming and constraints for key values.
            creator (PartitionCreator): Builds missing partitions.
            routes (RouteTable): Partitions already known to exist.
        """
        self.sql_manager = sql_manager
        self.strategy = strategy
        self.creator = creator
        self.routes = routes

    @property
    def base_table(self) -> str:
        return self.strategy.table_name

    def name_for(self, raw_value: Any) -> str:
        if is_null(raw_value):
            raise NullPartitionKey(self.base_table, self.strategy.column)
        name = self.strategy.name_for(raw_value)
        if len(name) > self.sql_manager.dialect.max_identifier_length:
            raise InvalidPartitionKey(
                f"Partition name '{name}' exceeds {self.sql_manager.dialect.max_identifier_length} characters"
            )
        return name

    def resolve(self, raw_value: Any) -> str:
        """
        Return the name of the partition for ``raw_value``, creating it if needed.

        Raises:
            NullPartitionKey: If the value is null.
            InvalidPartitionKey: If no valid partition name can be derived.
        """
        name = self.name_for(raw_value)
        if name in self.routes:
            return name

        if self.sql_manager.has_table(name):
            self.routes.install(name)
            return name

        constraint = self.strategy.predicate_for(raw_value)
        with self.sql_manager.creation_lock(name) as conn:
            try:
                self.creator.create(self.base_table, name, constraint, conn=conn)
            except PartitionAlreadyExists:
                logger.info(f"Partition '{name}' was created concurrently; using it")
                self.routes.install(name)
        return name

    def forget(self, name: str) -> None:
        """Drop a route, e.g. after the partition was removed elsewhere."""
        if self.routes.remove(name):
            logger.warning(f"Forgot route to partition '{name}'")
