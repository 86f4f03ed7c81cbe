# partitioner/table_manager.py

"""
Partition Creator
-----------------
Creates partition tables from their base table.

Features:
- Idempotent creation: an existing partition is a no-op
- Owner, column and index checks before anything is created
- Owner, grants and indexes copied from the base table after creation
- Partial failures reported with the failed step, repairable with repair()
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .exceptions import (
    PartialPartitionError,
    PartitionAlreadyExists,
    PartitionError,
    is_already_exists,
)
from .indexing.index_manager import IndexManager
from .metadata import SchemaMirror
from .sql_manager import SQLManager
from .utils.sql_helpers import PRIVILEGES, IndexDefinition, normalize_privileges

logger = logging.getLogger("partitioner.table_manager")


class PartitionCreator:
    def __init__(
        self,
        sql_manager: SQLManager,
        schema_mirror: SchemaMirror,
        index_manager: IndexManager,
        permissions: Optional[Mapping[str, Union[str, Iterable[str]]]] = None,
        routes: Any = None,
        verbose: bool = False,
    ):
        """
        Initialize PartitionCreator.

        Args:
            sql_manager (SQLManager): SQL execution manager.
            schema_mirror (SchemaMirror): Reads owner, columns and indexes of the base table.
            index_manager (IndexManager): Mirrors indexes onto new partitions.
            permissions (Mapping, optional): principal -> privileges granted on every partition.
            routes (RouteTable, optional): Write routes to install new partitions into.
            verbose (bool): Log every executed statement at INFO.
        """
        self.sql_manager = sql_manager
        self.schema_mirror = schema_mirror
        self.index_manager = index_manager
        self.permissions: Dict[str, List[str]] = normalize_privileges(permissions)
        self.routes = routes
        self.verbose = verbose

        if self.permissions and not sql_manager.dialect.supports_grants:
            logger.warning(
                f"{sql_manager.dialect_name} does not support GRANT; "
                f"permissions for {sorted(self.permissions)} will not be applied"
            )

    # -------------------------
    # Creation
    # -------------------------
    def create(self, base_table: str, partition: str, constraint: Any, conn: Optional[Connection] = None) -> str:
        """
        Create a partition of ``base_table`` holding the rows matching ``constraint``.

        Args:
            base_table (str): Parent table.
            partition (str): Partition table name.
            constraint: RangeConstraint or EqualityConstraint from the key strategy.
            conn (Connection, optional): Connection to run on (the creation scope's).

        Returns:
            str: The partition name.

        Raises:
            UnknownOwner, MissingPartitionColumn, UnrewritableIndexName: Before anything is created.
            PartitionAlreadyExists: If another creator won the race for this name.
            PartialPartitionError: If the table exists but owner/grants/indexes failed.
        """
        dialect = self.sql_manager.dialect
        with self.sql_manager.connection(conn) as active:
            if self.sql_manager.has_table(partition, conn=active):
                logger.debug(f"Partition '{partition}' already exists")
                self._install_route(partition)
                return partition

            owner = self.schema_mirror.owner_of(base_table, conn=active)
            self.schema_mirror.require_column(base_table, constraint.column, conn=active)
            indexes = self.index_manager.rewrite_indexes(base_table, partition, conn=active)

            check = dialect.render_check(constraint)
            statement = dialect.create_partition_statement(active, base_table, partition, check)
            try:
                self.sql_manager.execute(statement, conn=active, verbose=self.verbose)
            except DBAPIError as e:
                if is_already_exists(e):
                    raise PartitionAlreadyExists(partition) from e
                raise
            logger.info(f"Created partition '{partition}' of '{base_table}' with CHECK ({check})")

            self._complete(base_table, partition, owner, indexes, active)
            self._install_route(partition)
        return partition

    def repair(self, base_table: str, partition: str, conn: Optional[Connection] = None) -> None:
        """
        Re-apply owner, grants and indexes to an existing partition.

        Every step checks the partition's current state first, so repair can be
        run on complete partitions as well.

        Raises:
            PartitionError: If the partition does not exist.
            PartialPartitionError: If a step fails again.
        """
        with self.sql_manager.connection(conn) as active:
            if not self.sql_manager.has_table(partition, conn=active):
                raise PartitionError(f"cannot repair missing partition {partition}")
            owner = self.schema_mirror.owner_of(base_table, conn=active)
            indexes = self.index_manager.rewrite_indexes(base_table, partition, conn=active)
            self._complete(base_table, partition, owner, indexes, active)
            self._install_route(partition)
        logger.info(f"Repaired partition '{partition}' of '{base_table}'")

    def _complete(
        self,
        base_table: str,
        partition: str,
        owner: Optional[str],
        indexes: List[IndexDefinition],
        conn: Connection,
    ) -> None:
        step = "owner"
        try:
            self.apply_owner(partition, owner, conn=conn)
            step = "permissions"
            self.apply_permissions(partition, conn=conn)
            step = "indexes"
            self.index_manager.mirror_indexes(base_table, partition, conn=conn, indexes=indexes)
        except (SQLAlchemyError, PartitionError) as e:
            logger.error(f"Partition '{partition}' is incomplete: step '{step}' failed: {e}")
            raise PartialPartitionError(partition, step, e) from e

    def _install_route(self, partition: str) -> None:
        if self.routes is not None:
            self.routes.install(partition)

    # -------------------------
    # Owner & Permissions
    # -------------------------
    def apply_owner(self, partition: str, owner: Optional[str], conn: Optional[Connection] = None) -> bool:
        """Set the partition's owner; returns False when nothing had to change."""
        dialect = self.sql_manager.dialect
        if not dialect.supports_ownership or not owner:
            return False
        with self.sql_manager.connection(conn) as active:
            if dialect.owner_of(active, partition) == owner:
                return False
            self.sql_manager.execute(
                dialect.set_owner_statement(partition, owner), conn=active, verbose=self.verbose
            )
        logger.info(f"Changed owner of '{partition}' to '{owner}'")
        return True

    def apply_permissions(self, partition: str, conn: Optional[Connection] = None) -> List[str]:
        """Grant the configured privileges that the partition is missing; returns the principals granted to."""
        dialect = self.sql_manager.dialect
        if not self.permissions or not dialect.supports_grants:
            return []
        granted = []
        with self.sql_manager.connection(conn) as active:
            for principal, privileges in self.permissions.items():
                current = self.schema_mirror.privileges_of(partition, principal, conn=active)
                missing = [verb for verb in privileges if verb != "ALL" and verb not in current]
                if "ALL" in privileges and not (PRIVILEGES - {"ALL"}) <= current:
                    missing = ["ALL"]
                if not missing:
                    continue
                self.sql_manager.execute(
                    dialect.grant_statement(partition, principal, missing), conn=active, verbose=self.verbose
                )
                granted.append(principal)
                logger.info(f"Granted {', '.join(missing)} on '{partition}' to '{principal}'")
        return granted
