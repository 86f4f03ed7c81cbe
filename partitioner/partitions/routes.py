# partitioner/partitions/routes.py

"""
Write routes of a base table: the partitions writes may be redirected to.

A route is installed when a partition is created (or found to exist) and
removed when the partition is dropped.
"""

import threading
from typing import Dict, List, Optional

from sqlalchemy import column, table
from sqlalchemy.sql.expression import TableClause
from sqlalchemy.types import TypeEngine


class RouteTable:
    def __init__(self, base_table: str, columns: Dict[str, TypeEngine]):
        self.base_table = base_table
        self.columns = dict(columns)
        self._routes: Dict[str, TableClause] = {}
        self._lock = threading.Lock()

    def install(self, partition: str) -> TableClause:
        with self._lock:
            target = self._routes.get(partition)
            if target is None:
                target = table(partition, *(column(name, type_) for name, type_ in self.columns.items()))
                self._routes[partition] = target
            return target

    def get(self, partition: str) -> Optional[TableClause]:
        return self._routes.get(partition)

    def remove(self, partition: str) -> bool:
        with self._lock:
            return self._routes.pop(partition, None) is not None

    def names(self) -> List[str]:
        return sorted(self._routes)

    def __contains__(self, partition: str) -> bool:
        return partition in self._routes

    def __len__(self) -> int:
        return len(self._routes)
