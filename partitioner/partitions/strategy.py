# partitioner/partitions/strategy.py

"""
Partition Key Strategies
------------------------
Pure functions mapping a raw key value to a partition name and constraint.

- RangeStrategy: date/datetime keys bucketed by day, week, month or year into
  half-open [start, end) ranges.
- EqualityStrategy: string keys, one partition per case-insensitive value.

The strategy is chosen once at setup by strategy_for() from the classified
column type.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Pattern, Tuple, Union

from ..exceptions import InvalidPartitionKey, UnsupportedKeyType
from ..utils.sql_helpers import KeyType

Bound = Union[date, datetime]


class Interval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


# name suffix formats; coarser intervals get shorter suffixes
_SUFFIX_FORMATS = {
    Interval.YEAR: "%Y",
    Interval.MONTH: "%Y%m",
    Interval.WEEK: "%Y%m%d",
    Interval.DAY: "%Y%m%d",
}
_SUFFIX_DIGITS = {Interval.YEAR: 4, Interval.MONTH: 6, Interval.WEEK: 8, Interval.DAY: 8}


@dataclass(frozen=True)
class RangeConstraint:
    column: str
    start: Bound
    end: Bound
    kind: str = "range"

    def literals(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end}

    def contains(self, value: Bound) -> bool:
        return self.start <= value < self.end


@dataclass(frozen=True)
class EqualityConstraint:
    column: str
    value: str
    kind: str = "equality"

    def literals(self) -> Dict[str, Any]:
        return {"value": self.value}

    def contains(self, value: Any) -> bool:
        return str(value).lower() == self.value


@dataclass(frozen=True)
class RangeStrategy:
    """
    Time-bucketed partitioning of a Date or DateTime column.

    Attributes:
        table_name (str): Base table name.
        column (str): Partition column.
        interval (Interval): Bucket width.
        with_time (bool): True for DateTime columns; bounds are then midnight datetimes.
    """

    table_name: str
    column: str
    interval: Interval = Interval.DAY
    with_time: bool = True

    def coerce(self, value: Any) -> Bound:
        """Turn a raw key value into a date or datetime."""
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.strip())
            except ValueError as e:
                raise InvalidPartitionKey(f"Cannot parse '{value}' as a date for {self.table_name}.{self.column}") from e
        if hasattr(value, "to_pydatetime"):
            value = value.to_pydatetime()
        if isinstance(value, datetime):
            return value if self.with_time else value.date()
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day) if self.with_time else value
        raise InvalidPartitionKey(
            f"Value {value!r} of type {type(value).__name__} cannot key {self.table_name}.{self.column}"
        )

    def truncate(self, value: Any) -> Bound:
        """Start of the bucket holding ``value``."""
        value = self.coerce(value)
        day = value.date() if isinstance(value, datetime) else value
        if self.interval is Interval.YEAR:
            day = day.replace(month=1, day=1)
        elif self.interval is Interval.MONTH:
            day = day.replace(day=1)
        elif self.interval is Interval.WEEK:
            day = day - timedelta(days=day.weekday())
        if isinstance(value, datetime):
            return datetime(day.year, day.month, day.day, tzinfo=value.tzinfo)
        return day

    def bounds_for(self, value: Any) -> Tuple[Bound, Bound]:
        start = self.truncate(value)
        if self.interval is Interval.YEAR:
            end = start.replace(year=start.year + 1)
        elif self.interval is Interval.MONTH:
            if start.month == 12:
                end = start.replace(year=start.year + 1, month=1)
            else:
                end = start.replace(month=start.month + 1)
        elif self.interval is Interval.WEEK:
            end = start + timedelta(days=7)
        else:
            end = start + timedelta(days=1)
        return start, end

    def name_for(self, value: Any) -> str:
        suffix = self.truncate(value).strftime(_SUFFIX_FORMATS[self.interval])
        return f"{self.table_name}_{suffix}"

    def predicate_for(self, value: Any) -> RangeConstraint:
        start, end = self.bounds_for(value)
        return RangeConstraint(self.column, start, end)

    @property
    def partition_pattern(self) -> Pattern:
        return re.compile(rf"^{re.escape(self.table_name)}_\d{{{_SUFFIX_DIGITS[self.interval]}}}$")

    def matches(self, table_name: str) -> bool:
        return bool(self.partition_pattern.match(table_name))

    def constraints_for_name(self, table_name: str) -> List[RangeConstraint]:
        """Constraint a partition named ``table_name`` was created with; empty if no key produces that name."""
        if not self.matches(table_name):
            return []
        suffix = table_name[len(self.table_name) + 1 :]
        try:
            start = datetime.strptime(suffix, _SUFFIX_FORMATS[self.interval])
        except ValueError:
            return []
        if self.name_for(start) != table_name:
            return []
        return [self.predicate_for(start)]

    def bind_value(self, value: Any) -> Bound:
        """Key value as written to the partition column."""
        return self.coerce(value)


@dataclass(frozen=True)
class EqualityStrategy:
    """
    One partition per distinct lower-cased value of a string column.

    Attributes:
        table_name (str): Base table name.
        column (str): Partition column.
    """

    table_name: str
    column: str

    def canonicalize(self, value: Any) -> str:
        canonical = str(value).lower()
        if not canonical:
            raise InvalidPartitionKey(f"Empty key for {self.table_name}.{self.column}")
        return canonical

    def name_for(self, value: Any) -> str:
        return f"{self.table_name}_{self.canonicalize(value)}"

    def predicate_for(self, value: Any) -> EqualityConstraint:
        return EqualityConstraint(self.column, self.canonicalize(value))

    @property
    def partition_pattern(self) -> Pattern:
        # lower-case suffix only: names are derived from canonical values
        return re.compile(rf"^{re.escape(self.table_name)}_(?!.*[A-Z]).+$", re.DOTALL)

    def matches(self, table_name: str) -> bool:
        return bool(self.partition_pattern.match(table_name))

    def constraints_for_name(self, table_name: str) -> List[EqualityConstraint]:
        if not self.matches(table_name):
            return []
        suffix = table_name[len(self.table_name) + 1 :]
        if self.name_for(suffix) != table_name:
            return []
        return [self.predicate_for(suffix)]

    def bind_value(self, value: Any) -> Any:
        return value


PartitionKeyStrategy = Union[RangeStrategy, EqualityStrategy]


def strategy_for(
    key_type: KeyType,
    table_name: str,
    column: str,
    interval: Union[Interval, str] = Interval.DAY,
    with_time: bool = True,
    column_type: Any = None,
) -> PartitionKeyStrategy:
    """
    Select the partitioning strategy for a classified column type.

    Args:
        key_type (KeyType): Classification of the partition column.
        table_name (str): Base table name.
        column (str): Partition column.
        interval (Interval or str): Bucket width for temporal keys.
        with_time (bool): Whether the temporal column carries a time of day.
        column_type: Reported type, used in the error message.

    Raises:
        UnsupportedKeyType: If the column is neither temporal nor string.
        ValueError: If the interval is unknown.
    """
    if key_type is KeyType.TEMPORAL:
        return RangeStrategy(table_name, column, Interval(interval), with_time)
    if key_type is KeyType.STRING:
        return EqualityStrategy(table_name, column)
    raise UnsupportedKeyType(table_name, column, column_type or key_type.value)
