# partitioner/tests/test_strategy.py
from datetime import date, datetime, timezone

import pandas as pd
import pytest

from partitioner.exceptions import InvalidPartitionKey, UnsupportedKeyType
from partitioner.partitions.strategy import (
    EqualityStrategy,
    Interval,
    RangeStrategy,
    strategy_for,
)
from partitioner.utils.sql_helpers import KeyType


def test_day_partition_name_and_bounds():
    strategy = RangeStrategy("events", "created_at", Interval.DAY)
    value = datetime(2024, 3, 5, 13, 45, 10)
    assert strategy.name_for(value) == "events_20240305"
    assert strategy.bounds_for(value) == (datetime(2024, 3, 5), datetime(2024, 3, 6))

def test_same_bucket_same_name():
    strategy = RangeStrategy("events", "created_at")
    assert strategy.name_for(datetime(2024, 3, 5, 0, 0, 0)) == strategy.name_for(datetime(2024, 3, 5, 23, 59, 59))
    assert strategy.name_for(datetime(2024, 3, 5)) != strategy.name_for(datetime(2024, 3, 6))

def test_week_starts_on_monday():
    strategy = RangeStrategy("events", "created_at", Interval.WEEK)
    # 2024-03-07 is a Thursday
    start, end = strategy.bounds_for(datetime(2024, 3, 7, 8, 0))
    assert start == datetime(2024, 3, 4)
    assert end == datetime(2024, 3, 11)
    assert strategy.name_for(datetime(2024, 3, 10)) == "events_20240304"

def test_month_rolls_over_year():
    strategy = RangeStrategy("events", "created_at", Interval.MONTH)
    assert strategy.bounds_for(datetime(2023, 12, 31, 23, 0)) == (datetime(2023, 12, 1), datetime(2024, 1, 1))
    assert strategy.name_for(datetime(2023, 12, 31)) == "events_202312"

def test_year_interval():
    strategy = RangeStrategy("events", "created_at", Interval.YEAR)
    assert strategy.name_for(date(2024, 7, 1)) == "events_2024"
    assert strategy.bounds_for(date(2024, 7, 1)) == (datetime(2024, 1, 1), datetime(2025, 1, 1))

def test_ranges_are_contiguous():
    strategy = RangeStrategy("events", "created_at", Interval.MONTH)
    _, end = strategy.bounds_for(datetime(2024, 1, 15))
    next_start, _ = strategy.bounds_for(end)
    assert next_start == end

def test_date_column_uses_date_bounds():
    strategy = RangeStrategy("days", "day", Interval.DAY, with_time=False)
    constraint = strategy.predicate_for(datetime(2024, 3, 5, 10, 0))
    assert constraint.start == date(2024, 3, 5)
    assert constraint.end == date(2024, 3, 6)
    assert constraint.contains(date(2024, 3, 5))
    assert not constraint.contains(date(2024, 3, 6))

def test_timezone_is_preserved():
    strategy = RangeStrategy("events", "created_at")
    start, end = strategy.bounds_for(datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc))
    assert start == datetime(2024, 3, 5, tzinfo=timezone.utc)
    assert end.tzinfo is timezone.utc

def test_accepts_strings_and_timestamps():
    strategy = RangeStrategy("events", "created_at")
    assert strategy.name_for("2024-03-05T10:00:00") == "events_20240305"
    assert strategy.name_for(pd.Timestamp("2024-03-05 10:00")) == "events_20240305"

def test_rejects_unparseable_values():
    strategy = RangeStrategy("events", "created_at")
    with pytest.raises(InvalidPartitionKey):
        strategy.name_for("not a date")
    with pytest.raises(InvalidPartitionKey):
        strategy.name_for(12345)

def test_partition_pattern_matches_interval_suffix():
    daily = RangeStrategy("events", "created_at", Interval.DAY)
    monthly = RangeStrategy("events", "created_at", Interval.MONTH)
    assert daily.matches("events_20240305")
    assert not daily.matches("events_202403")
    assert monthly.matches("events_202403")
    assert not monthly.matches("events_archive")

def test_equality_is_case_insensitive():
    strategy = EqualityStrategy("people", "name")
    assert strategy.name_for("Two") == strategy.name_for("tWo") == "people_two"
    constraint = strategy.predicate_for("Two")
    assert constraint.value == "two"
    assert constraint.contains("TWO")

def test_equality_rejects_empty_value():
    with pytest.raises(InvalidPartitionKey):
        EqualityStrategy("people", "name").name_for("")

def test_equality_pattern_skips_upper_case_names():
    strategy = EqualityStrategy("people", "name")
    assert strategy.matches("people_one")
    assert not strategy.matches("people_One")
    assert not strategy.matches("persons_one")

def test_strategy_for_selects_variant():
    assert isinstance(strategy_for(KeyType.TEMPORAL, "t", "c", "month"), RangeStrategy)
    assert isinstance(strategy_for(KeyType.STRING, "t", "c"), EqualityStrategy)
    assert strategy_for(KeyType.TEMPORAL, "t", "c", "week").interval is Interval.WEEK

def test_strategy_for_rejects_unsupported_type():
    with pytest.raises(UnsupportedKeyType):
        strategy_for(KeyType.UNSUPPORTED, "t", "c", column_type="FLOAT")

def test_range_constraint_recovered_from_name():
    strategy = RangeStrategy("events", "created_at", Interval.DAY)
    assert strategy.constraints_for_name("events_20240305") == [strategy.predicate_for(datetime(2024, 3, 5))]
    assert strategy.constraints_for_name("events_20240231") == []
    assert strategy.constraints_for_name("events_archive") == []

    weekly = RangeStrategy("events", "created_at", Interval.WEEK)
    # 2024-03-04 is a Monday
    assert len(weekly.constraints_for_name("events_20240304")) == 1
    assert weekly.constraints_for_name("events_20240305") == []

def test_equality_constraint_recovered_from_name():
    strategy = EqualityStrategy("people", "name")
    assert strategy.constraints_for_name("people_ärger") == [strategy.predicate_for("Ärger")]
    assert strategy.constraints_for_name("people_Ärger") == []

def test_range_bind_value_parses_iso_strings():
    assert RangeStrategy("events", "created_at").bind_value("2024-03-05T10:00:00") == datetime(2024, 3, 5, 10)
    assert RangeStrategy("days", "day", with_time=False).bind_value("2024-03-05") == date(2024, 3, 5)
    assert EqualityStrategy("people", "name").bind_value("Two") == "Two"
    with pytest.raises(InvalidPartitionKey):
        RangeStrategy("events", "created_at").bind_value("yesterday")
