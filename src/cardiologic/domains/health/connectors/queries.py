"""Query descriptions handed to a health store, and the statistics it returns.

Queries are plain frozen values. The store decides how to execute them; the
in-memory store in ``memory_store`` uses the ``matches`` / ``bucket_*``
helpers defined here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, Flag, auto
from typing import Iterator

from cardiologic.domains.health.connectors.samples import QuantitySample, Sample
from cardiologic.domains.health.connectors.sample_types import Quantity

START_DATE_SORT_KEY = "start_date"


class QueryOptions(Flag):
    """Boundary semantics for a sample predicate."""

    NONE = 0
    STRICT_START_DATE = auto()
    STRICT_END_DATE = auto()


class StatisticsOptions(Enum):
    CUMULATIVE_SUM = "cumulative_sum"


@dataclass(frozen=True)
class SamplePredicate:
    """Selects samples by their time interval.

    With ``STRICT_START_DATE`` a sample must start at or after ``start``; with
    ``STRICT_END_DATE`` it must end at or before ``end``. Without a strict
    flag the corresponding edge only needs to overlap the range.
    """

    start: datetime | None
    end: datetime | None
    options: QueryOptions = QueryOptions.NONE

    def matches(self, sample: Sample) -> bool:
        if self.start is not None:
            if QueryOptions.STRICT_START_DATE in self.options:
                if sample.start_date < self.start:
                    return False
            elif sample.end_date < self.start:
                return False
        if self.end is not None:
            if QueryOptions.STRICT_END_DATE in self.options:
                if sample.end_date > self.end:
                    return False
            elif sample.start_date > self.end:
                return False
        return True


def predicate_for_samples(
    start: datetime | None,
    end: datetime | None,
    options: QueryOptions = QueryOptions.NONE,
) -> SamplePredicate:
    """Build a predicate over the ``[start, end]`` range."""
    return SamplePredicate(start=start, end=end, options=options)


@dataclass(frozen=True)
class SortDescriptor:
    key: str = START_DATE_SORT_KEY
    ascending: bool = True


@dataclass(frozen=True)
class SampleQuery:
    """Predicate-based query for samples of one type.

    ``limit=None`` means no limit.
    """

    type_token: str
    predicate: SamplePredicate | None = None
    limit: int | None = None
    sort_descriptors: tuple[SortDescriptor, ...] = ()


@dataclass(frozen=True)
class StatisticsCollectionQuery:
    """Recurring fixed-interval aggregation anchored at ``anchor_date``."""

    type_token: str
    anchor_date: datetime
    interval: timedelta
    options: StatisticsOptions = StatisticsOptions.CUMULATIVE_SUM
    predicate: SamplePredicate | None = None


@dataclass(frozen=True)
class Statistics:
    """Aggregate for a single bucket; ``sum_quantity`` is None when empty."""

    start_date: datetime
    end_date: datetime
    sum_quantity: Quantity | None = None


@dataclass
class StatisticsCollection:
    """Per-bucket cumulative sums produced by a statistics query.

    Buckets start at ``anchor_date + k * interval`` for any integer ``k``.
    Samples are assigned to the bucket containing their start date.

    Usage::

        for stats in collection.enumerate_statistics(week_ago, now):
            if stats.sum_quantity is not None:
                print(stats.start_date.date(), stats.sum_quantity.double_value("count"))
    """

    anchor_date: datetime
    interval: timedelta
    unit: str
    _sums: dict[int, float] = field(default_factory=dict, repr=False)

    @classmethod
    def from_samples(
        cls,
        anchor_date: datetime,
        interval: timedelta,
        unit: str,
        samples: list[QuantitySample],
    ) -> StatisticsCollection:
        collection = cls(anchor_date=anchor_date, interval=interval, unit=unit)
        for sample in samples:
            index = collection.bucket_index(sample.start_date)
            collection._sums[index] = (
                collection._sums.get(index, 0.0) + sample.value_in(unit)
            )
        return collection

    def bucket_index(self, instant: datetime) -> int:
        """Index of the bucket containing ``instant`` (negative before the anchor)."""
        index = math.floor((instant - self.anchor_date) / self.interval)
        # Wall-clock interval arithmetic can shift bucket edges across DST.
        while instant < self.bucket_start(index):
            index -= 1
        while instant >= self.bucket_start(index + 1):
            index += 1
        return index

    def bucket_start(self, index: int) -> datetime:
        return self.anchor_date + index * self.interval

    def statistics_for(self, instant: datetime) -> Statistics:
        """Return the bucket statistics for the interval containing ``instant``."""
        return self._statistics(self.bucket_index(instant))

    def enumerate_statistics(self, start: datetime, end: datetime) -> Iterator[Statistics]:
        """Yield statistics for every bucket overlapping ``[start, end]``."""
        if end < start:
            return
        index = self.bucket_index(start)
        last = self.bucket_index(end)
        while index <= last:
            yield self._statistics(index)
            index += 1

    def statistics(self) -> list[Statistics]:
        """All non-empty buckets in chronological order."""
        return [self._statistics(i) for i in sorted(self._sums)]

    def _statistics(self, index: int) -> Statistics:
        total = self._sums.get(index)
        return Statistics(
            start_date=self.bucket_start(index),
            end_date=self.bucket_start(index + 1),
            sum_quantity=Quantity(total, self.unit) if total is not None else None,
        )
