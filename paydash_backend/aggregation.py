"""
Re-aggregation of the reconciled metrics table.

The metrics table is keyed by (date, country, channel). Charts need it
collapsed along one dimension. Approval ratios are recomputed from the
summed counts so low-volume buckets do not skew the result.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence

from .models import (
    CountrySeriesPoint,
    DateSeriesPoint,
    MetricsRow,
    SummaryTotals,
    approval_ratio,
)


@dataclass
class _SeriesAccumulator:
    revenue: float = 0.0
    fees: float = 0.0
    total_transactions: int = 0
    accepted_transactions: int = 0

    def add(self, row: MetricsRow) -> None:
        self.revenue += row.revenue
        self.fees += row.fees
        self.total_transactions += row.total_transactions
        self.accepted_transactions += row.accepted_transactions

    @property
    def approval_ratio(self) -> float:
        return approval_ratio(self.accepted_transactions, self.total_transactions)


def _group(rows: Sequence[MetricsRow], key: Callable[[MetricsRow], Any]) -> Dict[Any, _SeriesAccumulator]:
    groups: Dict[Any, _SeriesAccumulator] = {}
    for row in rows:
        k = key(row)
        if k not in groups:
            groups[k] = _SeriesAccumulator()
        groups[k].add(row)
    return groups


def aggregate_by_date(rows: Sequence[MetricsRow]) -> List[DateSeriesPoint]:
    """Sum metrics per day across countries and channels, oldest day first."""
    points = [
        DateSeriesPoint(
            date=day,
            revenue=acc.revenue,
            fees=acc.fees,
            total_transactions=acc.total_transactions,
            accepted_transactions=acc.accepted_transactions,
            approval_ratio=acc.approval_ratio,
        )
        for day, acc in _group(rows, lambda r: r.date).items()
    ]
    points.sort(key=lambda p: p.date)
    return points


def aggregate_by_country(rows: Sequence[MetricsRow]) -> List[CountrySeriesPoint]:
    """Sum metrics per country across days and channels, highest revenue first."""
    points = [
        CountrySeriesPoint(
            country=country,
            revenue=acc.revenue,
            fees=acc.fees,
            total_transactions=acc.total_transactions,
            accepted_transactions=acc.accepted_transactions,
            approval_ratio=acc.approval_ratio,
        )
        for country, acc in _group(rows, lambda r: r.country).items()
    ]
    points.sort(key=lambda p: p.revenue, reverse=True)
    return points


def summary_totals(rows: Sequence[MetricsRow]) -> SummaryTotals:
    """Headline totals. avg_approval_ratio_sum is a plain sum; see SummaryTotals.avg_approval_ratio."""
    total_revenue = 0.0
    total_fees = 0.0
    ratio_sum = 0.0
    for row in rows:
        total_revenue += row.revenue
        total_fees += row.fees
        ratio_sum += row.approval_ratio
    return SummaryTotals(
        total_revenue=total_revenue,
        total_fees=total_fees,
        avg_approval_ratio_sum=ratio_sum,
        count=len(rows),
    )
