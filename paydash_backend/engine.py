"""
Reconciliation Engine

Folds settlement and authorization records into one metrics table keyed by
(calendar day, country, payment channel):
- settlement rows add revenue and the selected fee components
- authorization rows add attempt counts and accepted counts

Every call rebuilds the table from the raw rows; nothing is cached.
Bad numbers count as 0 and records without a usable timestamp are dropped,
so the fold never fails on malformed input.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .adapters import Row, NUMBER_PATTERN
from .models import (
    ACCEPTED_STATE,
    FeeComponent,
    FilterOptions,
    MetricsRow,
    approval_ratio,
)
from .settings import DEFAULT_SETTINGS
from .timestamps import normalize


MetricsKey = Tuple[str, Any, Any]


# -----------------------------
# Helpers: numbers + fees
# -----------------------------
def to_number(value: Any) -> float:
    """Lenient numeric coercion: missing, NaN or non-numeric values become 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        if pd.isna(value) or math.isinf(value):
            return 0.0
        return float(value)
    t = str(value).strip()
    if not NUMBER_PATTERN.match(t):
        return 0.0
    number = float(t)
    return 0.0 if math.isinf(number) else number


def fee_total(record: Row, components: Iterable[FeeComponent]) -> float:
    """Sum the selected fee columns of a settlement record."""
    selected = set(components)
    # Declaration order keeps float sums identical between runs
    return sum(to_number(record.get(c.value)) for c in FeeComponent if c in selected)


# -----------------------------
# Accumulator
# -----------------------------
@dataclass
class _MetricsAccumulator:
    date: str
    country: Any
    payment_channel: Any
    revenue: float = 0.0
    fees: float = 0.0
    total_transactions: int = 0
    accepted_transactions: int = 0

    def freeze(self) -> MetricsRow:
        return MetricsRow(
            date=self.date,
            country=self.country,
            payment_channel=self.payment_channel,
            revenue=self.revenue,
            fees=self.fees,
            total_transactions=self.total_transactions,
            accepted_transactions=self.accepted_transactions,
            approval_ratio=approval_ratio(self.accepted_transactions, self.total_transactions),
        )


def _fetch(store: Dict[MetricsKey, _MetricsAccumulator], day: str, country: Any, channel: Any) -> _MetricsAccumulator:
    key = (day, country, channel)
    acc = store.get(key)
    if acc is None:
        acc = _MetricsAccumulator(date=day, country=country, payment_channel=channel)
        store[key] = acc
    return acc


def _settlement_day(record: Row, filters: FilterOptions) -> Optional[str]:
    # accepted_at is preferred; created_at covers records not yet accepted
    day = normalize(record.get("accepted_at"), filters.timezone)
    if day is None:
        day = normalize(record.get("created_at"), filters.timezone)
    return day


# -----------------------------
# Reconciliation
# -----------------------------
def reconcile(
    settlement_rows: Sequence[Row],
    authorization_rows: Sequence[Row],
    filters: Optional[FilterOptions] = None,
    debug: Optional[bool] = None,
) -> List[MetricsRow]:
    """
    Return one MetricsRow per (day, country, channel) seen in either stream
    after filtering, sorted by day.

    debug prints drop counts; it defaults to DEFAULT_SETTINGS.debug.
    """
    if filters is None:
        filters = FilterOptions()
    if debug is None:
        debug = DEFAULT_SETTINGS.debug

    store: Dict[MetricsKey, _MetricsAccumulator] = {}
    undated = 0
    filtered = 0

    for record in settlement_rows:
        day = _settlement_day(record, filters)
        if day is None:
            undated += 1
            continue
        country = record.get("customer_country")
        channel = record.get("payment_channel")
        if not filters.accepts(day, country, channel):
            filtered += 1
            continue

        acc = _fetch(store, day, country, channel)
        acc.revenue += to_number(record.get("transaction_amount"))
        acc.fees += fee_total(record, filters.fee_components)

    for record in authorization_rows:
        day = normalize(record.get("created_at"), filters.timezone)
        if day is None:
            undated += 1
            continue
        country = record.get("customer_country")
        channel = record.get("payment_channel")
        if not filters.accepts(day, country, channel):
            filtered += 1
            continue

        acc = _fetch(store, day, country, channel)
        acc.total_transactions += 1
        if record.get("transaction_state") == ACCEPTED_STATE:
            acc.accepted_transactions += 1

    if debug:
        print(f"[DEBUG] reconcile: {len(store)} keys, {undated} undated, {filtered} filtered out")

    rows = [acc.freeze() for acc in store.values()]
    rows.sort(key=lambda r: r.date)
    return rows


# -----------------------------
# Filter options
# -----------------------------
def _distinct(field_name: str, *streams: Sequence[Row]) -> List[str]:
    values = set()
    for stream in streams:
        for record in stream:
            v = record.get(field_name)
            if v is not None:
                values.add(str(v))
    return sorted(values)


def unique_countries(settlement_rows: Sequence[Row], authorization_rows: Sequence[Row]) -> List[str]:
    """Distinct customer countries across both reports, for the country dropdown."""
    return _distinct("customer_country", settlement_rows, authorization_rows)


def unique_payment_channels(settlement_rows: Sequence[Row], authorization_rows: Sequence[Row]) -> List[str]:
    return _distinct("payment_channel", settlement_rows, authorization_rows)
