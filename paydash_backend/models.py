"""
Dashboard Data Models

This module defines the structures shared by the reconciliation engine,
the re-aggregation layer and the presentation adapters:
- Filter selection (date bounds, countries, channels, timezone, fee components)
- MetricsRow: one reconciled (date, country, payment channel) bucket
- Series points: the same metrics regrouped by date or by country

Raw settlement / authorization records are plain dicts produced by the
tabular decoder. The engine only reads:
- settlement: transaction_amount, the fee columns in FeeComponent,
  customer_country, payment_channel, accepted_at, created_at
- authorization: transaction_state, customer_country, payment_channel, created_at
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

import pytz


# =============================================================================
# Enums
# =============================================================================

class Timezone(str, Enum):
    """Reporting timezones. Only a flat hour offset is applied (no DST)."""
    GMT_0 = "GMT+0"
    GMT_6 = "GMT+6"

    @property
    def offset_hours(self) -> int:
        return 6 if self is Timezone.GMT_6 else 0

    @property
    def tzinfo(self):
        return pytz.FixedOffset(self.offset_hours * 60)


class PaymentChannel(str, Enum):
    """Known payment channels. Source files carry free text, so filters accept any string."""
    APPLE_PAY = "Apple Pay"
    GOOGLE_PAY = "Google Pay"
    CARD = "Card"


class FeeComponent(str, Enum):
    """Settlement columns that can be summed into the fees metric"""
    TRANSACTION_FEE = "transaction_fee"
    INTERCHANGE_FEE = "interchange_fee"
    CARD_SCHEME_FEE = "card_scheme_fee"
    SECURE_DEPOSIT_AMOUNT = "secure_deposit_amount"


DEFAULT_FEE_COMPONENTS: FrozenSet[FeeComponent] = frozenset({
    FeeComponent.TRANSACTION_FEE,
    FeeComponent.INTERCHANGE_FEE,
    FeeComponent.CARD_SCHEME_FEE,
})

ACCEPTED_STATE = "ACCEPTED"


def coerce_timezone(value: Any) -> Timezone:
    """Map a timezone selector to a Timezone. Anything unrecognized means GMT+0."""
    if isinstance(value, Timezone):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Timezone.GMT_6 if value == 6 else Timezone.GMT_0
    t = str(value or "").strip().upper().replace(" ", "")
    if t in ("GMT+6", "UTC+6", "+6", "6", "+06:00"):
        return Timezone.GMT_6
    return Timezone.GMT_0


def coerce_fee_components(values: Optional[Iterable[Any]]) -> FrozenSet[FeeComponent]:
    """Freeze a selection of fee component names. Unknown names raise ValueError."""
    if values is None:
        return DEFAULT_FEE_COMPONENTS
    out = set()
    for v in values:
        if isinstance(v, FeeComponent):
            out.add(v)
            continue
        try:
            out.add(FeeComponent(str(v).strip()))
        except ValueError:
            raise ValueError(f"Unknown fee component: {v}")
    return frozenset(out)


def _freeze(values: Optional[Iterable[Any]]) -> FrozenSet[str]:
    # Dropdown values arrive as text while decoded fields may be numbers
    if not values:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(str(v) for v in values if v is not None)


def _selected(value: Any, allowed: FrozenSet[str]) -> bool:
    if not allowed:
        return True
    return value is not None and str(value) in allowed


# =============================================================================
# Filters
# =============================================================================

@dataclass(frozen=True)
class FilterOptions:
    """
    Active filter selection for one reconciliation run.

    Date bounds are inclusive YYYY-MM-DD strings compared lexicographically.
    Empty country / channel sets mean "no restriction". Countries and
    channels are matched on their text form, so 840 and "840" are the same.
    """
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    countries: FrozenSet[str] = frozenset()
    payment_channels: FrozenSet[str] = frozenset()
    timezone: Timezone = Timezone.GMT_0
    fee_components: FrozenSet[FeeComponent] = DEFAULT_FEE_COMPONENTS

    def __post_init__(self):
        # Accept lists / plain strings from callers; store frozen sets and enums
        object.__setattr__(self, "start_date", self.start_date or None)
        object.__setattr__(self, "end_date", self.end_date or None)
        object.__setattr__(self, "countries", _freeze(self.countries))
        object.__setattr__(self, "payment_channels", _freeze(self.payment_channels))
        object.__setattr__(self, "timezone", coerce_timezone(self.timezone))
        object.__setattr__(self, "fee_components", coerce_fee_components(self.fee_components))

    def accepts(self, day: str, country: Any, channel: Any) -> bool:
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return _selected(country, self.countries) and _selected(channel, self.payment_channels)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.start_date,
            "end_date": self.end_date,
            "countries": sorted(self.countries),
            "payment_channels": sorted(self.payment_channels),
            "timezone": self.timezone.value,
            "fee_components": [c.value for c in FeeComponent if c in self.fee_components],
        }


# =============================================================================
# Core Data Models
# =============================================================================

def approval_ratio(accepted: int, total: int) -> float:
    """Accepted share of attempts as a percentage; 0 when there were no attempts."""
    if total > 0:
        return (accepted / total) * 100
    return 0.0


@dataclass(frozen=True)
class MetricsRow:
    """
    Reconciled metrics for one (date, country, payment channel) key.

    Settlement records contribute revenue and fees; authorization records
    contribute the transaction counts. Either side may be missing.
    """
    date: str
    country: Any
    payment_channel: Any
    revenue: float = 0.0
    fees: float = 0.0
    total_transactions: int = 0
    accepted_transactions: int = 0
    approval_ratio: float = 0.0

    @property
    def key(self):
        return (self.date, self.country, self.payment_channel)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "country": self.country,
            "payment_channel": self.payment_channel,
            "revenue": self.revenue,
            "fees": self.fees,
            "total_transactions": self.total_transactions,
            "accepted_transactions": self.accepted_transactions,
            "approval_ratio": self.approval_ratio,
        }


@dataclass(frozen=True)
class DateSeriesPoint:
    """Metrics summed across countries and channels for one day"""
    date: str
    revenue: float = 0.0
    fees: float = 0.0
    total_transactions: int = 0
    accepted_transactions: int = 0
    approval_ratio: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "revenue": self.revenue,
            "fees": self.fees,
            "total_transactions": self.total_transactions,
            "accepted_transactions": self.accepted_transactions,
            "approval_ratio": self.approval_ratio,
        }


@dataclass(frozen=True)
class CountrySeriesPoint:
    """Metrics summed across days and channels for one country"""
    country: Any
    revenue: float = 0.0
    fees: float = 0.0
    total_transactions: int = 0
    accepted_transactions: int = 0
    approval_ratio: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "country": self.country,
            "revenue": self.revenue,
            "fees": self.fees,
            "total_transactions": self.total_transactions,
            "accepted_transactions": self.accepted_transactions,
            "approval_ratio": self.approval_ratio,
        }


@dataclass(frozen=True)
class SummaryTotals:
    """Headline numbers for the metric cards"""
    total_revenue: float = 0.0
    total_fees: float = 0.0
    avg_approval_ratio_sum: float = 0.0  # sum of per-row ratios; divide by count
    count: int = 0

    @property
    def avg_approval_ratio(self) -> float:
        return self.avg_approval_ratio_sum / self.count if self.count > 0 else 0.0

    @property
    def fee_share(self) -> float:
        """Fees as a percentage of revenue"""
        return (self.total_fees / self.total_revenue) * 100 if self.total_revenue else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_revenue": self.total_revenue,
            "total_fees": self.total_fees,
            "avg_approval_ratio_sum": self.avg_approval_ratio_sum,
            "count": self.count,
            "avg_approval_ratio": self.avg_approval_ratio,
            "fee_share": self.fee_share,
        }
