from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

from .models import FeeComponent, FilterOptions, coerce_fee_components, coerce_timezone

# NOTE:
# - Every value can be overridden with environment variables.
#
# Suggested env overrides:
#   PAYDASH_OUTPUT_DIR       (where CLI exports land when --output is a bare file name)
#   PAYDASH_TIMEZONE         (GMT+0 / GMT+6)
#   PAYDASH_FEE_COMPONENTS   (comma list, e.g. transaction_fee,interchange_fee)
#   PAYDASH_CURRENCY         (display currency for exports, default USD)
#   PAYDASH_PORT             (default 8000)
#   PAYDASH_DEBUG            (1/0)


def _env_list(name: str, default: str) -> List[str]:
    raw = os.environ.get(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class DashboardSettings:
    output_dir: str = os.environ.get("PAYDASH_OUTPUT_DIR", os.path.join(os.getcwd(), "_output"))

    # Filter defaults applied when a request leaves them out
    default_timezone: str = os.environ.get("PAYDASH_TIMEZONE", "GMT+0")
    fee_components: List[str] = field(default_factory=lambda: _env_list(
        "PAYDASH_FEE_COMPONENTS",
        "transaction_fee,interchange_fee,card_scheme_fee",
    ))

    # Amounts are summed as-is; this only drives export formatting
    currency: str = os.environ.get("PAYDASH_CURRENCY", "USD")

    port: int = int(os.environ.get("PAYDASH_PORT", "8000"))
    debug: bool = os.environ.get("PAYDASH_DEBUG", "0") == "1"

    def default_filters(self) -> FilterOptions:
        return FilterOptions(
            timezone=coerce_timezone(self.default_timezone),
            fee_components=coerce_fee_components(self.fee_components),
        )

    def fee_component_values(self) -> List[str]:
        return [c.value for c in FeeComponent if c in coerce_fee_components(self.fee_components)]


DEFAULT_SETTINGS = DashboardSettings()
