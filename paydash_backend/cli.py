from __future__ import annotations

import argparse
import io
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .adapters import SpreadsheetDecodeError, load_report
from .aggregation import aggregate_by_country, aggregate_by_date, summary_totals
from .engine import reconcile
from .models import FeeComponent, FilterOptions, Timezone
from .outputs import (
    format_currency,
    format_percent,
    metrics_frame,
    write_breakdown_csv,
    write_breakdown_xlsx,
)
from .settings import DEFAULT_SETTINGS


def build_filters(args: argparse.Namespace) -> FilterOptions:
    defaults = DEFAULT_SETTINGS.default_filters()
    return FilterOptions(
        start_date=args.start_date,
        end_date=args.end_date,
        countries=args.country or [],
        payment_channels=args.channel or [],
        timezone=args.timezone or defaults.timezone,
        fee_components=args.fee if args.fee else defaults.fee_components,
    )


def write_export(path: Path, rows, filters: FilterOptions) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".xlsx":
        bio = io.BytesIO()
        meta = {
            "currency": DEFAULT_SETTINGS.currency,
            "filters": filters.to_dict(),
            "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        }
        write_breakdown_xlsx(bio, rows, meta)
        path.write_bytes(bio.getvalue())
    else:
        path.write_text(write_breakdown_csv(rows, DEFAULT_SETTINGS.currency), encoding="utf-8")


def run_report(args: argparse.Namespace) -> int:
    try:
        settlement = load_report(args.settlement)
        authorization = load_report(args.authorization)
    except (SpreadsheetDecodeError, OSError) as e:
        print(f"[ERROR] {e}")
        return 1

    print(f"[DATA] Settlement rows: {len(settlement)}, authorization rows: {len(authorization)}")

    filters = build_filters(args)
    rows = reconcile(settlement, authorization, filters)
    if not rows:
        print("[WARN] No data for the selected filters")

    currency = DEFAULT_SETTINGS.currency
    totals = summary_totals(rows)
    print(f"Total revenue : {format_currency(totals.total_revenue, currency)}")
    print(f"Total fees    : {format_currency(totals.total_fees, currency)} "
          f"({format_percent(totals.fee_share)} of revenue)")
    print(f"Avg approval  : {format_percent(totals.avg_approval_ratio)} over {totals.count} rows")

    print("\nDaily breakdown:")
    for p in aggregate_by_date(rows):
        print(f"  {p.date}: {format_currency(p.revenue, currency)} revenue, "
              f"{p.accepted_transactions:,}/{p.total_transactions:,} ({format_percent(p.approval_ratio)})")

    print("\nTop countries:")
    for p in aggregate_by_country(rows)[: args.top]:
        print(f"  {p.country}: {format_currency(p.revenue, currency)} revenue, "
              f"{format_percent(p.approval_ratio)} approval")

    if args.show_rows and rows:
        print()
        print(metrics_frame(rows).to_string(index=False))

    if args.output:
        out = Path(args.output)
        if out.parent == Path("."):
            # bare file names land in the configured output folder
            out = Path(DEFAULT_SETTINGS.output_dir) / out
        write_export(out, rows, filters)
        print(f"Wrote: {out}")
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("paydash_backend.api_app:app", host=args.host, port=args.port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="paydash")
    sub = ap.add_subparsers(dest="mode", required=True)

    rep = sub.add_parser("report", help="reconcile two report files and print the metrics")
    rep.add_argument("--settlement", required=True)
    rep.add_argument("--authorization", required=True)
    rep.add_argument("--start-date")
    rep.add_argument("--end-date")
    rep.add_argument("--country", action="append")
    rep.add_argument("--channel", action="append")
    rep.add_argument("--timezone", choices=[tz.value for tz in Timezone])
    rep.add_argument("--fee", action="append", choices=[c.value for c in FeeComponent])
    rep.add_argument("--top", type=int, default=10)
    rep.add_argument("--show-rows", action="store_true")
    rep.add_argument("--output", help=".csv or .xlsx export path; a bare file name goes to PAYDASH_OUTPUT_DIR")

    srv = sub.add_parser("serve", help="run the HTTP API")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=DEFAULT_SETTINGS.port)

    args = ap.parse_args(argv)
    if args.mode == "report":
        return run_report(args)
    return run_serve(args)


if __name__ == "__main__":
    sys.exit(main())
