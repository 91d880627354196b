"""
Output Formatting

Export files for the dashboard's detailed breakdown:
- CSV of the raw metrics rows (date, country, revenue, fees)
- CSV aggregated by date + country with the weighted approval ratio
- Excel workbook with Summary / Breakdown / Daily / Countries sheets

Country codes are written as full country names (pycountry) and money
cells use the configured currency symbol.
"""
from __future__ import annotations

import csv
import io
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import pandas as pd
import pycountry
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from .aggregation import aggregate_by_country, aggregate_by_date, summary_totals
from .models import MetricsRow, approval_ratio


# =============================================================================
# Style Constants
# =============================================================================

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")

THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

CURRENCY_FORMAT_TEMPLATE = '_("{symbol}"* #,##0.00_);_("{symbol}"* (#,##0.00);_("{symbol}"* "-"??_);_(@_)'
PERCENT_FORMAT = '0.00%'

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥"}

METRICS_COLUMNS = [
    "date", "country", "payment_channel", "revenue", "fees",
    "total_transactions", "accepted_transactions", "approval_ratio",
]
BREAKDOWN_COLUMNS = ["date", "country", "revenue", "fees", "accepted", "total", "approval_ratio"]

_ISO_DAY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# =============================================================================
# Value formatting
# =============================================================================

def currency_symbol(currency: str) -> str:
    code = (currency or "USD").upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def currency_number_format(currency: str = "USD") -> str:
    """Excel accounting format showing the currency's symbol"""
    return CURRENCY_FORMAT_TEMPLATE.format(symbol=currency_symbol(currency))


def format_currency(amount: Any, currency: str = "USD") -> str:
    value = float(amount or 0)
    symbol = currency_symbol(currency)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def country_name(code: Any) -> str:
    """Full country name for an ISO 3166 code (alpha-2, alpha-3 or numeric). Unknown codes pass through."""
    if code is None:
        return ""
    text = str(code).strip()
    if text.isdigit():
        country = pycountry.countries.get(numeric=text.zfill(3))
    elif len(text) == 2:
        country = pycountry.countries.get(alpha_2=text.upper())
    elif len(text) == 3:
        country = pycountry.countries.get(alpha_3=text.upper())
    else:
        country = None
    return country.name if country is not None else text


def format_percent(ratio: float) -> str:
    """Format an approval ratio already expressed in percent"""
    return f"{ratio:.2f}%"


def format_date_for_file(value: Any) -> str:
    """Normalize to YYYY-MM-DD for CSV/XLSX; unparseable values pass through."""
    if value is None or value == "":
        return ""
    text = str(value)
    if _ISO_DAY.match(text):
        return text
    try:
        ts = pd.to_datetime(text, utc=True)
    except (ValueError, TypeError, OverflowError):
        return text
    if pd.isna(ts):
        return text
    return ts.strftime("%Y-%m-%d")


def export_filename(kind: str, fmt: str) -> str:
    base = "detailed_breakdown" if kind == "metrics" else "detailed_breakdown_aggregated"
    return f"{base}.{fmt}"


# =============================================================================
# DataFrames
# =============================================================================

def metrics_frame(rows: Sequence[MetricsRow]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=METRICS_COLUMNS)
    return pd.DataFrame([r.to_dict() for r in rows], columns=METRICS_COLUMNS)


def breakdown_frame(rows: Sequence[MetricsRow]) -> pd.DataFrame:
    """Group metrics by (date, country name) across channels, sorted by date then country name."""
    if not rows:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    df = pd.DataFrame({
        "date": [format_date_for_file(r.date) for r in rows],
        "country": [country_name(r.country) for r in rows],
        "revenue": [r.revenue or 0.0 for r in rows],
        "fees": [r.fees or 0.0 for r in rows],
        "accepted": [r.accepted_transactions or 0 for r in rows],
        "total": [r.total_transactions or 0 for r in rows],
    })
    agg = (
        df.groupby(["date", "country"], as_index=False)[["revenue", "fees", "accepted", "total"]]
        .sum()
        .sort_values(["date", "country"], kind="mergesort")
        .reset_index(drop=True)
    )
    agg["approval_ratio"] = [
        approval_ratio(int(a), int(t)) for a, t in zip(agg["accepted"], agg["total"])
    ]
    return agg[BREAKDOWN_COLUMNS]


# =============================================================================
# CSV
# =============================================================================

def _to_csv(df: pd.DataFrame) -> str:
    buf = io.StringIO()
    # Currency strings carry commas, so every field is quoted
    df.to_csv(buf, index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return buf.getvalue()


def write_metrics_csv(rows: Sequence[MetricsRow], currency: str = "USD") -> str:
    """date,country,revenue,fees with formatted currency values"""
    out = pd.DataFrame({
        "date": [format_date_for_file(r.date) for r in rows],
        "country": [country_name(r.country) for r in rows],
        "revenue": [format_currency(r.revenue, currency) for r in rows],
        "fees": [format_currency(r.fees, currency) for r in rows],
    }, columns=["date", "country", "revenue", "fees"])
    return _to_csv(out)


def write_breakdown_csv(rows: Sequence[MetricsRow], currency: str = "USD") -> str:
    """date,country,revenue,fees,approval_ratio aggregated by date + country"""
    agg = breakdown_frame(rows)
    out = pd.DataFrame({
        "date": agg["date"],
        "country": agg["country"],
        "revenue": [format_currency(v, currency) for v in agg["revenue"]],
        "fees": [format_currency(v, currency) for v in agg["fees"]],
        "approval_ratio": [format_percent(v) for v in agg["approval_ratio"]],
    }, columns=["date", "country", "revenue", "fees", "approval_ratio"])
    return _to_csv(out)


# =============================================================================
# Excel
# =============================================================================

def write_breakdown_xlsx(
    output: Union[io.BytesIO, Path],
    rows: Sequence[MetricsRow],
    meta: Dict[str, Any],
) -> None:
    """
    Write the filtered metrics to Excel.

    Sheets:
    - Summary: headline totals and the active filters
    - Breakdown: date + country aggregation
    - Daily: date series
    - Countries: country series, highest revenue first
    """
    wb = Workbook()
    wb.remove(wb.active)

    money_format = currency_number_format(meta.get("currency", "USD"))
    _create_summary_sheet(wb, rows, meta, money_format)
    _create_breakdown_sheet(wb, rows, money_format)
    _create_daily_sheet(wb, rows, money_format)
    _create_countries_sheet(wb, rows, money_format)

    if isinstance(output, io.BytesIO):
        wb.save(output)
        output.seek(0)
    else:
        wb.save(str(output))


def _write_header(ws, row: int, headers: List[str]) -> None:
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER


def _create_summary_sheet(wb: Workbook, rows: Sequence[MetricsRow], meta: Dict[str, Any], money_format: str):
    ws = wb.create_sheet("Summary")

    ws["A1"] = "Payments Dashboard Summary"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A2"] = f"Generated: {meta.get('generated_at', datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC'))}"
    ws["A3"] = f"Currency: {meta.get('currency', 'USD')}"

    totals = summary_totals(rows)
    ws["A5"] = "Totals"
    ws["A5"].font = Font(bold=True)

    row = 6
    ws[f"A{row}"] = "Total Revenue:"
    ws[f"B{row}"] = totals.total_revenue
    ws[f"B{row}"].number_format = money_format
    row += 1
    ws[f"A{row}"] = "Total Fees:"
    ws[f"B{row}"] = totals.total_fees
    ws[f"B{row}"].number_format = money_format
    row += 1
    ws[f"A{row}"] = "Fees % of Revenue:"
    ws[f"B{row}"] = totals.fee_share / 100
    ws[f"B{row}"].number_format = PERCENT_FORMAT
    row += 1
    ws[f"A{row}"] = "Avg Approval Ratio:"
    ws[f"B{row}"] = totals.avg_approval_ratio / 100
    ws[f"B{row}"].number_format = PERCENT_FORMAT
    row += 1
    ws[f"A{row}"] = "Metric Rows:"
    ws[f"B{row}"] = totals.count

    row += 2
    ws[f"A{row}"] = "Filters"
    ws[f"A{row}"].font = Font(bold=True)
    row += 1
    for name, value in (meta.get("filters") or {}).items():
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value) or "(all)"
        ws.cell(row=row, column=1, value=name)
        ws.cell(row=row, column=2, value="(none)" if value is None else value)
        row += 1

    if not rows:
        row += 1
        ws.cell(row=row, column=1, value="No data for the selected filters")

    _auto_width(ws)


def _create_breakdown_sheet(wb: Workbook, rows: Sequence[MetricsRow], money_format: str):
    ws = wb.create_sheet("Breakdown")
    headers = ["date", "country", "revenue", "fees", "approval_ratio"]
    _write_header(ws, 1, headers)

    agg = breakdown_frame(rows)
    row = 2
    for _, data_row in agg.iterrows():
        ws.cell(row=row, column=1, value=data_row["date"])
        ws.cell(row=row, column=2, value=data_row["country"])
        ws.cell(row=row, column=3, value=float(data_row["revenue"])).number_format = money_format
        ws.cell(row=row, column=4, value=float(data_row["fees"])).number_format = money_format
        # Stored as a fraction so Excel's percent format renders it
        ws.cell(row=row, column=5, value=float(data_row["approval_ratio"]) / 100).number_format = PERCENT_FORMAT
        for col in range(1, 6):
            ws.cell(row=row, column=col).border = THIN_BORDER
        row += 1

    _auto_width(ws)


def _create_daily_sheet(wb: Workbook, rows: Sequence[MetricsRow], money_format: str):
    ws = wb.create_sheet("Daily")
    headers = ["date", "revenue", "fees", "total_transactions", "accepted_transactions", "approval_ratio"]
    _write_header(ws, 1, headers)

    row = 2
    for point in aggregate_by_date(rows):
        ws.cell(row=row, column=1, value=point.date)
        ws.cell(row=row, column=2, value=point.revenue).number_format = money_format
        ws.cell(row=row, column=3, value=point.fees).number_format = money_format
        ws.cell(row=row, column=4, value=point.total_transactions)
        ws.cell(row=row, column=5, value=point.accepted_transactions)
        ws.cell(row=row, column=6, value=point.approval_ratio / 100).number_format = PERCENT_FORMAT
        row += 1

    _auto_width(ws)


def _create_countries_sheet(wb: Workbook, rows: Sequence[MetricsRow], money_format: str):
    ws = wb.create_sheet("Countries")
    headers = ["country", "revenue", "fees", "total_transactions", "accepted_transactions", "approval_ratio"]
    _write_header(ws, 1, headers)

    row = 2
    for point in aggregate_by_country(rows):
        ws.cell(row=row, column=1, value=country_name(point.country))
        ws.cell(row=row, column=2, value=point.revenue).number_format = money_format
        ws.cell(row=row, column=3, value=point.fees).number_format = money_format
        ws.cell(row=row, column=4, value=point.total_transactions)
        ws.cell(row=row, column=5, value=point.accepted_transactions)
        ws.cell(row=row, column=6, value=point.approval_ratio / 100).number_format = PERCENT_FORMAT
        row += 1

    _auto_width(ws)


# =============================================================================
# Helpers
# =============================================================================

def _auto_width(ws):
    """Auto-adjust column widths"""
    for column in ws.columns:
        max_length = 0
        column_letter = get_column_letter(column[0].column)

        for cell in column:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))

        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)
