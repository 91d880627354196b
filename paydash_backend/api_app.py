from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .adapters import SPREADSHEET_SUFFIXES, SpreadsheetDecodeError, decode, read_report_bytes
from .aggregation import aggregate_by_country, aggregate_by_date, summary_totals
from .engine import reconcile, unique_countries, unique_payment_channels
from .models import FeeComponent, FilterOptions, MetricsRow, PaymentChannel, Timezone
from .outputs import export_filename, write_breakdown_csv, write_breakdown_xlsx, write_metrics_csv
from .settings import DEFAULT_SETTINGS, DashboardSettings


app = FastAPI(title="Payments Dashboard API", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_settings: DashboardSettings = DEFAULT_SETTINGS

REPORT_KINDS = ("settlement", "authorization")

# Latest upload per report kind. Replaced wholesale on every upload.
_reports: Dict[str, List[Dict[str, Any]]] = {kind: [] for kind in REPORT_KINDS}
_report_files: Dict[str, Optional[str]] = {kind: None for kind in REPORT_KINDS}


# ============================================================================
# Request Models
# ============================================================================

class MetricsQuery(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    countries: List[str] = []
    payment_channels: List[str] = []
    timezone: Optional[Timezone] = None
    fee_components: Optional[List[FeeComponent]] = None

    def to_filters(self, settings: DashboardSettings) -> FilterOptions:
        defaults = settings.default_filters()
        return FilterOptions(
            start_date=self.start_date,
            end_date=self.end_date,
            countries=self.countries,
            payment_channels=self.payment_channels,
            timezone=self.timezone or defaults.timezone,
            fee_components=self.fee_components if self.fee_components is not None else defaults.fee_components,
        )


class SettingsUpdate(BaseModel):
    default_timezone: Optional[Timezone] = None
    fee_components: Optional[List[FeeComponent]] = None
    currency: Optional[str] = None
    output_dir: Optional[str] = None
    debug: Optional[bool] = None


# ============================================================================
# Helper Functions
# ============================================================================

def _check_kind(kind: str) -> str:
    if kind not in REPORT_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown report kind: {kind}")
    return kind


def _run(query: Optional[MetricsQuery]) -> Tuple[List[MetricsRow], FilterOptions]:
    filters = (query or MetricsQuery()).to_filters(_settings)
    rows = reconcile(_reports["settlement"], _reports["authorization"], filters, debug=_settings.debug)
    return rows, filters


def _settings_dict() -> Dict[str, Any]:
    return {
        "default_timezone": _settings.default_timezone,
        "fee_components": _settings.fee_component_values(),
        "currency": _settings.currency,
        "output_dir": _settings.output_dir,
        "debug": _settings.debug,
    }


def _rows_payload(rows: List[MetricsRow]) -> Dict[str, Any]:
    return {"rows": [r.to_dict() for r in rows], "count": len(rows)}


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health")
def health():
    """Simple health check endpoint"""
    return {"ok": True, "status": "running"}


@app.get("/status")
def status():
    """Uploaded report sizes and current settings"""
    return {
        "settings": _settings_dict(),
        "reports": {
            kind: {"file": _report_files[kind], "rows": len(_reports[kind])}
            for kind in REPORT_KINDS
        },
    }


@app.patch("/settings")
def update_settings(updates: SettingsUpdate):
    """Update backend settings"""
    global _settings

    current = {
        "output_dir": _settings.output_dir,
        "default_timezone": _settings.default_timezone,
        "fee_components": list(_settings.fee_components),
        "currency": _settings.currency,
        "port": _settings.port,
        "debug": _settings.debug,
    }

    if updates.default_timezone is not None:
        current["default_timezone"] = updates.default_timezone.value
    if updates.fee_components is not None:
        current["fee_components"] = [c.value for c in updates.fee_components]
    if updates.currency is not None:
        current["currency"] = updates.currency.strip().upper()
    if updates.output_dir is not None:
        current["output_dir"] = updates.output_dir
        print(f"[OK] Updated output_dir to: {updates.output_dir}")
    if updates.debug is not None:
        current["debug"] = updates.debug

    _settings = DashboardSettings(**current)
    return {"ok": True, "settings": _settings_dict()}


@app.post("/upload/{kind}")
async def upload_report(kind: str, file: UploadFile = File(...)):
    """
    Upload a settlement or authorization report (.csv, .tsv, .txt or .xlsx).
    The previous upload of the same kind is discarded.
    """
    _check_kind(kind)
    data = await file.read()
    try:
        text = read_report_bytes(data, file.filename or "")
    except SpreadsheetDecodeError as e:
        print(f"[ERROR] {kind} upload {file.filename}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    rows = decode(text)
    _reports[kind] = rows
    _report_files[kind] = file.filename
    print(f"[OK] Loaded {kind} report {file.filename}: {len(rows)} rows")

    columns = list(rows[0].keys()) if rows else []
    return {
        "kind": kind,
        "file": file.filename,
        "rows": len(rows),
        "columns": columns,
        "converted_from_spreadsheet": (file.filename or "").lower().endswith(SPREADSHEET_SUFFIXES),
    }


@app.delete("/upload/{kind}")
def clear_report(kind: str):
    _check_kind(kind)
    _reports[kind] = []
    _report_files[kind] = None
    return {"cleared": True, "kind": kind}


@app.get("/filters/options")
def filter_options():
    """Values for the filter dropdowns"""
    return {
        "countries": unique_countries(_reports["settlement"], _reports["authorization"]),
        "payment_channels": unique_payment_channels(_reports["settlement"], _reports["authorization"]),
        "known_payment_channels": [c.value for c in PaymentChannel],
        "timezones": [tz.value for tz in Timezone],
        "fee_components": [c.value for c in FeeComponent],
    }


@app.post("/metrics")
def metrics(query: Optional[MetricsQuery] = None):
    rows, filters = _run(query)
    payload = _rows_payload(rows)
    payload["filters"] = filters.to_dict()
    return payload


@app.post("/series/date")
def date_series(query: Optional[MetricsQuery] = None):
    rows, _ = _run(query)
    points = aggregate_by_date(rows)
    return {"points": [p.to_dict() for p in points], "count": len(points)}


@app.post("/series/country")
def country_series(query: Optional[MetricsQuery] = None):
    rows, _ = _run(query)
    points = aggregate_by_country(rows)
    return {"points": [p.to_dict() for p in points], "count": len(points)}


@app.post("/summary")
def summary(query: Optional[MetricsQuery] = None):
    rows, _ = _run(query)
    return summary_totals(rows).to_dict()


@app.post("/export/{fmt}")
def export(fmt: str, query: Optional[MetricsQuery] = None):
    """
    Download the filtered metrics.

    fmt: csv (raw rows), breakdown-csv (date + country aggregation) or xlsx.
    """
    rows, filters = _run(query)
    currency = _settings.currency

    if fmt == "csv":
        data = write_metrics_csv(rows, currency).encode("utf-8")
        media_type = "text/csv; charset=utf-8"
        fname = export_filename("metrics", "csv")
    elif fmt == "breakdown-csv":
        data = write_breakdown_csv(rows, currency).encode("utf-8")
        media_type = "text/csv; charset=utf-8"
        fname = export_filename("breakdown", "csv")
    elif fmt == "xlsx":
        bio = io.BytesIO()
        meta = {
            "currency": currency,
            "filters": filters.to_dict(),
            "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        }
        write_breakdown_xlsx(bio, rows, meta)
        data = bio.getvalue()
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        fname = export_filename("breakdown", "xlsx")
    else:
        raise HTTPException(status_code=404, detail=f"Unknown export format: {fmt}")

    print(f"[OK] Exported {len(rows)} metric rows as {fname}")
    return StreamingResponse(
        io.BytesIO(data),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{fname}"'},
    )
