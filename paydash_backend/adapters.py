"""
Report Adapters

Turns uploaded settlement / authorization reports into row dicts the
reconciliation engine can fold.

Supported inputs:
- Tab or comma delimited text (.csv, .tsv, .txt)
- Excel workbooks (.xlsx), first sheet only, converted to delimited text first

The text decoder is deliberately simple: the delimiter is picked from the
header line and lines are split positionally. Quoted values containing the
delimiter are NOT supported and will shift columns.
"""
from __future__ import annotations

import io
import re
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd


Row = Dict[str, Any]

SPREADSHEET_SUFFIXES = (".xlsx",)

NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INTEGER = re.compile(r"^[+-]?\d+$")


class SpreadsheetDecodeError(ValueError):
    """Raised when a workbook cannot be converted to delimited text."""


# =============================================================================
# Text decoding
# =============================================================================

def _clean(value: str) -> str:
    return value.replace('"', "").strip()


def _coerce_value(value: str) -> Any:
    """n/a and empty become None, numeric text becomes a number, anything else stays text"""
    if value == "n/a" or value == "":
        return None
    if NUMBER_PATTERN.match(value):
        if _INTEGER.match(value):
            return int(value)
        return float(value)
    return value


def decode(text: str) -> List[Row]:
    """
    Decode delimited report text into a list of row dicts.

    The first line holds the headers. A tab anywhere in it selects tab as the
    delimiter, otherwise comma. Values missing at the end of a short line are
    left out of that row. Input without at least one data line gives [].
    """
    lines = (text or "").strip().split("\n")
    if len(lines) < 2:
        return []

    first_line = lines[0]
    separator = "\t" if "\t" in first_line else ","
    headers = [_clean(h) for h in first_line.split(separator)]

    rows: List[Row] = []
    for line in lines[1:]:
        values = [_clean(v) for v in line.split(separator)]
        row: Row = {}
        for idx, header in enumerate(headers):
            if idx >= len(values):
                break
            row[header] = _coerce_value(values[idx])
        rows.append(row)
    return rows


def parse_settlement_report(text: str) -> List[Row]:
    return decode(text)


def parse_authorization_report(text: str) -> List[Row]:
    return decode(text)


# =============================================================================
# Spreadsheets + files
# =============================================================================

def spreadsheet_to_text(data: bytes) -> str:
    """Render the first sheet of an .xlsx workbook as tab delimited text."""
    try:
        df = pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=object)
    except Exception as e:
        raise SpreadsheetDecodeError(
            f"Failed to parse XLSX file ({e}). Please check your file or try CSV."
        ) from e
    return df.to_csv(sep="\t", index=False, lineterminator="\n")


def _decode_bytes(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        # latin-1 maps every byte
        return data.decode("latin-1")


def read_report_bytes(data: bytes, filename: str = "") -> str:
    """Return delimited text for an uploaded report, converting workbooks first."""
    ext = Path(filename or "").suffix.lower()
    if ext in SPREADSHEET_SUFFIXES:
        return spreadsheet_to_text(data)
    return _decode_bytes(data)


def read_report_file(path: Union[str, Path]) -> str:
    path = Path(path)
    return read_report_bytes(path.read_bytes(), path.name)


def load_report(path: Union[str, Path]) -> List[Row]:
    """Read and decode a report file from disk."""
    return decode(read_report_file(path))
