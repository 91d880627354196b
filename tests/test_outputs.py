import io

import pytest
from openpyxl import load_workbook

from paydash_backend.models import MetricsRow, approval_ratio
from paydash_backend.outputs import (
    breakdown_frame,
    country_name,
    currency_number_format,
    export_filename,
    format_currency,
    format_date_for_file,
    format_percent,
    metrics_frame,
    write_breakdown_csv,
    write_breakdown_xlsx,
    write_metrics_csv,
)


def _row(date, country, channel, revenue, fees, total, accepted):
    return MetricsRow(
        date=date,
        country=country,
        payment_channel=channel,
        revenue=revenue,
        fees=fees,
        total_transactions=total,
        accepted_transactions=accepted,
        approval_ratio=approval_ratio(accepted, total),
    )


ROWS = [
    _row("2024-01-05", "US", "Card", 1000.0, 7.0, 10, 10),
    _row("2024-01-05", "US", "Apple Pay", 234.5, 3.0, 90, 0),
    _row("2024-01-05", "DE", "Card", 50.0, 1.0, 1, 1),
    _row("2024-01-04", "FR", "Card", 10.0, 0.5, 0, 0),
]


@pytest.mark.parametrize("amount, currency, expected", [
    (1234.5, "USD", "$1,234.50"),
    (-5, "USD", "-$5.00"),
    (None, "USD", "$0.00"),
    (10, "eur", "€10.00"),
    (10, "CHF", "CHF 10.00"),
])
def test_format_currency(amount, currency, expected):
    assert format_currency(amount, currency) == expected


def test_format_percent():
    assert format_percent(12.3456) == "12.35%"
    assert format_percent(0) == "0.00%"


@pytest.mark.parametrize("value, expected", [
    ("2024-01-05", "2024-01-05"),
    ("2024-01-05T10:00:00Z", "2024-01-05"),
    (None, ""),
    ("", ""),
    ("not a date", "not a date"),
])
def test_format_date_for_file(value, expected):
    assert format_date_for_file(value) == expected


def test_export_filename():
    assert export_filename("metrics", "csv") == "detailed_breakdown.csv"
    assert export_filename("breakdown", "xlsx") == "detailed_breakdown_aggregated.xlsx"


def test_breakdown_frame_groups_channels_and_weights_ratio():
    df = breakdown_frame(ROWS)
    assert list(df.columns) == ["date", "country", "revenue", "fees", "accepted", "total", "approval_ratio"]
    assert list(zip(df["date"], df["country"])) == [
        ("2024-01-04", "France"),
        ("2024-01-05", "Germany"),
        ("2024-01-05", "United States"),
    ]
    us = df.iloc[2]
    assert us["revenue"] == pytest.approx(1234.5)
    assert us["total"] == 100
    assert us["approval_ratio"] == pytest.approx(10.0)


def test_frames_for_empty_input():
    assert metrics_frame([]).empty
    assert list(breakdown_frame([]).columns)[-1] == "approval_ratio"


def test_metrics_csv():
    lines = write_metrics_csv(ROWS[:1]).splitlines()
    assert lines[0] == '"date","country","revenue","fees"'
    assert lines[1] == '"2024-01-05","United States","$1,000.00","$7.00"'


def test_breakdown_csv():
    lines = write_breakdown_csv(ROWS).splitlines()
    assert lines[0] == '"date","country","revenue","fees","approval_ratio"'
    assert lines[1:] == [
        '"2024-01-04","France","$10.00","$0.50","0.00%"',
        '"2024-01-05","Germany","$50.00","$1.00","100.00%"',
        '"2024-01-05","United States","$1,234.50","$10.00","10.00%"',
    ]


def test_breakdown_csv_header_only_when_empty():
    assert write_breakdown_csv([]).splitlines() == ['"date","country","revenue","fees","approval_ratio"']


def test_breakdown_xlsx():
    bio = io.BytesIO()
    write_breakdown_xlsx(bio, ROWS, {
        "currency": "USD",
        "filters": {"countries": ["US"], "timezone": "GMT+0", "start_date": None},
        "generated_at": "2024-01-06 00:00:00 UTC",
    })
    wb = load_workbook(bio)
    assert wb.sheetnames == ["Summary", "Breakdown", "Daily", "Countries"]

    summary = wb["Summary"]
    assert summary["A2"].value == "Generated: 2024-01-06 00:00:00 UTC"
    assert summary["B6"].value == pytest.approx(1294.5)
    assert summary["B7"].value == pytest.approx(11.5)

    breakdown = wb["Breakdown"]
    assert [c.value for c in breakdown[1]] == ["date", "country", "revenue", "fees", "approval_ratio"]
    assert breakdown.cell(row=4, column=2).value == "United States"
    assert breakdown.cell(row=4, column=5).value == pytest.approx(0.10)

    daily = wb["Daily"]
    assert [daily.cell(row=r, column=1).value for r in (2, 3)] == ["2024-01-04", "2024-01-05"]

    countries = wb["Countries"]
    assert countries.cell(row=2, column=1).value == "United States"


def test_breakdown_xlsx_to_path_without_rows(tmp_path):
    path = tmp_path / "empty.xlsx"
    write_breakdown_xlsx(path, [], {})
    wb = load_workbook(path)
    assert wb["Breakdown"].max_row == 1
    values = [c.value for c in wb["Summary"]["A"]]
    assert "No data for the selected filters" in values


@pytest.mark.parametrize("code, expected", [
    ("US", "United States"),
    ("de", "Germany"),
    ("FRA", "France"),
    (840, "United States"),
    ("36", "Australia"),
    ("ZZ", "ZZ"),
    ("Atlantis", "Atlantis"),
    (None, ""),
])
def test_country_name(code, expected):
    assert country_name(code) == expected


def test_breakdown_merges_codes_naming_the_same_country():
    rows = [
        _row("2024-01-05", "US", "Card", 10.0, 1.0, 1, 1),
        _row("2024-01-05", "USA", "Card", 5.0, 0.5, 1, 0),
    ]
    df = breakdown_frame(rows)
    assert list(df["country"]) == ["United States"]
    assert df.iloc[0]["revenue"] == pytest.approx(15.0)
    assert df.iloc[0]["approval_ratio"] == pytest.approx(50.0)


def test_currency_number_format():
    assert currency_number_format("USD") == '_("$"* #,##0.00_);_("$"* (#,##0.00);_("$"* "-"??_);_(@_)'
    assert '"€"' in currency_number_format("eur")
    assert '"CHF "' in currency_number_format("CHF")


def test_breakdown_xlsx_money_cells_use_configured_currency():
    bio = io.BytesIO()
    write_breakdown_xlsx(bio, ROWS, {"currency": "EUR"})
    wb = load_workbook(bio)
    expected = currency_number_format("EUR")
    assert wb["Summary"]["B6"].number_format == expected
    assert wb["Breakdown"].cell(row=2, column=3).number_format == expected
    assert wb["Daily"].cell(row=2, column=2).number_format == expected
    assert wb["Countries"].cell(row=2, column=3).number_format == expected
    assert "$" not in wb["Countries"].cell(row=2, column=2).number_format
