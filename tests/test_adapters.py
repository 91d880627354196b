import io

import pytest
from openpyxl import Workbook

from paydash_backend.adapters import (
    SpreadsheetDecodeError,
    decode,
    load_report,
    parse_authorization_report,
    parse_settlement_report,
    read_report_bytes,
    spreadsheet_to_text,
)


def _workbook_bytes(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


class TestDecode:
    def test_comma_delimited(self):
        rows = decode("a,b,c\n1,x,2.5")
        assert rows == [{"a": 1, "b": "x", "c": 2.5}]

    def test_tab_in_header_selects_tab(self):
        rows = decode("name\tamount\nfoo, bar\t10")
        assert rows == [{"name": "foo, bar", "amount": 10}]

    def test_headers_and_values_trimmed_and_unquoted(self):
        rows = decode(' "id" , "country" \n "7" , "US" ')
        assert rows == [{"id": 7, "country": "US"}]

    def test_padding_inside_quotes_is_trimmed(self):
        rows = decode('amount,country\n" 5 ", " US "')
        assert rows == [{"amount": 5, "country": "US"}]
        assert decode('a,b\n"  ",x') == [{"a": None, "b": "x"}]

    def test_na_and_empty_become_none(self):
        rows = decode("a,b,c\nn/a,,N/A")
        assert rows[0]["a"] is None
        assert rows[0]["b"] is None
        # only the lowercase sentinel is recognized
        assert rows[0]["c"] == "N/A"

    def test_numeric_inference(self):
        rows = decode("a,b,c,d,e,f\n-3,.5,1e3,+2.0,12abc,1,000")
        row = rows[0]
        assert row["a"] == -3 and isinstance(row["a"], int)
        assert row["b"] == 0.5
        assert row["c"] == 1000.0
        assert row["d"] == 2.0
        assert row["e"] == "12abc"
        # the thousands separator splits the value into two columns
        assert row["f"] == 1

    def test_ragged_line_leaves_trailing_headers_missing(self):
        rows = decode("a,b,c\n1,2")
        assert rows == [{"a": 1, "b": 2}]

    def test_extra_values_are_ignored(self):
        rows = decode("a,b\n1,2,3")
        assert rows == [{"a": 1, "b": 2}]

    def test_quoted_delimiter_is_not_protected(self):
        rows = decode('a,b\n"x,y",z')
        assert rows == [{"a": "x", "b": "y"}]

    def test_crlf_line_endings(self):
        rows = decode("a,b\r\n1,US\r\n")
        assert rows == [{"a": 1, "b": "US"}]

    @pytest.mark.parametrize("text", ["", "   ", "a,b,c", "a,b,c\n", None])
    def test_header_only_or_empty_input(self, text):
        assert decode(text) == []

    def test_one_row_per_data_line(self, settlement_csv, authorization_tsv):
        assert len(parse_settlement_report(settlement_csv)) == 5
        auth = parse_authorization_report(authorization_tsv)
        assert len(auth) == 7
        assert auth[0]["transaction_state"] == "ACCEPTED"
        assert auth[6]["created_at"] is None


class TestSpreadsheets:
    def test_first_sheet_becomes_delimited_text(self):
        data = _workbook_bytes([
            ["transaction_amount", "customer_country", "comment"],
            [100, "US", None],
            [2.5, "DE, Berlin", "ok"],
        ])
        rows = decode(spreadsheet_to_text(data))
        assert rows[0] == {"transaction_amount": 100, "customer_country": "US", "comment": None}
        # tab delimited output keeps commas inside cells intact
        assert rows[1] == {"transaction_amount": 2.5, "customer_country": "DE, Berlin", "comment": "ok"}

    def test_unreadable_workbook_raises_decode_error(self):
        with pytest.raises(SpreadsheetDecodeError) as exc:
            read_report_bytes(b"definitely not a zip archive", "report.xlsx")
        assert "try CSV" in str(exc.value)

    def test_decode_error_is_a_value_error(self):
        assert issubclass(SpreadsheetDecodeError, ValueError)


class TestReadReport:
    def test_utf8_bom_is_dropped(self):
        text = read_report_bytes("\ufeffa,b\n1,2".encode("utf-8"), "r.csv")
        assert decode(text) == [{"a": 1, "b": 2}]

    def test_latin1_fallback(self):
        text = read_report_bytes(b"country,name\nFR,Caf\xe9", "r.csv")
        assert decode(text) == [{"country": "FR", "name": "Café"}]

    def test_load_report_from_disk(self, tmp_path, authorization_tsv):
        path = tmp_path / "auth.tsv"
        path.write_text(authorization_tsv, encoding="utf-8")
        rows = load_report(path)
        assert len(rows) == 7
        assert rows[1]["transaction_state"] == "REJECTED"

    def test_load_xlsx_report_from_disk(self, tmp_path):
        path = tmp_path / "stl.xlsx"
        path.write_bytes(_workbook_bytes([["a", "b"], [1, "x"]]))
        assert load_report(path) == [{"a": 1, "b": "x"}]
