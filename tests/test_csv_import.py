"""
CSV Ingestion Tests

Header mapping, numeric parsing, malformed files and year/month detection
from export file names.
"""

import datetime as dt

import pytest

from fanclub.services.csv_import import (
    CSVFormatError,
    decode_csv_bytes,
    is_valid_year_month,
    normalize_transaction,
    parse_csv_text,
    parse_year_month_from_filename,
    to_number,
)


class TestNumbers:
    """Numeric field parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [("1,200", 1200), ("¥1,200", 1200), ("", 0), (None, 0), ("abc", 0), (350, 350), ("12.5", 12.5),
         ("NaN", 0), ("inf", 0), ("-Infinity", 0), (float("nan"), 0)],
    )
    def test_to_number(self, raw, expected):
        assert to_number(raw) == expected


class TestNormalize:
    """Both header sets map onto the same record."""

    def test_japanese_headers(self):
        rec = normalize_transaction(
            {"日付": "2025-05-01 10:00", "金額": "1,000", "手数料": "100", "種類": "プラン購入", "対象": "Gold", "購入者": "alice"}
        )
        assert rec == {
            "date": "2025-05-01 10:00",
            "amount": 1000,
            "fee": 100,
            "type": "プラン購入",
            "target": "Gold",
            "buyer": "alice",
        }

    def test_english_headers_and_customer_id(self):
        rec = normalize_transaction({"date": "2025-05-01", "amount": 10, "customerId": "c1"})
        assert rec["buyer"] == "c1"
        assert rec["fee"] == 0

    def test_customer_name_fallback(self):
        assert normalize_transaction({"顧客名": "hana"})["buyer"] == "hana"

    def test_missing_buyer_is_unknown(self):
        assert normalize_transaction({"金額": "100"})["buyer"] == "不明"


class TestParseCSV:
    """Whole-file parsing."""

    def test_parses_export(self):
        content = (
            "日付,金額,手数料,種類,対象,購入者,URL\n"
            "2025-05-01 10:00,\"1,000\",100,プラン購入,Gold,alice,https://x\n"
            "\n"
            "2025-05-02 11:00,500,50,単品販売,Photo,,https://y\n"
        )
        rows = parse_csv_text(content)
        assert len(rows) == 2
        assert rows[0]["amount"] == 1000
        assert rows[1]["buyer"] == "不明"
        assert "URL" not in rows[0]

    def test_bom_is_ignored(self):
        rows = parse_csv_text("\ufeffdate,amount,buyer\n2025-01-01,10,a\n")
        assert rows[0]["amount"] == 10

    def test_unrecognized_header_rejected(self):
        with pytest.raises(CSVFormatError):
            parse_csv_text("foo,bar\n1,2\n")

    def test_empty_file_rejected(self):
        with pytest.raises(CSVFormatError):
            parse_csv_text("")

    def test_shift_jis_decoding(self):
        raw = "日付,金額\n2025-01-01,100\n".encode("cp932")
        assert decode_csv_bytes(raw).startswith("日付")


class TestFileNames:
    """Year/month detection from file names."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("05-2025.csv", (2025, 5)),
            ("2025-05.csv", (2025, 5)),
            ("2025年5月.csv", (2025, 5)),
            ("05月2025年.csv", (2025, 5)),
            ("202505.csv", (2025, 5)),
            ("2025-05 (2).csv", (2025, 5)),
            ("12-2024_sales.csv", (2024, 12)),
        ],
    )
    def test_patterns(self, name, expected):
        assert parse_year_month_from_filename(name) == expected

    @pytest.mark.parametrize("name", ["sales.csv", "13-2025.csv", "2025-13.csv", "1999-05.csv", "202500.csv"])
    def test_no_match(self, name):
        assert parse_year_month_from_filename(name) is None


class TestValidYearMonth:
    """Accepted upload periods."""

    TODAY = dt.date(2025, 6, 15)

    def test_current_and_past(self):
        assert is_valid_year_month(2025, 6, self.TODAY)
        assert is_valid_year_month(2020, 1, self.TODAY)

    def test_future_month_this_year_rejected(self):
        assert not is_valid_year_month(2025, 7, self.TODAY)

    def test_next_year_allowed(self):
        assert is_valid_year_month(2026, 1, self.TODAY)

    def test_out_of_range(self):
        assert not is_valid_year_month(2019, 12, self.TODAY)
        assert not is_valid_year_month(2027, 1, self.TODAY)
        assert not is_valid_year_month(2025, 0, self.TODAY)
