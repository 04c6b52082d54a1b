import csv
import datetime as dt
import io
import math
import re
from typing import Any, Iterable

from dateutil import parser as date_parser

UNKNOWN_BUYER = "不明"
PLAN_PURCHASE = "プラン購入"
SINGLE_SALE = "単品販売"

# field -> accepted headers, first non-empty wins
FIELD_HEADERS: dict[str, tuple[str, ...]] = {
    "date": ("date", "日付"),
    "amount": ("amount", "金額"),
    "fee": ("fee", "手数料"),
    "type": ("type", "種類"),
    "target": ("target", "対象"),
    "buyer": ("buyer", "customerId", "購入者", "顧客名"),
}

_NUMERIC_STRIP = re.compile(r"[¥￥,円\s]")

_FILENAME_PATTERNS = (
    (re.compile(r"^(\d{1,2})-(\d{4})"), "my"),
    (re.compile(r"^(\d{4})-(\d{1,2})"), "ym"),
    (re.compile(r"^(\d{4})年(\d{1,2})月"), "ym"),
    (re.compile(r"^(\d{1,2})月(\d{4})年"), "my"),
    (re.compile(r"^(\d{4})(\d{2})"), "ym"),
)


class CSVFormatError(ValueError):
    pass


def to_number(value: Any) -> int | float:
    """'¥1,200' -> 1200; blanks and junk -> 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        n = float(value)
    else:
        s = _NUMERIC_STRIP.sub("", str(value))
        if not s:
            return 0
        try:
            n = float(s)
        except ValueError:
            return 0
    if not math.isfinite(n):
        return 0
    return int(n) if n.is_integer() else n


def parse_date(value: Any) -> dt.datetime | None:
    if not value:
        return None
    if isinstance(value, dt.datetime):
        return value
    try:
        return date_parser.parse(str(value).strip())
    except (ValueError, OverflowError):
        return None


def _pick(record: dict[str, Any], headers: Iterable[str]) -> Any:
    for h in headers:
        v = record.get(h)
        if v is not None and str(v).strip() != "":
            return v
    return None


def normalize_transaction(record: dict[str, Any]) -> dict[str, Any]:
    """Map either header set onto {date, amount, fee, type, target, buyer}."""
    date = _pick(record, FIELD_HEADERS["date"])
    return {
        "date": str(date).strip() if date is not None else "",
        "amount": to_number(_pick(record, FIELD_HEADERS["amount"])),
        "fee": to_number(_pick(record, FIELD_HEADERS["fee"])),
        "type": str(_pick(record, FIELD_HEADERS["type"]) or "").strip(),
        "target": str(_pick(record, FIELD_HEADERS["target"]) or "").strip(),
        "buyer": str(_pick(record, FIELD_HEADERS["buyer"]) or UNKNOWN_BUYER).strip(),
    }


def normalize_transactions(records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return [normalize_transaction(r) for r in records if isinstance(r, dict)]


def parse_csv_text(content: str) -> list[dict[str, Any]]:
    """Parse an export (header row + records) into normalized transactions."""
    content = content.lstrip("\ufeff")
    reader = csv.DictReader(io.StringIO(content))
    headers = [h.strip() for h in (reader.fieldnames or []) if h]
    known = {h for hs in FIELD_HEADERS.values() for h in hs}
    if not headers or not known.intersection(headers):
        raise CSVFormatError("CSV header row not recognized")
    rows = []
    for raw in reader:
        record = {(k or "").strip(): v for k, v in raw.items() if k is not None}
        if not any((v or "").strip() for v in record.values() if isinstance(v, str)):
            continue
        rows.append(normalize_transaction(record))
    return rows


def decode_csv_bytes(raw: bytes) -> str:
    # Exports come as UTF-8 (with or without BOM) or Shift_JIS
    for encoding in ("utf-8-sig", "cp932"):
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise CSVFormatError("Unsupported file encoding")


def parse_year_month_from_filename(filename: str) -> tuple[int, int] | None:
    name = re.sub(r"\.[^/.]+$", "", filename or "")
    name = re.sub(r"\s*\(\d+\)\s*$", "", name)
    for pattern, order in _FILENAME_PATTERNS:
        m = pattern.match(name)
        if not m:
            continue
        a, b = int(m.group(1)), int(m.group(2))
        month, year = (a, b) if order == "my" else (b, a)
        if 1 <= month <= 12 and 2000 <= year <= 2100:
            return year, month
    return None


def is_valid_year_month(year: int, month: int, today: dt.date | None = None) -> bool:
    today = today or dt.date.today()
    if year < today.year - 5 or year > today.year + 1:
        return False
    if month < 1 or month > 12:
        return False
    if year == today.year and month > today.month:
        return False
    return True
