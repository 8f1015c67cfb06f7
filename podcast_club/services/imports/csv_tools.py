"""CSV parsing and cell coercion shared by the legacy importers"""

import csv
import io
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

from podcast_club.services.database import parse_datetime, utcnow, to_millis

MappingValue = Union[int, str, None]
FieldMapping = Dict[str, MappingValue]

# Spreadsheet serial day 0
SPREADSHEET_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)

DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M %p",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%A, %B %d, %Y",
    "%a, %b %d, %Y",
)

_WHITESPACE = re.compile(r"\s+")
_BATCH_ID_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


def parse_csv(text: str) -> List[List[str]]:
    """Parse CSV text into rows of trimmed cells.

    Quoted fields may contain commas, newlines and doubled quotes. Blank
    lines are dropped; rows of empty cells are kept so positional layouts
    still line up.
    """
    reader = csv.reader(io.StringIO(text, newline=""), strict=False)
    rows = []
    for row in reader:
        cells = [cell.strip() for cell in row]
        if not cells or cells == [""]:
            continue
        rows.append(cells)
    return rows


def normalize_header(value) -> str:
    return _WHITESPACE.sub(" ", str(value or "").strip().lower())


def first_name_key(name) -> str:
    parts = str(name or "").strip().split()
    return parts[0].lower() if parts else ""


def parse_date_value(value) -> Optional[datetime]:
    """ISO strings, common US spellings, or spreadsheet serial day numbers"""
    raw = str(value or "").strip()
    if not raw:
        return None

    try:
        serial = float(raw)
    except ValueError:
        serial = None
    if serial is not None:
        if 20000 < serial < 80000:
            return SPREADSHEET_EPOCH + timedelta(days=serial)
        return None

    parsed = parse_datetime(raw)
    if parsed is not None:
        return parsed

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_positive_int(value, fallback: int) -> int:
    try:
        parsed = float(str(value or "").strip())
    except ValueError:
        return fallback
    if parsed != parsed or parsed in (float("inf"), float("-inf")) or parsed < 1:
        return fallback
    return max(1, round(parsed))


def sanitize_batch_id(value, prefix: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return f"{prefix}-{to_millis(utcnow())}"
    return _BATCH_ID_UNSAFE.sub("-", raw)[:80]


def date_key(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d")


def column_index(headers: List[str], mapping: FieldMapping, key: str, fallback: Optional[int]) -> Optional[int]:
    """Resolve a column from an explicit index, a header name, or a default.

    Without a mapping entry the key itself is tried as a header name.
    """
    mapped = mapping.get(key)
    if isinstance(mapped, int) and not isinstance(mapped, bool) and 0 <= mapped < len(headers):
        return mapped

    header = normalize_header(key if mapped is None else mapped)
    if header and header in headers:
        return headers.index(header)
    return fallback


def cell(row: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(row):
        return ""
    return str(row[index] or "").strip()
