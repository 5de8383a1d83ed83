"""
Cell values - key sanitizing, raw value normalization and kind tagging

Pure functions shared by the merge engine.
"""

import json
import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, NamedTuple, Optional

NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")
ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}(?:T[0-9]{2}:[0-9]{2}:[0-9]{2}[A-Z0-9.+:]*)?")
DOTTED_DATE = re.compile(r"[0-9]{2}\.[0-9]{2}\.[0-9]{4}")
NUMERIC = re.compile(r"-?[0-9]+\.?[0-9]*")


class ValueKind(Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    DATE = "date"


NUMBER_KINDS = frozenset({ValueKind.INTEGER, ValueKind.FLOAT})


class Cell(NamedTuple):
    """One normalized value of a column, tagged with its kind"""

    row_index: int
    kind: ValueKind
    value: Any


def sanitize_key(key: Any) -> str:
    """
    Turn a raw field name into a column name

    Every character outside [A-Za-z0-9] becomes '_', and a leading digit
    gets a '_' prefix. Idempotent.
    """
    sanitized = NON_ALPHANUMERIC.sub("_", str(key))

    if sanitized[:1].isdigit():
        sanitized = f"_{sanitized}"

    return sanitized


def is_numeric(value: str) -> bool:
    """True for optionally negative digits with at most one decimal point"""
    trimmed = value.strip()

    if not NUMERIC.fullmatch(trimmed):
        return False

    try:
        float(trimmed)
    except ValueError:
        return False

    return True


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """Parse YYYY-MM-DD[THH:MM:SS[zone]] into a naive UTC datetime"""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)

    return parsed


def parse_dotted_date(value: str) -> Optional[datetime]:
    """Parse DD.MM.YYYY into a naive UTC datetime at midnight"""
    day, month, year = value.split(".")

    try:
        return datetime(int(year), int(month), int(day))
    except ValueError:
        return None


def normalize_value(value: Any) -> Any:
    """
    Convert date-like and numeric strings to native values

    Only strings are touched; the first matching rule wins:
    ISO date/datetime, DD.MM.YYYY date, then plain numbers unless they carry
    a leading zero (single-character strings like "0" still convert).
    Strings that look like dates but are not valid calendar dates are kept.
    """
    if not isinstance(value, str):
        return value

    if ISO_DATE.fullmatch(value):
        return parse_iso_datetime(value) or value

    if DOTTED_DATE.fullmatch(value):
        return parse_dotted_date(value) or value

    if is_numeric(value) and (not value.strip().startswith("0") or len(value) == 1):
        return float(value.strip())

    return value


def classify(value: Any) -> ValueKind:
    """Tag a normalized value with its kind"""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, (datetime, date)):
        return ValueKind.DATE

    # Strings, plus nested JSON objects and arrays rendered as text
    return ValueKind.STRING


def to_cell(row_index: int, raw_value: Any) -> Cell:
    value = normalize_value(raw_value)
    kind = classify(value)

    if kind is ValueKind.DATE and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    return Cell(row_index, kind, value)


def has_time_of_day(value: datetime) -> bool:
    return value.hour + value.minute + value.second + value.microsecond // 1000 > 0


def is_integral(cell: Cell) -> bool:
    if cell.kind is ValueKind.FLOAT:
        return cell.value.is_integer()
    return True


def render_text(cell: Cell) -> Optional[str]:
    """Render a cell for an all-string column; nulls stay null"""
    if cell.kind is ValueKind.NULL:
        return None
    if cell.kind is ValueKind.BOOLEAN:
        return "true" if cell.value else "false"
    if cell.kind is ValueKind.FLOAT:
        return str(int(cell.value)) if cell.value.is_integer() else repr(cell.value)
    if cell.kind is ValueKind.INTEGER:
        return str(cell.value)
    if cell.kind is ValueKind.DATE:
        return cell.value.isoformat()
    if isinstance(cell.value, str):
        return cell.value

    return json.dumps(cell.value, ensure_ascii=False)
