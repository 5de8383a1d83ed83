"""
Merge & Type-Inference Engine - Transform Layer

Joins the part rows with their UPP status and class-parameter attributes,
sanitizes field names into column names, infers one type per column from
heterogeneous raw values and builds the final polars frame.

Pure and deterministic: inputs are never mutated, and any error aborts the
whole merge so no partial frame is ever produced.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import chain
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Mapping, Optional, Tuple

import polars as pl

from .values import (
    NUMBER_KINDS,
    Cell,
    ValueKind,
    has_time_of_day,
    is_integral,
    render_text,
    sanitize_key,
    to_cell,
)

logger = logging.getLogger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

EXTRACTION_TIME_COLUMN = "ExtractionTime"
KEY_FIELD = "chgelemChgnoteSeq"
STATUS_FIELD = "uppStatus"
STATUS_DATE_FIELD = "uppStatusChgDate"


class MergeError(ValueError):
    """A column's values cannot be reconciled into one type"""


@dataclass(frozen=True)
class ColumnNameMaps:
    """
    Display names for raw field identifiers

    Attributes:
        fields: Row field name -> label; unknown fields keep their raw name
        attributes: Attribute code -> label; unknown codes are dropped
    """

    fields: Mapping[str, str] = field(default_factory=dict)
    attributes: Mapping[Any, str] = field(default_factory=dict)


def resolve_label(value: Any, labels: Mapping[Any, str]) -> Any:
    """Map a stored list value to its label, keeping it when there is none"""
    if isinstance(value, Hashable) and value in labels:
        return labels[value]
    return value


def row_pairs(
    row: Mapping[str, Any],
    secondary_attributes_by_key: Mapping[Any, Mapping[Any, Any]],
    column_name_maps: ColumnNameMaps,
    lookup_label_map: Mapping[Any, str],
    correlation_map: Mapping[Any, Any],
    status_by_key: Mapping[Any, Mapping[str, Any]],
    key_field: str = KEY_FIELD,
) -> Iterator[Tuple[str, Any]]:
    """
    Flatten one primary row into (display key, raw value) pairs

    Order: status enrichment, the row's own fields, then the correlated
    secondary attributes that have a display name.
    """
    key = row.get(key_field)
    status_record = status_by_key.get(key) or {}

    enrichment = (
        (STATUS_FIELD, resolve_label(status_record.get(STATUS_FIELD), lookup_label_map)),
        (STATUS_DATE_FIELD, status_record.get(STATUS_DATE_FIELD)),
    )

    for raw_key, value in chain(enrichment, row.items()):
        yield column_name_maps.fields.get(raw_key, raw_key), value

    secondary_key = correlation_map.get(key)
    if secondary_key is None:
        return

    for code, value in (secondary_attributes_by_key.get(secondary_key) or {}).items():
        label = column_name_maps.attributes.get(code)
        if label:
            yield label, value


def collect_cells(rows_of_pairs: Iterable[Iterable[Tuple[str, Any]]]) -> Dict[str, List[Cell]]:
    """Group normalized cells by sanitized column name, in first-seen order"""
    columns: Dict[str, List[Cell]] = {}

    for row_index, pairs in enumerate(rows_of_pairs):
        for raw_key, raw_value in pairs:
            columns.setdefault(sanitize_key(raw_key), []).append(
                to_cell(row_index, raw_value)
            )

    return columns


def infer_column(name: str, cells: List[Cell], row_count: int) -> Optional[pl.Series]:
    """
    Build one typed column from its cells

    Any string value turns the whole column into text. Otherwise numbers
    become Int64 when all are integral and fit (Float64 if not), and datetimes become
    Date when none carries a time of day. Returns None for all-null columns.

    Raises:
        MergeError: when numbers, dates and booleans are mixed without any string
    """
    is_int = True
    is_date_without_time = True
    is_string = False
    kinds = set()

    by_row: List[Optional[Cell]] = [None] * row_count

    for cell in cells:
        if cell.kind is ValueKind.FLOAT and not is_integral(cell):
            is_int = False
        elif cell.kind is ValueKind.DATE and has_time_of_day(cell.value):
            is_date_without_time = False

        if cell.kind is ValueKind.STRING:
            is_string = True

        if cell.kind is not ValueKind.NULL:
            kinds.add(cell.kind)

        # The last cell written to a row wins
        by_row[cell.row_index] = cell

    if all(cell is None or cell.kind is ValueKind.NULL for cell in by_row):
        return None

    if is_string:
        return pl.Series(
            name, [render_text(cell) if cell else None for cell in by_row], dtype=pl.String
        )

    values = [None if cell is None else cell.value for cell in by_row]

    if kinds <= NUMBER_KINDS:
        # Integers beyond Int64 stay Float64
        if is_int and all(v is None or INT64_MIN <= v <= INT64_MAX for v in values):
            return pl.Series(
                name, [None if v is None else int(v) for v in values], dtype=pl.Int64
            )
        return pl.Series(
            name, [None if v is None else float(v) for v in values], dtype=pl.Float64
        )

    if kinds == {ValueKind.DATE}:
        series = pl.Series(name, values, dtype=pl.Datetime("ms"))
        if is_date_without_time:
            series = series.cast(pl.Date)
        return series

    if kinds == {ValueKind.BOOLEAN}:
        return pl.Series(name, values, dtype=pl.Boolean)

    raise MergeError(
        f"Column {name!r} mixes incompatible value kinds: "
        f"{sorted(kind.value for kind in kinds)}"
    )


def extraction_time_series(extraction_time: datetime, row_count: int) -> pl.Series:
    """Constant extraction timestamp column (naive UTC, millisecond precision)"""
    if extraction_time.tzinfo is not None:
        extraction_time = extraction_time.astimezone(timezone.utc).replace(tzinfo=None)

    return pl.Series(
        EXTRACTION_TIME_COLUMN, [extraction_time] * row_count, dtype=pl.Datetime("ms")
    )


def merge_and_infer(
    primary_rows: List[Mapping[str, Any]],
    secondary_attributes_by_key: Mapping[Any, Mapping[Any, Any]],
    column_name_maps: ColumnNameMaps,
    lookup_label_map: Mapping[Any, str],
    correlation_map: Mapping[Any, Any],
    status_by_key: Optional[Mapping[Any, Mapping[str, Any]]] = None,
    extraction_time: Optional[datetime] = None,
    key_field: str = KEY_FIELD,
) -> pl.DataFrame:
    """
    Merge keyed record sets into one typed frame

    Args:
        primary_rows: Part rows; one output row each, order preserved
        secondary_attributes_by_key: {correlated key: {attribute code: value}}
        column_name_maps: Display names for row fields and attribute codes
        lookup_label_map: Stored status value -> label
        correlation_map: Row key -> secondary key
        status_by_key: Row key -> status record (uppStatus, uppStatusChgDate)
        extraction_time: Timestamp of the run, appended as the last column
        key_field: Field of a primary row holding its key

    Returns:
        pl.DataFrame: One column per non-null sanitized field plus ExtractionTime

    Raises:
        MergeError: if a column cannot be typed
    """
    status_by_key = status_by_key or {}
    extraction_time = extraction_time or datetime.now(tz=timezone.utc)
    row_count = len(primary_rows)

    logger.info(f"🔄 Merging {row_count} rows")

    columns = collect_cells(
        row_pairs(
            row,
            secondary_attributes_by_key,
            column_name_maps,
            lookup_label_map,
            correlation_map,
            status_by_key,
            key_field,
        )
        for row in primary_rows
    )

    series = []
    dropped = 0
    for name, cells in columns.items():
        column = infer_column(name, cells, row_count)
        if column is None:
            dropped += 1
        elif name != EXTRACTION_TIME_COLUMN:
            series.append(column)

    series.append(extraction_time_series(extraction_time, row_count))
    frame = pl.DataFrame(series)

    logger.info(
        f"✅ Built frame: {frame.height} rows, {frame.width} columns "
        f"({dropped} all-null columns dropped)"
    )
    return frame
