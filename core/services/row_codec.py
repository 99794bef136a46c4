# =============================================================================
# core/services/row_codec.py - Typed Row Construction
# =============================================================================
# Turns untyped request parameters into typed dataset rows.
#
# Each Value column reads the parameter "columnId_<id>" and coerces it
# according to the column's ValueKind:
#   string -> stripped text with HTML tags and control characters removed
#   number -> lenient decimal parse (unparseable or infinite becomes 0.0)
#   date   -> lenient date/time parse, stored as local "YYYY-MM-DD HH:MM:SS"
#   image  -> integer media library id (invalid becomes None)
#
# Parsing is permissive on purpose: bad input degrades to an empty or zero
# value and never raises. Structural violations (remote columns) do raise.
# =============================================================================

import logging
import math
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import tzinfo
from typing import Any

import pandas as pd

from app.config import settings
from app.exceptions import InvalidInputError
from core.models.dataset import ColumnKind, DataSetColumn, FieldValue, Row, ValueKind

logger = logging.getLogger(__name__)

LOCAL_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_TAG_PATTERN = re.compile(r"<[^>]*>")
_CONTROL_PATTERN = re.compile(r"[\x00-\x1f\x7f]")


# =============================================================================
# Lenient Parsers
# =============================================================================

def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def sanitize_string(raw: Any) -> str | None:
    """
    Clean free text for storage.

    Strips HTML tags and control characters, then surrounding whitespace.

    Example:
        sanitize_string("  <b>Paris</b>\\x07 ")  # "Paris"
    """
    if raw is None:
        return None
    text = _TAG_PATTERN.sub("", str(raw))
    text = _CONTROL_PATTERN.sub("", text)
    return text.strip()


def parse_number_lenient(raw: Any) -> float | None:
    """
    Parse a decimal number without ever raising.

    Returns:
        None when the parameter is absent or blank,
        0.0 when it is present but not a finite number,
        the parsed float otherwise.
    """
    if _is_blank(raw):
        return None
    if isinstance(raw, bool):
        return float(raw)

    value = pd.to_numeric(str(raw).strip(), errors="coerce")
    if pd.isna(value) or not math.isfinite(value):
        logger.debug(f"Non-numeric input {raw!r} coerced to 0.0")
        return 0.0
    return float(value)


def parse_int_lenient(raw: Any) -> int | None:
    """
    Parse a media library id.

    Only positive whole numbers are ids; anything else is None.
    """
    if _is_blank(raw) or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None

    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.debug(f"Invalid media id {raw!r} ignored")
        return None
    return value if value > 0 else None


def parse_date_lenient(raw: Any, tz: tzinfo | None = None) -> str | None:
    """
    Parse a date/time and render it in the local timezone.

    Values with an explicit offset are converted to `tz`; naive values are
    taken to be local already. Unparseable input returns None.

    Example:
        parse_date_lenient("2024-01-15T09:30:00Z", ZoneInfo("Europe/Paris"))
        # "2024-01-15 10:30:00"
    """
    if _is_blank(raw):
        return None

    tz = tz or settings.local_tz
    try:
        parsed = pd.to_datetime(str(raw).strip(), errors="coerce")
    except (ValueError, TypeError, OverflowError):
        parsed = pd.NaT

    if pd.isna(parsed):
        logger.debug(f"Unparseable date {raw!r} stored as empty")
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(tz)
    return parsed.strftime(LOCAL_DATE_FORMAT)


# Every ValueKind must have a coercer; checked below at import time
_COERCERS: dict[ValueKind, Callable[[Any, tzinfo | None], FieldValue]] = {
    ValueKind.STRING: lambda raw, tz: sanitize_string(raw),
    ValueKind.NUMBER: lambda raw, tz: parse_number_lenient(raw),
    ValueKind.DATE: parse_date_lenient,
    ValueKind.IMAGE: lambda raw, tz: parse_int_lenient(raw),
}

_missing = set(ValueKind) - set(_COERCERS)
if _missing:
    raise RuntimeError(f"No coercion defined for value kinds: {sorted(k.value for k in _missing)}")


def coerce_value(column: DataSetColumn, raw: Any, tz: tzinfo | None = None) -> FieldValue:
    """Coerce one raw parameter according to the column's value kind."""
    return _COERCERS[column.value_kind](raw, tz)


# =============================================================================
# Row Builders
# =============================================================================

def build_for_insert(
    columns: Iterable[DataSetColumn],
    raw_params: Mapping[str, Any],
    tz: tzinfo | None = None,
) -> Row:
    """
    Build a new row from request parameters.

    Args:
        columns: The dataset's column schema
        raw_params: Request parameters keyed "columnId_<id>"
        tz: Local timezone for date columns (defaults to settings)

    Returns:
        Row with every Value column populated and row_id unset

    Raises:
        InvalidInputError: If the dataset has any remote column
    """
    columns = list(columns)

    if any(c.column_kind == ColumnKind.REMOTE for c in columns):
        raise InvalidInputError(
            "Cannot add new rows to remote dataSet",
            field="dataSetColumnTypeId",
        )

    fields: dict[str, FieldValue] = {}
    for column in columns:
        if not column.accepts_input:
            continue
        fields[column.heading] = coerce_value(column, raw_params.get(column.param_name), tz)

    return Row(fields=fields)


def build_for_update(
    columns: Iterable[DataSetColumn],
    existing_row: Row,
    raw_params: Mapping[str, Any],
    tz: tzinfo | None = None,
) -> Row:
    """
    Merge request parameters into an existing row.

    Columns whose parameter is absent keep their stored value verbatim
    (dates are not re-parsed). Present parameters are coerced as on insert.

    Raises:
        InvalidInputError: If the dataset has no Value columns to edit
    """
    value_columns = [c for c in columns if c.accepts_input]

    if not value_columns:
        raise InvalidInputError(
            "Cannot edit data of remote columns",
            field="dataSetColumnTypeId",
        )

    fields = dict(existing_row.fields)
    for column in value_columns:
        raw = raw_params.get(column.param_name)
        if raw is None:
            continue

        fields[column.heading] = coerce_value(column, raw, tz)
        logger.debug(
            f"Column {column.heading}: {existing_row.fields.get(column.heading)!r} -> {fields[column.heading]!r}"
        )

    return Row(row_id=existing_row.row_id, fields=fields)
