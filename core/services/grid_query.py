# =============================================================================
# core/services/grid_query.py - Grid Query Construction
# =============================================================================
# Builds a GridQuerySpec (filter expression, sort order, paging) from the raw
# query parameters of a grid request.
#
# The grid speaks the DataTables parameter dialect:
#   start / length                       -> offset / limit
#   order[i][column], order[i][dir]      -> sort clauses, resolved through
#   columns[i][data]                        the column's heading
# A compact "sort=Heading,-Other" parameter is accepted as well.
#
# Nothing here raises: malformed input degrades to no filter, no sort,
# no paging.
# =============================================================================

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from core.models.dataset import (
    DataSetColumn,
    GridQuerySpec,
    SortClause,
    SortDirection,
    ValueKind,
    quote_identifier,
)

logger = logging.getLogger(__name__)

_ORDER_KEY = re.compile(r"^order\[(\d+)\]\[column\]$")

# Grid parameters that are never read as column filters
GRID_CONTROL_PARAMS = frozenset({"start", "length", "sort", "filter", "draw"})


# =============================================================================
# Filter
# =============================================================================

def _quote_like(value: str) -> str:
    """Escape LIKE wildcards (backslash is PostgreSQL's default LIKE escape) and quotes."""
    value = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return value.replace("'", "''")


def build_filter_expression(
    columns: Iterable[DataSetColumn],
    filter_params: Mapping[str, Any],
    case_sensitive: bool = True,
) -> str:
    """
    Build an AND-joined substring filter over Value/String columns.

    Headings that collide with a grid control parameter (start, length,
    sort, filter, draw) are never filtered; their value belongs to paging,
    sorting or the override.

    Example:
        build_filter_expression([city_column], {"city": "par"})
        # "city LIKE '%par%'"
    """
    operator = "LIKE" if case_sensitive else "ILIKE"
    clauses = []

    for column in columns:
        if not column.accepts_input or column.value_kind != ValueKind.STRING:
            continue

        if column.heading in GRID_CONTROL_PARAMS:
            logger.debug(f"Column {column.heading!r} shares a grid parameter name; not filtered")
            continue

        value = filter_params.get(column.heading)
        if value is None or str(value).strip() == "":
            continue

        clauses.append(
            f"{quote_identifier(column.heading)} {operator} '%{_quote_like(str(value).strip())}%'"
        )

    return " AND ".join(clauses)


# =============================================================================
# Sort
# =============================================================================

def _direction(value: Any) -> SortDirection:
    return SortDirection.DESC if str(value).strip().lower() == "desc" else SortDirection.ASC


def parse_sort(
    columns: Iterable[DataSetColumn],
    sort_params: Mapping[str, Any],
) -> list[SortClause]:
    """
    Read the requested sort order, keeping only known headings.

    DataTables "order[i][...]" parameters take precedence over "sort".
    """
    headings = {c.heading for c in columns}
    clauses: list[SortClause] = []

    # DataTables: order[i][column] points at columns[n][data]
    positions = []
    for key in sort_params:
        match = _ORDER_KEY.match(key)
        if match:
            positions.append(int(match.group(1)))

    for position in sorted(positions):
        column_index = sort_params.get(f"order[{position}][column]")
        heading = sort_params.get(f"columns[{column_index}][data]")
        if heading not in headings:
            logger.debug(f"Ignoring sort on unknown column {heading!r}")
            continue
        clauses.append(SortClause(
            heading=heading,
            direction=_direction(sort_params.get(f"order[{position}][dir]", "asc")),
        ))

    if clauses:
        return clauses

    # Compact form: sort=Name,-City
    for part in str(sort_params.get("sort") or "").split(","):
        part = part.strip()
        if not part:
            continue
        direction = SortDirection.DESC if part.startswith("-") else SortDirection.ASC
        heading = part.lstrip("+-").strip()
        if heading not in headings:
            logger.debug(f"Ignoring sort on unknown column {heading!r}")
            continue
        clauses.append(SortClause(heading=heading, direction=direction))

    return clauses


# =============================================================================
# Paging
# =============================================================================

def _non_negative_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return number if number >= 0 else None


def parse_paging(paging_params: Mapping[str, Any]) -> tuple[int | None, int | None]:
    """
    Read (offset, limit) from start/length.

    length=-1 (DataTables "all") and malformed values mean no limit.
    """
    return (
        _non_negative_int(paging_params.get("start")),
        _non_negative_int(paging_params.get("length")),
    )


# =============================================================================
# Grid Query
# =============================================================================

def build_grid_query(
    columns: Iterable[DataSetColumn],
    filter_params: Mapping[str, Any],
    sort_params: Mapping[str, Any] | None = None,
    paging_params: Mapping[str, Any] | None = None,
    filter_override: str | None = None,
    case_sensitive: bool = True,
) -> GridQuerySpec:
    """
    Build the GridQuerySpec for one grid request.

    Args:
        columns: The dataset's column schema
        filter_params: Parameters named after column headings
        sort_params: DataTables order/columns parameters or "sort"
        paging_params: "start" and "length"
        filter_override: Explicit filter that replaces the built one
        case_sensitive: LIKE when true, ILIKE when false

    Returns:
        GridQuerySpec ready for the row store
    """
    columns = list(columns)

    filter_expression = build_filter_expression(columns, filter_params, case_sensitive)
    if filter_override is not None and filter_override.strip():
        filter_expression = filter_override.strip()

    offset, limit = parse_paging(paging_params or {})

    return GridQuerySpec(
        filter_expression=filter_expression,
        sort_order=parse_sort(columns, sort_params or {}),
        offset=offset,
        limit=limit,
    )
