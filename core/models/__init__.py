# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - dataset.py: DataSet, column, row, grid query and response state schemas
#
# These models define the "contract" between API and clients.
# =============================================================================

from .dataset import (
    ColumnKind,
    DataSet,
    DataSetColumn,
    FieldValue,
    GridQueryFailure,
    GridQueryResult,
    GridQuerySpec,
    ResponseState,
    Row,
    RowPage,
    SortClause,
    SortDirection,
    ValueKind,
    quote_identifier,
)

__all__ = [
    "ColumnKind",
    "DataSet",
    "DataSetColumn",
    "FieldValue",
    "GridQueryFailure",
    "GridQueryResult",
    "GridQuerySpec",
    "ResponseState",
    "Row",
    "RowPage",
    "SortClause",
    "SortDirection",
    "ValueKind",
    "quote_identifier",
]
