# =============================================================================
# core/models/dataset.py - DataSet Schemas
# =============================================================================
# These models describe a user-defined dataset and its rows:
# - DataSetColumn: One column of a dataset (heading, column kind, value kind)
# - DataSet: The dataset aggregate loaded for a single request
# - Row: One record, keyed by row_id, one field per column heading
# - GridQuerySpec: Normalized filter/sort/paging for a grid request
# - RowPage / GridQueryFailure: Outcome of the grid query stage
# - ResponseState: The state object every endpoint returns
# =============================================================================

import re
from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# Field values a row can hold: strings, numbers, ISO-local date strings,
# library media ids, or nothing
FieldValue = str | float | int | None

# Headings matching this can appear unquoted in PostgreSQL
_PLAIN_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

# PostgreSQL reserved key words: never valid as bare column names
_RESERVED_WORDS = frozenset({
    "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
    "asymmetric", "authorization", "binary", "both", "case", "cast", "check",
    "collate", "collation", "column", "concurrently", "constraint", "create",
    "cross", "current_catalog", "current_date", "current_role",
    "current_schema", "current_time", "current_timestamp", "current_user",
    "default", "deferrable", "desc", "distinct", "do", "else", "end",
    "except", "false", "fetch", "for", "foreign", "freeze", "from", "full",
    "grant", "group", "having", "ilike", "in", "initially", "inner",
    "intersect", "into", "is", "isnull", "join", "lateral", "leading",
    "left", "like", "limit", "localtime", "localtimestamp", "natural", "not",
    "notnull", "null", "offset", "on", "only", "or", "order", "outer",
    "overlaps", "placing", "primary", "references", "returning", "right",
    "select", "session_user", "similar", "some", "symmetric", "system_user",
    "table", "tablesample", "then", "to", "trailing", "true", "union",
    "unique", "user", "using", "variadic", "verbose", "when", "where",
    "window", "with",
})


def quote_identifier(heading: str) -> str:
    """
    Render a column heading as a PostgreSQL identifier.

    Plain lowercase headings stay bare; anything else is double-quoted
    with embedded quotes doubled.

    Example:
        quote_identifier("city")        # city
        quote_identifier("First Name")  # "First Name"
    """
    if _PLAIN_IDENTIFIER.match(heading) and heading not in _RESERVED_WORDS:
        return heading
    return '"' + heading.replace('"', '""') + '"'


class ColumnKind(str, Enum):
    """
    Where a column's data comes from.

    - value: entered directly by users
    - formula: derived by the store, never accepts input
    - remote: populated by an external feed, read-only here
    """
    VALUE = "value"
    FORMULA = "formula"
    REMOTE = "remote"


class ValueKind(str, Enum):
    """Declared data type of a column; drives input coercion."""
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    IMAGE = "image"


class SortDirection(str, Enum):
    """Grid sort direction."""
    ASC = "asc"
    DESC = "desc"


class DataSetColumn(BaseModel):
    """
    One column of a dataset.

    Example:
        {
            "column_id": 4,
            "heading": "City",
            "column_kind": "value",
            "value_kind": "string"
        }
    """

    model_config = ConfigDict(frozen=True)

    column_id: int = Field(..., ge=1, description="Stable column identifier")

    # Used as the field key in every row
    heading: str = Field(..., min_length=1, max_length=255, description="Column heading")

    column_kind: ColumnKind = Field(
        default=ColumnKind.VALUE,
        description="Value, formula or remote"
    )

    value_kind: ValueKind = Field(
        default=ValueKind.STRING,
        description="String, number, date or image"
    )

    column_order: int = Field(default=0, description="Display position")

    # Comma separated list of permitted values, shown as a dropdown on forms
    list_content: str | None = Field(default=None)

    tooltip: str | None = Field(default=None)

    is_required: bool = Field(default=False)

    @property
    def param_name(self) -> str:
        """Request parameter that carries this column's value on add/edit."""
        return f"columnId_{self.column_id}"

    @property
    def accepts_input(self) -> bool:
        return self.column_kind == ColumnKind.VALUE


class DataSet(BaseModel):
    """
    A dataset and its column schema.

    Loaded fresh for every request; never cached between requests.
    """

    dataset_id: int = Field(..., ge=1)
    name: str = Field(..., min_length=1)
    description: str | None = None
    owner_id: UUID | None = None

    # Users granted edit permission besides the owner
    editor_ids: list[UUID] = Field(default_factory=list)

    is_remote: bool = False
    last_data_edit: datetime | None = None
    columns: list[DataSetColumn] = Field(default_factory=list)


class Row(BaseModel):
    """
    One record in a dataset.

    Example:
        {
            "row_id": 12,
            "fields": {"Name": "Alice", "Age": 31.0, "Joined": "2024-01-15 09:00:00"}
        }
    """

    row_id: int | None = Field(
        default=None,
        description="Assigned by the store on insert"
    )

    fields: dict[str, FieldValue] = Field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        """Flatten into the grid/form shape: {"id": row_id, heading: value, ...}."""
        return {"id": self.row_id, **self.fields}


class SortClause(BaseModel):
    """One (heading, direction) pair of a grid sort order."""

    model_config = ConfigDict(frozen=True)

    heading: str
    direction: SortDirection = SortDirection.ASC

    def to_sql(self) -> str:
        return f"{quote_identifier(self.heading)} {self.direction.value.upper()}"


class GridQuerySpec(BaseModel):
    """
    Normalized query for a grid listing.

    Built fresh for each grid request, never persisted.
    An empty filter_expression or sort_order means "store default".
    """

    filter_expression: str = Field(default="")
    sort_order: list[SortClause] = Field(default_factory=list)
    offset: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=0)

    @property
    def order_by(self) -> str:
        """Sort order as a comma separated ORDER BY body."""
        return ", ".join(clause.to_sql() for clause in self.sort_order)


class RowPage(BaseModel):
    """A page of rows and the total count before paging."""

    kind: Literal["page"] = "page"
    rows: list[Row] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)


class GridQueryFailure(BaseModel):
    """The store could not run a grid query; rendered as an empty grid."""

    kind: Literal["failure"] = "failure"
    message: str


GridQueryResult = RowPage | GridQueryFailure


class ResponseState(BaseModel):
    """
    State object returned by every dataset data endpoint.

    Example:
        {
            "httpStatus": 201,
            "message": "Added Row",
            "id": 12,
            "data": {"id": 12}
        }
    """

    model_config = ConfigDict(populate_by_name=True)

    http_status: int = Field(default=200, alias="httpStatus")
    message: str | None = None
    id: int | None = None
    data: Any = None
    records_total: int | None = Field(default=None, alias="recordsTotal")

    # Name of the form/page the UI should show for this state
    template: str | None = None

    # Inline error for grids whose query failed
    error: str | None = None

    def to_response(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
