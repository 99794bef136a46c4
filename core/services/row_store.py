# =============================================================================
# core/services/row_store.py - DataSet Row Storage
# =============================================================================
# Defines the contract the API needs from a row store, and the Supabase
# implementation of it.
#
# Tables:
#   datasets            (id, name, description, owner_id, is_remote,
#                        last_data_edit, last_viewed_at)
#   dataset_columns     (id, dataset_id, heading, column_kind, value_kind, ...)
#   dataset_permissions (dataset_id, user_id, can_edit)
#   dataset_rows        (id, dataset_id, fields jsonb)
#
# Grid queries go through the "dataset_rows_query" database function, which
# applies the filter expression and ORDER BY against the JSON fields and
# returns each row with a "total_count" window column.
# =============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from lib.supabase_client import SupabaseClient, SupabaseClientError, is_no_rows_error
from core.models.dataset import DataSet, DataSetColumn, GridQuerySpec, Row, RowPage

logger = logging.getLogger(__name__)

GRID_QUERY_FUNCTION = "dataset_rows_query"


class DatasetRowStore(Protocol):
    """Row storage operations used by the dataset data endpoints."""

    def get_dataset(self, dataset_id: int) -> DataSet | None: ...

    def get_row(self, dataset_id: int, row_id: int) -> Row | None: ...

    def query(self, dataset_id: int, spec: GridQuerySpec) -> RowPage: ...

    def insert_row(self, dataset_id: int, row: Row) -> int: ...

    def update_row(self, dataset_id: int, row_id: int, row: Row) -> None: ...

    def delete_row(self, dataset_id: int, row_id: int) -> None: ...

    def save_dataset(self, dataset: DataSet, validate: bool = True, save_columns: bool = True) -> None: ...

    def set_active(self, dataset_id: int) -> None: ...


def _column_from_record(record: dict[str, Any]) -> DataSetColumn:
    return DataSetColumn(
        column_id=record["id"],
        heading=record["heading"],
        column_kind=record.get("column_kind") or "value",
        value_kind=record.get("value_kind") or "string",
        column_order=record.get("column_order") or 0,
        list_content=record.get("list_content"),
        tooltip=record.get("tooltip"),
        is_required=bool(record.get("is_required")),
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseRowStore:
    """
    DatasetRowStore backed by Supabase tables.

    Holds no state of its own; each call is a single query.
    """

    def get_dataset(self, dataset_id: int) -> DataSet | None:
        """Load a dataset with its columns and editor list."""
        record = SupabaseClient.fetch_dataset(dataset_id)
        if not record:
            return None

        columns = [_column_from_record(c) for c in SupabaseClient.fetch_dataset_columns(dataset_id)]

        return DataSet(
            dataset_id=record["id"],
            name=record["name"],
            description=record.get("description"),
            owner_id=record.get("owner_id"),
            editor_ids=SupabaseClient.fetch_dataset_editor_ids(dataset_id),
            is_remote=bool(record.get("is_remote")),
            last_data_edit=record.get("last_data_edit"),
            columns=columns,
        )

    def get_row(self, dataset_id: int, row_id: int) -> Row | None:
        client = SupabaseClient.get_client()

        try:
            response = (
                client.table("dataset_rows")
                .select("id, fields")
                .eq("dataset_id", dataset_id)
                .eq("id", row_id)
                .single()
                .execute()
            )
        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch row: {e}",
                code="FETCH_ROW_FAILED",
                details={"dataset_id": dataset_id, "row_id": row_id}
            )

        if not response.data:
            return None
        return Row(row_id=response.data["id"], fields=response.data.get("fields") or {})

    def query(self, dataset_id: int, spec: GridQuerySpec) -> RowPage:
        """
        Run a grid query.

        Raises:
            SupabaseClientError: If the filter or order is rejected
        """
        client = SupabaseClient.get_client()

        params = {
            "p_dataset_id": dataset_id,
            "p_filter": spec.filter_expression or None,
            "p_order": spec.order_by or None,
            "p_start": spec.offset,
            "p_size": spec.limit,
        }

        try:
            response = client.rpc(GRID_QUERY_FUNCTION, params).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to query dataset rows: {e}",
                code="QUERY_ROWS_FAILED",
                suggestion="Check the filter expression references existing columns",
                details={"dataset_id": dataset_id, "filter": spec.filter_expression}
            )

        records = response.data or []
        rows = [Row(row_id=r["id"], fields=r.get("fields") or {}) for r in records]
        total = records[0].get("total_count", len(records)) if records else 0

        logger.debug(f"Grid query on dataset {dataset_id} returned {len(rows)} of {total} rows")
        return RowPage(rows=rows, total_count=total)

    def insert_row(self, dataset_id: int, row: Row) -> int:
        """Insert a row and return the id the database assigned."""
        client = SupabaseClient.get_client()

        try:
            response = (
                client.table("dataset_rows")
                .insert({"dataset_id": dataset_id, "fields": row.fields})
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert row: {e}",
                code="INSERT_ROW_FAILED",
                details={"dataset_id": dataset_id}
            )

        if not response.data:
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA",
                details={"dataset_id": dataset_id}
            )

        row_id = response.data[0]["id"]
        logger.info(f"Inserted row {row_id} into dataset {dataset_id}")
        return row_id

    def update_row(self, dataset_id: int, row_id: int, row: Row) -> None:
        client = SupabaseClient.get_client()

        try:
            (
                client.table("dataset_rows")
                .update({"fields": row.fields})
                .eq("dataset_id", dataset_id)
                .eq("id", row_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update row: {e}",
                code="UPDATE_ROW_FAILED",
                details={"dataset_id": dataset_id, "row_id": row_id}
            )

        logger.info(f"Updated row {row_id} in dataset {dataset_id}")

    def delete_row(self, dataset_id: int, row_id: int) -> None:
        client = SupabaseClient.get_client()

        try:
            (
                client.table("dataset_rows")
                .delete()
                .eq("dataset_id", dataset_id)
                .eq("id", row_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete row: {e}",
                code="DELETE_ROW_FAILED",
                details={"dataset_id": dataset_id, "row_id": row_id}
            )

        logger.info(f"Deleted row {row_id} from dataset {dataset_id}")

    def save_dataset(self, dataset: DataSet, validate: bool = True, save_columns: bool = True) -> None:
        """
        Persist the dataset record and stamp it as edited now.

        Row endpoints pass validate=False, save_columns=False so that only
        the last-edit timestamp changes.
        """
        if validate:
            headings = [c.heading for c in dataset.columns]
            if len(headings) != len(set(headings)):
                raise ValueError(f"Duplicate column headings in dataset {dataset.dataset_id}")

        client = SupabaseClient.get_client()

        try:
            if save_columns:
                (
                    client.table("dataset_columns")
                    .upsert([
                        {"id": c.column_id, "dataset_id": dataset.dataset_id, **c.model_dump(
                            mode="json", exclude={"column_id"}
                        )}
                        for c in dataset.columns
                    ])
                    .execute()
                )

            (
                client.table("datasets")
                .update({"last_data_edit": _now()})
                .eq("id", dataset.dataset_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to save dataset: {e}",
                code="SAVE_DATASET_FAILED",
                details={"dataset_id": dataset.dataset_id}
            )

    def set_active(self, dataset_id: int) -> None:
        """Record that the dataset was just viewed."""
        client = SupabaseClient.get_client()

        try:
            (
                client.table("datasets")
                .update({"last_viewed_at": _now()})
                .eq("id", dataset_id)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to mark dataset active: {e}",
                code="SET_ACTIVE_FAILED",
                details={"dataset_id": dataset_id}
            )
