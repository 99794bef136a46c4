# =============================================================================
# core/services/dataset_data_service.py - DataSet Row Business Logic
# =============================================================================
# Orchestrates every dataset data request:
#   1. Resolve the dataset (404 if missing)
#   2. Check the caller can edit it (403 otherwise)
#   3. Build the row / grid query and call the row store
#   4. Shape the ResponseState returned to the client
#
# Mutations are two sequential store calls (change the row, then stamp the
# dataset as edited) with no rollback between them.
# =============================================================================

import logging
from collections.abc import Callable, Mapping
from typing import Any

from app.auth.models import AuthUser
from app.config import settings
from app.exceptions import (
    AccessDeniedError,
    DataSetNotFoundError,
    MediaNotFoundError,
    RowNotFoundError,
)
from core.models.dataset import (
    DataSet,
    GridQueryFailure,
    GridQueryResult,
    GridQuerySpec,
    ResponseState,
    Row,
    RowPage,
    ValueKind,
)
from core.services.grid_query import build_grid_query
from core.services.media_service import MediaService
from core.services.row_codec import build_for_insert, build_for_update, parse_int_lenient
from core.services.row_store import DatasetRowStore, SupabaseRowStore
from lib.supabase_client import SupabaseClientError

logger = logging.getLogger(__name__)

# Templates the UI shows for each state
PAGE_TEMPLATE = "dataset-dataentry-page"
GRID_TEMPLATE = "grid"
ADD_FORM_TEMPLATE = "dataset-data-form-add"
EDIT_FORM_TEMPLATE = "dataset-data-form-edit"
DELETE_FORM_TEMPLATE = "dataset-data-form-delete"


def can_edit(user: AuthUser, dataset: DataSet) -> bool:
    """Owners, granted editors and super admins may edit a dataset."""
    if user.role and user.role == settings.SUPER_ADMIN_ROLE:
        return True
    if dataset.owner_id is not None and dataset.owner_id == user.id:
        return True
    return user.id in dataset.editor_ids


class DataSetDataService:
    """
    Service for dataset row operations.

    Provides a clean interface between API routes and the row store.
    Holds no per-request state; one instance can serve many requests.
    """

    def __init__(
        self,
        store: DatasetRowStore | None = None,
        resolve_media: Callable[[int], dict[str, Any]] | None = None,
    ):
        self.store = store or SupabaseRowStore()
        self.resolve_media = resolve_media or MediaService.get_by_id

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_editable_dataset(self, dataset_id: int, user: AuthUser) -> DataSet:
        """
        Load a dataset the user is allowed to edit.

        Raises:
            DataSetNotFoundError: If the dataset doesn't exist
            AccessDeniedError: If the user cannot edit it
        """
        dataset = self.store.get_dataset(dataset_id)

        if dataset is None:
            raise DataSetNotFoundError(dataset_id)

        if not can_edit(user, dataset):
            logger.info(f"User {user.id} denied edit access to dataset {dataset_id}")
            raise AccessDeniedError(dataset_id)

        return dataset

    def get_row(self, dataset: DataSet, row_id: int) -> Row:
        """
        Raises:
            RowNotFoundError: If the row doesn't exist
        """
        row = self.store.get_row(dataset.dataset_id, row_id)

        if row is None:
            raise RowNotFoundError(dataset.dataset_id, row_id)

        return row

    # -------------------------------------------------------------------------
    # Page and Forms
    # -------------------------------------------------------------------------

    def display_page(self, dataset_id: int, user: AuthUser) -> ResponseState:
        """Data entry page shell for a dataset."""
        dataset = self.get_editable_dataset(dataset_id, user)

        return ResponseState(
            template=PAGE_TEMPLATE,
            data={"dataSet": dataset.model_dump(mode="json")},
        )

    def add_form(self, dataset_id: int, user: AuthUser) -> ResponseState:
        dataset = self.get_editable_dataset(dataset_id, user)

        return ResponseState(
            template=ADD_FORM_TEMPLATE,
            data={"dataSet": dataset.model_dump(mode="json")},
        )

    def edit_form(self, dataset_id: int, row_id: int, user: AuthUser) -> ResponseState:
        """
        Row edit form, with the library images the row references.

        Images that no longer exist are left out rather than failing the form.
        """
        dataset = self.get_editable_dataset(dataset_id, user)
        row = self.get_row(dataset, row_id)

        record = row.to_record()
        record["__images"] = self.resolve_row_images(dataset, row)

        return ResponseState(
            template=EDIT_FORM_TEMPLATE,
            data={"dataSet": dataset.model_dump(mode="json"), "row": record},
        )

    def delete_form(self, dataset_id: int, row_id: int, user: AuthUser) -> ResponseState:
        dataset = self.get_editable_dataset(dataset_id, user)
        row = self.get_row(dataset, row_id)

        return ResponseState(
            template=DELETE_FORM_TEMPLATE,
            data={"dataSet": dataset.model_dump(mode="json"), "row": row.to_record()},
        )

    def resolve_row_images(self, dataset: DataSet, row: Row) -> dict[str, dict[str, Any]]:
        """Map columnId -> media record for each image column with a live reference."""
        images: dict[str, dict[str, Any]] = {}

        for column in dataset.columns:
            if column.value_kind != ValueKind.IMAGE:
                continue

            media_id = parse_int_lenient(row.fields.get(column.heading))
            if media_id is None:
                continue

            try:
                images[str(column.column_id)] = self.resolve_media(media_id)
            except MediaNotFoundError:
                logger.debug(
                    f"DataSet {dataset.dataset_id} references an image that no longer exists. ID is {media_id}"
                )

        return images

    # -------------------------------------------------------------------------
    # Grid
    # -------------------------------------------------------------------------

    def run_grid_query(self, dataset: DataSet, spec: GridQuerySpec) -> GridQueryResult:
        """
        Query the store, turning a failure into a GridQueryFailure value.

        A broken filter must not take the whole page down.
        """
        try:
            return self.store.query(dataset.dataset_id, spec)
        except Exception as e:
            message = f"Error getting DataSet data, failed with following message: {e}"
            logger.error(message)
            logger.debug("Grid query failure", exc_info=True)
            return GridQueryFailure(message=message)

    def grid(self, dataset_id: int, user: AuthUser, params: Mapping[str, Any]) -> ResponseState:
        """
        Filtered, sorted, paged rows of a dataset.

        Args:
            params: Filters named after column headings, DataTables
                order/columns/start/length parameters, optional "sort"
                and an optional "filter" override
        """
        dataset = self.get_editable_dataset(dataset_id, user)

        spec = build_grid_query(
            dataset.columns,
            filter_params=params,
            sort_params=params,
            paging_params=params,
            filter_override=params.get("filter"),
            case_sensitive=settings.GRID_FILTER_CASE_SENSITIVE,
        )
        result = self.run_grid_query(dataset, spec)

        if isinstance(result, RowPage):
            state = ResponseState(
                template=GRID_TEMPLATE,
                data=[row.to_record() for row in result.rows],
                records_total=result.total_count,
            )
        else:
            state = ResponseState(template=GRID_TEMPLATE, data=[], error=result.message)

        try:
            self.store.set_active(dataset_id)
        except SupabaseClientError as e:
            logger.warning(f"Could not mark dataset {dataset_id} active: {e}")

        return state

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _mark_modified(self, dataset: DataSet) -> None:
        self.store.save_dataset(dataset, validate=False, save_columns=False)

    def add_row(self, dataset_id: int, user: AuthUser, params: Mapping[str, Any]) -> ResponseState:
        """
        Add a row built from "columnId_<id>" parameters.

        Raises:
            InvalidInputError: If the dataset has remote columns
        """
        dataset = self.get_editable_dataset(dataset_id, user)

        row = build_for_insert(dataset.columns, params)
        row_id = self.store.insert_row(dataset_id, row)
        self._mark_modified(dataset)

        return ResponseState(
            http_status=201,
            message="Added Row",
            id=row_id,
            data={"id": row_id},
        )

    def edit_row(
        self,
        dataset_id: int,
        row_id: int,
        user: AuthUser,
        params: Mapping[str, Any],
    ) -> ResponseState:
        """
        Merge parameters into an existing row; omitted columns keep their value.

        Raises:
            RowNotFoundError: If the row doesn't exist
            InvalidInputError: If the dataset has no value columns
        """
        dataset = self.get_editable_dataset(dataset_id, user)
        existing = self.get_row(dataset, row_id)

        row = build_for_update(dataset.columns, existing, params)
        self.store.update_row(dataset_id, row_id, row)
        self._mark_modified(dataset)

        return ResponseState(
            message="Edited Row",
            id=row_id,
            data={"id": row_id},
        )

    def delete_row(self, dataset_id: int, row_id: int, user: AuthUser) -> ResponseState:
        """
        Raises:
            RowNotFoundError: If the row doesn't exist
        """
        dataset = self.get_editable_dataset(dataset_id, user)
        self.get_row(dataset, row_id)

        self.store.delete_row(dataset_id, row_id)
        self._mark_modified(dataset)

        return ResponseState(
            http_status=204,
            message="Deleted Row",
            id=row_id,
        )
