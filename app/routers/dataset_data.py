# =============================================================================
# app/routers/dataset_data.py - DataSet Row Endpoints
# =============================================================================
# Row CRUD and grid listing for user-defined datasets.
# All endpoints require authentication and edit permission on the dataset.
#
# Add/edit parameters are keyed "columnId_<id>" and may be sent as form data
# or as a JSON object.
# =============================================================================

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Request, Response
from fastapi.responses import JSONResponse

from app.auth import get_current_user, AuthUser
from app.dependencies import DataSetDataServiceDep
from app.exceptions import InvalidInputError
from core.models.dataset import ResponseState

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

DataSetId = Annotated[int, Path(ge=1, description="The DataSet ID")]
RowId = Annotated[int, Path(ge=1, description="The Row ID")]


# =============================================================================
# Helpers
# =============================================================================

async def request_params(request: Request) -> dict[str, Any]:
    """
    Collect query string and body parameters into one dict.

    Body values override query string values with the same name.
    """
    params: dict[str, Any] = dict(request.query_params)
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise InvalidInputError("Request body is not valid JSON")
        if not isinstance(body, dict):
            raise InvalidInputError("Request body must be a JSON object")
        params.update(body)

    elif content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        params.update({key: value for key, value in form.items() if isinstance(value, str)})

    return params


def render(state: ResponseState) -> Response:
    """Turn a ResponseState into an HTTP response with its status code."""
    if state.http_status == 204:
        return Response(status_code=204)
    return JSONResponse(status_code=state.http_status, content=state.to_response())


# =============================================================================
# Page and Grid
# =============================================================================

@router.get("/dataset/data/{dataset_id}")
async def display_page(
    dataset_id: DataSetId,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """
    Data entry page for a dataset.

    Returns the dataset and its columns for the page shell.
    """
    return render(service.display_page(dataset_id, user))


@router.get("/dataset/data/{dataset_id}/grid")
async def grid(
    dataset_id: DataSetId,
    request: Request,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """
    Get data for a dataset.

    Filter by passing column headings as query parameters (substring match
    on string columns), or replace the filter entirely with `filter`.
    Sort with DataTables `order[i][column]`/`order[i][dir]` + `columns[i][data]`
    or `sort=Heading,-Other`. Page with `start` and `length`.
    Columns headed `start`, `length`, `sort`, `filter` or `draw` cannot be
    filtered by name; use `filter` for them.

    A query the store rejects still returns 200 with no rows and an `error`.
    """
    return render(service.grid(dataset_id, user, dict(request.query_params)))


# =============================================================================
# Forms
# =============================================================================

@router.get("/dataset/data/form/add/{dataset_id}")
async def add_form(
    dataset_id: DataSetId,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """Add row form."""
    return render(service.add_form(dataset_id, user))


@router.get("/dataset/data/form/edit/{dataset_id}/{row_id}")
async def edit_form(
    dataset_id: DataSetId,
    row_id: RowId,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """
    Edit row form.

    The row carries an `__images` map of columnId -> media record for
    image columns whose library item still exists.
    """
    return render(service.edit_form(dataset_id, row_id, user))


@router.get("/dataset/data/form/delete/{dataset_id}/{row_id}")
async def delete_form(
    dataset_id: DataSetId,
    row_id: RowId,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """Delete row confirmation form."""
    return render(service.delete_form(dataset_id, row_id, user))


# =============================================================================
# Row Mutations
# =============================================================================

@router.post("/dataset/data/{dataset_id}", status_code=201)
async def add_row(
    dataset_id: DataSetId,
    request: Request,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """
    Add a row of data to a dataset.

    Send one `columnId_<id>` parameter per value column.
    Datasets with remote columns cannot take new rows (422).
    """
    params = await request_params(request)
    return render(service.add_row(dataset_id, user, params))


@router.put("/dataset/data/{dataset_id}/{row_id}")
async def edit_row(
    dataset_id: DataSetId,
    row_id: RowId,
    request: Request,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """
    Edit a row of data.

    Only the `columnId_<id>` parameters sent are changed; every other
    column keeps its current value.
    """
    params = await request_params(request)
    return render(service.edit_row(dataset_id, row_id, user, params))


@router.delete("/dataset/data/{dataset_id}/{row_id}", status_code=204)
async def delete_row(
    dataset_id: DataSetId,
    row_id: RowId,
    service: DataSetDataServiceDep,
    user: AuthUser = Depends(get_current_user),
):
    """Delete a row of data."""
    return render(service.delete_row(dataset_id, row_id, user))
