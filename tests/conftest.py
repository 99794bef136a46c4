# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides an in-memory row store standing in for Supabase
# - Provides a TestClient wired to that store and a fixed user
# =============================================================================

import os
from uuid import UUID

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ["LOCAL_TIMEZONE"] = "Europe/London"
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from app.auth import AuthUser, get_current_user
from app.dependencies import get_dataset_data_service
from app.main import app
from core.models.dataset import (
    ColumnKind,
    DataSet,
    DataSetColumn,
    GridQuerySpec,
    Row,
    RowPage,
    ValueKind,
)
from core.services.dataset_data_service import DataSetDataService
from app.exceptions import MediaNotFoundError

OWNER_ID = UUID("11111111-1111-1111-1111-111111111111")
STRANGER_ID = UUID("22222222-2222-2222-2222-222222222222")


# =============================================================================
# In-memory Store
# =============================================================================

class InMemoryRowStore:
    """
    Row store kept in dicts, recording every call it receives.

    Set `query_error` to make grid queries fail.
    """

    def __init__(self, datasets: list[DataSet] | None = None):
        self.datasets = {d.dataset_id: d for d in datasets or []}
        self.rows: dict[int, dict[int, Row]] = {d: {} for d in self.datasets}
        self.calls: list[tuple] = []
        self.queries: list[GridQuerySpec] = []
        self.query_error: Exception | None = None
        self._next_id = 1

    def add_existing_row(self, dataset_id: int, fields: dict) -> Row:
        row = Row(row_id=self._next_id, fields=fields)
        self.rows[dataset_id][row.row_id] = row
        self._next_id += 1
        return row

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("insert_row", "update_row", "delete_row", "save_dataset")]

    def get_dataset(self, dataset_id):
        return self.datasets.get(dataset_id)

    def get_row(self, dataset_id, row_id):
        return self.rows.get(dataset_id, {}).get(row_id)

    def query(self, dataset_id, spec):
        self.queries.append(spec)
        if self.query_error:
            raise self.query_error
        rows = list(self.rows[dataset_id].values())
        start = spec.offset or 0
        end = start + spec.limit if spec.limit is not None else None
        return RowPage(rows=rows[start:end], total_count=len(rows))

    def insert_row(self, dataset_id, row):
        self.calls.append(("insert_row", dataset_id, row))
        stored = Row(row_id=self._next_id, fields=row.fields)
        self.rows[dataset_id][stored.row_id] = stored
        self._next_id += 1
        return stored.row_id

    def update_row(self, dataset_id, row_id, row):
        self.calls.append(("update_row", dataset_id, row_id, row))
        self.rows[dataset_id][row_id] = Row(row_id=row_id, fields=row.fields)

    def delete_row(self, dataset_id, row_id):
        self.calls.append(("delete_row", dataset_id, row_id))
        del self.rows[dataset_id][row_id]

    def save_dataset(self, dataset, validate=True, save_columns=True):
        self.calls.append(("save_dataset", dataset.dataset_id, validate, save_columns))

    def set_active(self, dataset_id):
        self.calls.append(("set_active", dataset_id))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def name_column():
    """A single string value column, heading "Name"."""
    return DataSetColumn(column_id=1, heading="Name")


@pytest.fixture
def sample_columns():
    """One value column of every value kind."""
    return [
        DataSetColumn(column_id=1, heading="Name", value_kind=ValueKind.STRING),
        DataSetColumn(column_id=2, heading="Price", value_kind=ValueKind.NUMBER),
        DataSetColumn(column_id=3, heading="Starts", value_kind=ValueKind.DATE),
        DataSetColumn(column_id=4, heading="Poster", value_kind=ValueKind.IMAGE),
    ]


@pytest.fixture
def remote_column():
    return DataSetColumn(
        column_id=9,
        heading="Feed",
        column_kind=ColumnKind.REMOTE,
        value_kind=ValueKind.STRING,
    )


@pytest.fixture
def owner():
    return AuthUser(id=OWNER_ID, email="owner@example.com")


@pytest.fixture
def stranger():
    return AuthUser(id=STRANGER_ID, email="stranger@example.com")


@pytest.fixture
def people_dataset(name_column):
    """DataSet 1: one "Name" string column, owned by OWNER_ID."""
    return DataSet(dataset_id=1, name="People", owner_id=OWNER_ID, columns=[name_column])


@pytest.fixture
def events_dataset(sample_columns):
    """DataSet 2: one column of every value kind, owned by OWNER_ID."""
    return DataSet(dataset_id=2, name="Events", owner_id=OWNER_ID, columns=sample_columns)


@pytest.fixture
def remote_dataset(name_column, remote_column):
    """DataSet 3: a value column and a remote column."""
    return DataSet(
        dataset_id=3,
        name="Weather",
        owner_id=OWNER_ID,
        is_remote=True,
        columns=[name_column, remote_column],
    )


@pytest.fixture
def feed_only_dataset(remote_column):
    """DataSet 4: only remote columns."""
    return DataSet(dataset_id=4, name="Feed", owner_id=OWNER_ID, is_remote=True, columns=[remote_column])


@pytest.fixture
def store(people_dataset, events_dataset, remote_dataset, feed_only_dataset):
    return InMemoryRowStore([people_dataset, events_dataset, remote_dataset, feed_only_dataset])


@pytest.fixture
def media_library():
    """Media ids the fake library can resolve."""
    return {7: {"id": 7, "name": "poster.png", "media_type": "image"}}


@pytest.fixture
def service(store, media_library):
    def resolve_media(media_id):
        if media_id not in media_library:
            raise MediaNotFoundError(media_id)
        return media_library[media_id]

    return DataSetDataService(store=store, resolve_media=resolve_media)


@pytest.fixture
def client(service, owner):
    """TestClient authenticated as the dataset owner."""
    app.dependency_overrides[get_dataset_data_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: owner
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stranger_client(service, stranger):
    """TestClient authenticated as a user with no access."""
    app.dependency_overrides[get_dataset_data_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: stranger
    yield TestClient(app)
    app.dependency_overrides.clear()
