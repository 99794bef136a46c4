# =============================================================================
# tests/test_row_store.py - Supabase Row Store Tests
# =============================================================================
# This module contains tests for:
# - Grid query rpc parameters and total count handling
# - Row reads, including the "no rows" case
# - Row writes and dataset bookkeeping
# - SupabaseClient lookups that return None when nothing matches
#
# Tests use a mocked Supabase client to avoid database calls.
# =============================================================================

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from core.models.dataset import (
    DataSet,
    DataSetColumn,
    GridQuerySpec,
    Row,
    SortClause,
    SortDirection,
)
from core.services.row_store import GRID_QUERY_FUNCTION, SupabaseRowStore
from lib.supabase_client import SupabaseClient, SupabaseClientError

NO_ROWS = Exception("{'code': 'PGRST116', 'message': 'JSON object requested, multiple (or no) rows returned'}")


def make_query(data=None, error: Exception | None = None) -> MagicMock:
    """A query builder whose chained calls return itself and execute() returns `data`."""
    query = MagicMock()
    for method in ("select", "eq", "single", "order", "insert", "update", "delete", "upsert"):
        getattr(query, method).return_value = query

    if error is not None:
        query.execute.side_effect = error
    else:
        query.execute.return_value = MagicMock(data=data)
    return query


@pytest.fixture
def tables():
    """Table name -> query mock; tests fill in what they need."""
    return {}


@pytest.fixture
def mock_client(tables):
    client = MagicMock()
    client.table.side_effect = lambda name: tables.setdefault(name, make_query())

    with patch.object(SupabaseClient, "get_client", return_value=client):
        yield client


@pytest.fixture
def row_store(mock_client):
    return SupabaseRowStore()


def table_names(client: MagicMock) -> list[str]:
    return [c.args[0] for c in client.table.call_args_list]


# =============================================================================
# Grid Query Tests
# =============================================================================

class TestQuery:
    """Tests for the dataset_rows_query rpc call."""

    def test_rpc_parameters(self, row_store, mock_client):
        mock_client.rpc.return_value = make_query(data=[])
        spec = GridQuerySpec(
            filter_expression="\"First Name\" LIKE '%al%'",
            sort_order=[SortClause(heading="First Name", direction=SortDirection.DESC)],
            offset=10,
            limit=5,
        )

        row_store.query(2, spec)

        mock_client.rpc.assert_called_once_with(GRID_QUERY_FUNCTION, {
            "p_dataset_id": 2,
            "p_filter": "\"First Name\" LIKE '%al%'",
            "p_order": '"First Name" DESC',
            "p_start": 10,
            "p_size": 5,
        })

    def test_empty_spec_sends_nulls(self, row_store, mock_client):
        mock_client.rpc.return_value = make_query(data=[])

        row_store.query(2, GridQuerySpec())

        params = mock_client.rpc.call_args.args[1]
        assert params["p_filter"] is None
        assert params["p_order"] is None
        assert params["p_start"] is None
        assert params["p_size"] is None

    def test_rows_and_total_from_first_record(self, row_store, mock_client):
        mock_client.rpc.return_value = make_query(data=[
            {"id": 4, "fields": {"Name": "Alice"}, "total_count": 37},
            {"id": 9, "fields": {"Name": "Bob"}, "total_count": 37},
        ])

        page = row_store.query(2, GridQuerySpec(limit=2))

        assert [row.row_id for row in page.rows] == [4, 9]
        assert page.rows[0].fields == {"Name": "Alice"}
        assert page.total_count == 37

    def test_no_rows_total_is_zero(self, row_store, mock_client):
        mock_client.rpc.return_value = make_query(data=[])

        page = row_store.query(2, GridQuerySpec())

        assert page.rows == []
        assert page.total_count == 0

    def test_rejected_query_raises(self, row_store, mock_client):
        mock_client.rpc.return_value = make_query(error=Exception("syntax error at or near \"`\""))

        with pytest.raises(SupabaseClientError) as exc_info:
            row_store.query(2, GridQuerySpec(filter_expression="bad"))

        assert exc_info.value.code == "QUERY_ROWS_FAILED"
        assert exc_info.value.details["filter"] == "bad"


# =============================================================================
# Row Read Tests
# =============================================================================

class TestGetRow:
    """Tests for single row reads."""

    def test_found(self, row_store, tables):
        tables["dataset_rows"] = make_query(data={"id": 3, "fields": {"Name": "Alice"}})

        row = row_store.get_row(1, 3)

        assert row == Row(row_id=3, fields={"Name": "Alice"})

    def test_no_rows_is_none(self, row_store, tables):
        tables["dataset_rows"] = make_query(error=NO_ROWS)

        assert row_store.get_row(1, 3) is None

    def test_other_error_raises(self, row_store, tables):
        tables["dataset_rows"] = make_query(error=Exception("connection reset"))

        with pytest.raises(SupabaseClientError) as exc_info:
            row_store.get_row(1, 3)

        assert exc_info.value.code == "FETCH_ROW_FAILED"


class TestGetDataset:
    """Tests for loading a dataset with its columns and editors."""

    def test_assembled(self, row_store, tables):
        tables["datasets"] = make_query(data={
            "id": 2,
            "name": "Events",
            "owner_id": "11111111-1111-1111-1111-111111111111",
            "is_remote": False,
            "last_data_edit": None,
        })
        tables["dataset_columns"] = make_query(data=[
            {"id": 1, "heading": "Name", "column_kind": "value", "value_kind": "string", "column_order": 1},
            {"id": 2, "heading": "Price", "column_kind": "value", "value_kind": "number", "column_order": 2},
        ])
        tables["dataset_permissions"] = make_query(data=[
            {"user_id": "33333333-3333-3333-3333-333333333333"},
        ])

        dataset = row_store.get_dataset(2)

        assert dataset.name == "Events"
        assert [c.heading for c in dataset.columns] == ["Name", "Price"]
        assert str(dataset.editor_ids[0]) == "33333333-3333-3333-3333-333333333333"

    def test_missing_dataset_is_none(self, row_store, tables, mock_client):
        tables["datasets"] = make_query(error=NO_ROWS)

        assert row_store.get_dataset(99) is None
        assert table_names(mock_client) == ["datasets"]


# =============================================================================
# Row Write Tests
# =============================================================================

class TestWrites:
    """Tests for insert, update and delete."""

    def test_insert_returns_new_id(self, row_store, tables):
        tables["dataset_rows"] = make_query(data=[{"id": 12}])

        row_id = row_store.insert_row(1, Row(fields={"Name": "Alice"}))

        assert row_id == 12
        tables["dataset_rows"].insert.assert_called_once_with(
            {"dataset_id": 1, "fields": {"Name": "Alice"}}
        )

    def test_insert_without_data_raises(self, row_store, tables):
        tables["dataset_rows"] = make_query(data=[])

        with pytest.raises(SupabaseClientError) as exc_info:
            row_store.insert_row(1, Row(fields={"Name": "Alice"}))

        assert exc_info.value.code == "INSERT_NO_DATA"

    def test_update_sends_fields(self, row_store, tables):
        row_store.update_row(1, 3, Row(row_id=3, fields={"Name": "Bob"}))

        tables["dataset_rows"].update.assert_called_once_with({"fields": {"Name": "Bob"}})

    def test_delete_failure_raises(self, row_store, tables):
        tables["dataset_rows"] = make_query(error=Exception("permission denied"))

        with pytest.raises(SupabaseClientError) as exc_info:
            row_store.delete_row(1, 3)

        assert exc_info.value.code == "DELETE_ROW_FAILED"


# =============================================================================
# Dataset Bookkeeping Tests
# =============================================================================

class TestSaveDataset:
    """Tests for last-edit stamping and column saves."""

    @pytest.fixture
    def dataset(self):
        return DataSet(dataset_id=1, name="People", columns=[DataSetColumn(column_id=1, heading="Name")])

    def test_mark_modified_skips_columns(self, row_store, mock_client, tables, dataset):
        row_store.save_dataset(dataset, validate=False, save_columns=False)

        assert table_names(mock_client) == ["datasets"]
        assert "last_data_edit" in tables["datasets"].update.call_args.args[0]

    def test_full_save_upserts_columns(self, row_store, mock_client, tables, dataset):
        row_store.save_dataset(dataset)

        assert table_names(mock_client) == ["dataset_columns", "datasets"]
        upserted = tables["dataset_columns"].upsert.call_args.args[0]
        assert upserted[0]["id"] == 1
        assert upserted[0]["heading"] == "Name"

    def test_duplicate_headings_rejected(self, row_store, mock_client):
        dataset = DataSet(dataset_id=1, name="People", columns=[
            DataSetColumn(column_id=1, heading="Name"),
            DataSetColumn(column_id=2, heading="Name"),
        ])

        with pytest.raises(ValueError):
            row_store.save_dataset(dataset)

        mock_client.table.assert_not_called()

    def test_set_active(self, row_store, tables):
        row_store.set_active(1)

        assert "last_viewed_at" in tables["datasets"].update.call_args.args[0]


# =============================================================================
# SupabaseClient Lookup Tests
# =============================================================================

class TestClientLookups:
    """Tests for lookups that treat PGRST116 as "not found"."""

    def test_fetch_dataset_not_found(self, tables, mock_client):
        tables["datasets"] = make_query(error=NO_ROWS)

        assert SupabaseClient.fetch_dataset(5) is None

    def test_fetch_media_not_found(self, tables, mock_client):
        tables["media"] = make_query(error=NO_ROWS)

        assert SupabaseClient.fetch_media(7) is None

    def test_fetch_media_found(self, tables, mock_client):
        tables["media"] = make_query(data={"id": 7, "name": "poster.png"})

        assert SupabaseClient.fetch_media(7)["name"] == "poster.png"

    def test_fetch_media_error_raises(self, tables, mock_client):
        tables["media"] = make_query(error=Exception("timeout"))

        with pytest.raises(SupabaseClientError) as exc_info:
            SupabaseClient.fetch_media(7)

        assert exc_info.value.code == "FETCH_MEDIA_FAILED"

    def test_editor_ids(self, tables, mock_client):
        tables["dataset_permissions"] = make_query(data=[{"user_id": "a"}, {"user_id": "b"}])

        assert SupabaseClient.fetch_dataset_editor_ids(1) == ["a", "b"]
