# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides specialized methods for fetching:
# - DataSet records and their column schema
# - DataSet editor permissions
# - Media library records (for image columns)
#
# Row reads and writes live in core/services/row_store.py.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   dataset = SupabaseClient.fetch_dataset(12)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code returned by .single() when no row matches
NO_ROWS_CODE = "PGRST116"


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages: errors should tell HOW to fix,
    not just WHAT failed.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def is_no_rows_error(error: Exception) -> bool:
    """True when a .single() query failed only because nothing matched."""
    return NO_ROWS_CODE in str(error)


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        dataset = SupabaseClient.fetch_dataset(12)
        columns = SupabaseClient.fetch_dataset_columns(12)
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Editability is enforced by the API instead.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    # -------------------------------------------------------------------------
    # DataSet Operations
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_dataset(cls, dataset_id: int) -> dict[str, Any] | None:
        """
        Fetch a dataset record by ID.

        Returns:
            DataSet dict (id, name, description, owner_id, is_remote,
            last_data_edit), or None if not found

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("datasets")
                .select("id, name, description, owner_id, is_remote, last_data_edit")
                .eq("id", dataset_id)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch dataset: {e}",
                code="FETCH_DATASET_FAILED",
                suggestion="Check that the datasets table is accessible",
                details={"dataset_id": dataset_id}
            )

    @classmethod
    def fetch_dataset_columns(cls, dataset_id: int) -> list[dict[str, Any]]:
        """
        Fetch the column schema of a dataset in display order.

        Returns:
            List of column dicts with keys:
            - id, heading, column_kind, value_kind
            - column_order, list_content, tooltip, is_required

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("dataset_columns")
                .select("id, heading, column_kind, value_kind, column_order, list_content, tooltip, is_required")
                .eq("dataset_id", dataset_id)
                .order("column_order")
                .execute()
            )
            columns = response.data or []
            logger.debug(f"Fetched {len(columns)} columns for dataset {dataset_id}")
            return columns

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch dataset columns: {e}",
                code="FETCH_COLUMNS_FAILED",
                details={"dataset_id": dataset_id}
            )

    @classmethod
    def fetch_dataset_editor_ids(cls, dataset_id: int) -> list[str]:
        """
        Fetch the users granted edit permission on a dataset.

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("dataset_permissions")
                .select("user_id")
                .eq("dataset_id", dataset_id)
                .eq("can_edit", True)
                .execute()
            )
            return [p["user_id"] for p in (response.data or [])]

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch dataset permissions: {e}",
                code="FETCH_PERMISSIONS_FAILED",
                suggestion="Check that the dataset_permissions table is accessible",
                details={"dataset_id": dataset_id}
            )

    # -------------------------------------------------------------------------
    # Media Operations
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_media(cls, media_id: int) -> dict[str, Any] | None:
        """
        Fetch a media library record by ID.

        Returns:
            Media dict (id, name, media_type, stored_as, file_size),
            or None if not found

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("media")
                .select("id, name, media_type, stored_as, file_size")
                .eq("id", media_id)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch media: {e}",
                code="FETCH_MEDIA_FAILED",
                details={"media_id": media_id}
            )
