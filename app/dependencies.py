# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends

from core.services.dataset_data_service import DataSetDataService
from core.services.row_store import SupabaseRowStore


def get_dataset_data_service() -> DataSetDataService:
    """
    Get the dataset data service.

    Backed by Supabase; tests override this dependency with an in-memory store.
    """
    return DataSetDataService(store=SupabaseRowStore())


# Type alias for dependency injection
DataSetDataServiceDep = Annotated[DataSetDataService, Depends(get_dataset_data_service)]
