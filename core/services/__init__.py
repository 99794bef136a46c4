# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .dataset_data_service import DataSetDataService
from .media_service import MediaService
from .row_store import DatasetRowStore, SupabaseRowStore

__all__ = [
    "DataSetDataService",
    "MediaService",
    "DatasetRowStore",
    "SupabaseRowStore",
]
