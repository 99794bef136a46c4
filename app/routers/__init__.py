# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - dataset_data.py: DataSet row CRUD and grid endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import dataset_data

__all__ = [
    "health",
    "dataset_data",
]
