# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the dataset row logic:
# - models/: Pydantic schemas for datasets, rows and grid queries
# - services/: Row coercion, grid query building, row storage, orchestration
#
# Code in this package should NOT import from FastAPI.
# This keeps the logic testable and reusable.
# =============================================================================
