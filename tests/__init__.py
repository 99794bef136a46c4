# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the DataSet Data API:
# - test_models.py: Unit tests for Pydantic model validation
# - test_row_codec.py: Row coercion and merge rules
# - test_grid_query.py: Grid filter/sort/paging construction
# - test_dataset_data_service.py: Orchestration against an in-memory store
# - test_dataset_data_routes.py: HTTP endpoints via TestClient
# - test_auth.py, test_health.py: Token verification and health checks
#
# Run tests with: pytest
# =============================================================================
