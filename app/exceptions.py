# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Errors should tell HOW to fix, not just WHAT failed.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class DataSetApiException(Exception):
    """
    Base exception for the DataSet Data API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "DATASET_API_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "httpStatus": self.status_code,
            "message": self.message,
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Lookup Exceptions
# =============================================================================

class DataSetNotFoundError(DataSetApiException):
    """Raised when a dataset ID doesn't exist."""

    def __init__(self, dataset_id: int):
        super().__init__(
            message=f"DataSet not found: {dataset_id}",
            code="DATASET_NOT_FOUND",
            status_code=404,
            suggestion="Check that the dataSetId is correct and the dataset hasn't been deleted",
            details={"dataSetId": dataset_id}
        )


class RowNotFoundError(DataSetApiException):
    """Raised when a row ID doesn't exist in a dataset."""

    def __init__(self, dataset_id: int, row_id: int):
        super().__init__(
            message=f"Row not found: {row_id}",
            code="ROW_NOT_FOUND",
            status_code=404,
            suggestion="The row may have been deleted by another editor; reload the grid",
            details={"dataSetId": dataset_id, "rowId": row_id}
        )


class MediaNotFoundError(DataSetApiException):
    """Raised when a referenced library image no longer exists."""

    def __init__(self, media_id: int):
        super().__init__(
            message=f"Media not found: {media_id}",
            code="MEDIA_NOT_FOUND",
            status_code=404,
            details={"mediaId": media_id}
        )


# =============================================================================
# Request Exceptions
# =============================================================================

class AccessDeniedError(DataSetApiException):
    """Raised when the caller cannot edit the dataset."""

    def __init__(self, dataset_id: int):
        super().__init__(
            message="Access denied",
            code="ACCESS_DENIED",
            status_code=403,
            suggestion="Ask the dataset owner to share it with edit permission",
            details={"dataSetId": dataset_id}
        )


class InvalidInputError(DataSetApiException):
    """Raised when a row mutation violates the dataset's column structure."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            status_code=422,
            suggestion="Remote columns are populated by their data connector and cannot be edited here",
            details={"property": field} if field else None
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def dataset_api_exception_handler(
    request: Request,
    exc: DataSetApiException
) -> JSONResponse:
    """
    Convert DataSetApiException to JSON response.

    Returns the same state shape as successful calls (httpStatus, message)
    plus a machine-readable code and a suggestion where one exists.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "httpStatus": 422,
            "message": "Validation error",
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": str(exc)
        }
    )
