# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the DataSet Data API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import settings
from app.exceptions import (
    DataSetApiException,
    dataset_api_exception_handler,
    validation_exception_handler,
)
from app.routers import health, dataset_data

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs the effective configuration on startup and the shutdown.
    """
    logger.info(f"Starting DataSet Data API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(f"Local timezone: {settings.LOCAL_TIMEZONE}")

    yield

    logger.info("Shutting down DataSet Data API")


# Create FastAPI application
app = FastAPI(
    title="DataSet Data API",
    description="""
## Row editing for signage datasets

DataSets are user-defined tables that feed data into signage layouts.
This API lets editors add, edit, delete and browse the rows of a dataset.

### Column parameters

Add and edit requests carry one `columnId_<id>` parameter per value column.
Values are coerced by the column's data type:

| Type | Stored as |
|------|-----------|
| **string** | Text with HTML and control characters removed |
| **number** | Decimal; non-numeric input becomes 0 |
| **date** | Local `YYYY-MM-DD HH:MM:SS` |
| **image** | Media library id |

Edits are merges: columns you leave out keep their current value.
Datasets fed by a remote source cannot have rows added or edited.
""",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "DataSet Data",
            "description": "Add, edit, delete and list dataset rows",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(DataSetApiException)
async def handle_dataset_api_exception(request: Request, exc: DataSetApiException):
    """Handle custom DataSet API exceptions."""
    return await dataset_api_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    """Handle malformed path/query parameters."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "httpStatus": 500,
            "message": "An unexpected error occurred",
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

app.include_router(
    dataset_data.router,
    prefix="/api/v1",
    tags=["DataSet Data"]
)


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "DataSet Data API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/v1/health",
    }


def start():
    """Run the API server with the configured host and port."""
    uvicorn.run(
        "app.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    start()
