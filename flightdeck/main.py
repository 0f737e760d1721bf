from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flightdeck.api.v1.api import api_router
from flightdeck.core.config import settings
from flightdeck.core.exceptions import (
    FolderServiceError,
    ProjectLockedError,
    ProjectNotFoundError,
    SpreadsheetFormatError,
    StaleSnapshotError,
    TaskNotFoundError,
    ValidationRejected,
)
from flightdeck.core.logging_setup import setup_logging
from flightdeck.db.session import init_db

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Engine and service errors -> HTTP status
ERROR_STATUS = {
    ProjectNotFoundError: status.HTTP_404_NOT_FOUND,
    TaskNotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationRejected: status.HTTP_400_BAD_REQUEST,
    SpreadsheetFormatError: status.HTTP_400_BAD_REQUEST,
    ProjectLockedError: status.HTTP_423_LOCKED,
    StaleSnapshotError: status.HTTP_409_CONFLICT,
    FolderServiceError: status.HTTP_502_BAD_GATEWAY,
}


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    return handler


for exc_class, code in ERROR_STATUS.items():
    app.add_exception_handler(exc_class, _error_handler(code))

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_STR)
