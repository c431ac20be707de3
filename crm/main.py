"""
Freelance CRM API - Main Application Entry Point
Clients, projects and communication history for independent professionals.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from crm.core.config import settings
from crm.core.database import init_db, close_db
from crm.core.exceptions import (
    CRMError,
    NotFoundError,
    UnauthorizedError,
    UnknownError,
    ValidationError,
)
from crm.core.logging import configure_logging
from crm.api.v1.router import api_router


logger = logging.getLogger(__name__)

ERROR_STATUS = {
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    UnknownError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    
    # Initialize database tables (for development)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")
    
    yield
    
    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
## Freelance CRM API

Backend for a lightweight CRM aimed at freelancers.

### Features:

* **Clients** - Create, edit, archive and restore clients
* **Projects** - Track projects per client and their status
* **Communications** - Log emails, calls and meetings with attachments
* **Identity** - Users provisioned from the auth provider on first request
    """,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(
    status_code: int,
    message: str,
    reason: str,
    errors: list[dict[str, str]] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": message,
            "reason": reason,
            "errors": errors,
        },
    )


# Exception handlers
@app.exception_handler(CRMError)
async def crm_exception_handler(request: Request, exc: CRMError):
    """Map domain errors to their HTTP status."""
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    errors = exc.errors if isinstance(exc, ValidationError) and exc.errors else None
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(status_code, exc.message, exc.reason, errors)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body and parameter errors use the same shape as domain validation."""
    errors = []
    for error in exc.errors():
        # Drop the "body" / "query" prefix
        loc = [str(part) for part in error["loc"][1:]] or [str(error["loc"][0])]
        errors.append({
            "field": ".".join(loc),
            "message": error["msg"],
        })
    
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ValidationError.default_message,
        ValidationError.reason,
        errors,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail), "HTTPError")


# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get(
    "/health",
    tags=["Health"],
    summary="Server health check",
)
async def health_check():
    """Check if the API is running."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get(
    "/",
    tags=["Info"],
    summary="API information",
)
async def root():
    """Get API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "Lightweight CRM for freelancers",
        "docs": "/docs" if settings.is_development else "Disabled in production",
        "health": "/health",
    }


# For running with uvicorn directly
if __name__ == "__main__":
    import os
    import uvicorn
    
    port = int(os.getenv("PORT", "8000"))
    
    uvicorn.run(
        "crm.main:app",
        host=settings.HOST,
        port=port,
        reload=settings.is_development,
    )
