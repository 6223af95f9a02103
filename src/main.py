"""
Assess360 Permission Engine

FastAPI application wiring. The admin console's routes live elsewhere; this
app owns the lifetime of the single PermissionService they share.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from src.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from src.config import get_settings
from src.database import close_db, init_db
from src.kernel.permissions.permission_service import create_permission_service
from src.logging_config import configure_logging, get_logger
from src.schemas.common import ErrorResponse, HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Builds the permission service exactly once and registers it on app.state.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    if settings.rbac_grant_store == "database":
        init_db()
        logger.info("Database initialized")

    app.state.permission_service = create_permission_service(settings)
    logger.info("Permission service ready (grant store: %s)", settings.rbac_grant_store)

    yield

    logger.info("Shutting down...")
    if settings.rbac_grant_store == "database":
        close_db()
        logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="Permission evaluation engine for the Assess360 admin console.",
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(RequestIdMiddleware)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Echo the request id on 401/403 responses so denials can be traced in logs."""
    headers = dict(exc.headers or {})
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers[REQUEST_ID_HEADER] = req_id
    body = ErrorResponse(detail=str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(
        status="ok",
        version=settings.version,
        grant_store=settings.rbac_grant_store,
    )


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
