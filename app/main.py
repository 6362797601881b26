"""FastAPI application main entry point"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.database import create_tables
from app.core.errors import InternalError, MissingCredential, InvalidCredential, RateLimitExceeded, SbomWatchError
from app.core.logging import configure_logging
from app.api.v1.router import router as v1_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup and shutdown events.
    
    Args:
        app: FastAPI application instance
    """
    # Startup
    configure_logging()
    logger.info("startup creating_tables database=%s", settings.DATABASE_URL.split("://")[0])
    await create_tables()
    yield
    # Shutdown
    logger.info("shutdown")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="SBOM ingestion and vulnerability tracking for CI pipelines",
    lifespan=lifespan,
)

# Include routers
app.include_router(v1_router)


@app.exception_handler(SbomWatchError)
async def sbomwatch_error_handler(request: Request, exc: SbomWatchError) -> JSONResponse:
    """Render taxonomy errors as ``{"error", "detail"}`` with their status code."""
    content: dict = {"error": exc.error_code, "detail": exc.detail}
    headers = dict(exc.headers or {})
    if isinstance(exc, RateLimitExceeded):
        content["remaining"] = 0
        content["resetAt"] = int(exc.reset_at) if exc.reset_at is not None else None
    if isinstance(exc, (MissingCredential, InvalidCredential)):
        headers.setdefault("WWW-Authenticate", "Bearer")
    if exc.status_code >= 500:
        logger.error("request_failed path=%s error=%s detail=%s", request.url.path, exc.error_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers or None)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s", request.url.path)
    error = InternalError("Internal server error")
    return JSONResponse(status_code=error.status_code, content={"error": error.error_code, "detail": error.detail})


@app.get("/", tags=["health"])
async def health_check() -> dict:
    """
    Health check endpoint.
    
    Returns:
        dict: Status and service information
    """
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
