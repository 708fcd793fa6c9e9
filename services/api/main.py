"""
Markify - Upload Service API
FastAPI backend for Markdown project uploads (files, folders, zip archives) and editor drafts.

Install dependencies:
pip install -e .

Run server:
uvicorn main:app --host 0.0.0.0 --port 8000
"""

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Annotated
import contextvars
import logging
import os
import time
import uuid

from adapters.sqlite import SqliteAdapter
from settings import Settings, get_settings

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default=None)
request_start_time_var = contextvars.ContextVar('request_start_time', default=None)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

VERSION = "1.0"

# ============================================================================
# FASTAPI APP
# ============================================================================

app = FastAPI(
    title="Markify Upload API",
    description="Validated uploads of Markdown files and projects",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)


# ========== Request Tracing Middleware ==========
@app.middleware("http")
async def request_tracing_middleware(request, call_next):
    """Add request_id and timing to all requests."""
    request_id = str(uuid.uuid4())[:8]
    request_id_var.set(request_id)
    request_start_time_var.set(time.time())

    response = await call_next(request)

    latency = time.time() - request_start_time_var.get()
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code}",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round(latency * 1000, 2),
        }
    )

    response.headers["X-Request-ID"] = request_id
    return response


ALLOWED_ORIGINS = settings.get_origins_list()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

def _adapter(request: Request):
    return getattr(request.app.state, "storage_adapter", None)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    try:
        _adapter(request).ping()
        return {
            "status": "healthy",
            "backend": "sqlite",
            "version": VERSION
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "backend": "sqlite", "error": str(e)}
        )


@app.get("/healthz")
async def healthz():
    """
    Liveness check: the process is up and answering.
    """
    return {
        "status": "ok",
        "timestamp": time.time(),
        "version": VERSION
    }


@app.get("/readyz")
async def readyz(request: Request, config: Annotated[Settings, Depends(get_settings)]):
    """
    Readiness check: database reachable and upload root writable.
    Returns 200 if ready, 503 if not ready.
    """
    try:
        _adapter(request).ping()
        upload_root = config.upload_root_path()
        if not os.access(upload_root, os.W_OK):
            raise RuntimeError(f"Upload root not writable: {upload_root}")

        return {
            "status": "ready",
            "backend": "sqlite",
            "timestamp": time.time()
        }
    except Exception as e:
        logger.error(f"Readiness check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "backend": "sqlite",
                "error": str(e),
                "timestamp": time.time()
            }
        )


@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "message": "Markify Upload API",
        "version": VERSION,
        "status": "running",
        "docs": "/docs"
    }


from routers import files as files_router
app.include_router(files_router.router)

from routers import archive as archive_router
app.include_router(archive_router.router)

from routers import drafts as drafts_router
app.include_router(drafts_router.router)

from routers import uploads as uploads_router
app.include_router(uploads_router.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Markify Upload API starting up...")
    settings.upload_root_path().mkdir(parents=True, exist_ok=True)
    settings.tmp_dir_path().mkdir(parents=True, exist_ok=True)

    # Tests may install their own adapter before startup
    if getattr(app.state, "storage_adapter", None) is None:
        app.state.storage_adapter = SqliteAdapter.from_url(
            settings.db_url,
            list_cache_ttl=settings.list_cache_ttl_seconds,
        )
    logger.info(f"Database: {settings.db_url.split('://')[0]}")
    logger.info(f"Upload root: {settings.upload_root_path()}")
    logger.info(f"Allowed origins: {ALLOWED_ORIGINS}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Markify Upload API shutting down...")
    adapter = getattr(app.state, "storage_adapter", None)
    if isinstance(adapter, SqliteAdapter):
        adapter.dispose()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
