"""
Test Builder PDF Service - Backend API
FastAPI service that masks and pastes regions into uploaded PDFs.

Install dependencies:
pip install -e .

Run server:
uvicorn main:app --host 0.0.0.0 --port 8000
"""

import asyncio
import contextvars
import logging
import os
import time
import uuid
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from core.errors import CompositionError
from core.uploads import UPLOADS_URL_PREFIX
from settings import get_settings

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default=None)
request_start_time_var = contextvars.ContextVar('request_start_time', default=None)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ============================================================================
# BACKEND CONFIGURATION
# ============================================================================
settings = get_settings()

STORAGE_BACKEND = settings.storage_backend.lower()
UPLOAD_DIR = Path(settings.upload_dir)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

logger.info(f"Storage Backend: {STORAGE_BACKEND.upper()}")

# ============================================================================
# STORAGE ADAPTER INITIALIZATION
# ============================================================================

if STORAGE_BACKEND == "json":
    from adapters.json import JsonAdapter

    storage_adapter = JsonAdapter(data_dir=settings.data_dir)
    logger.info(f"JSON adapter initialized (data_dir={settings.data_dir})")
else:
    raise ValueError(f"Unknown STORAGE_BACKEND: {STORAGE_BACKEND}")


def get_storage_adapter(_=None):
    return storage_adapter


# ============================================================================
# FASTAPI APP
# ============================================================================

app = FastAPI(
    title="Test Builder PDF API",
    description="Backend API for masking and pasting regions into test PDFs",
    version="1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.state.storage_backend = STORAGE_BACKEND
app.state.storage_adapter = storage_adapter
app.state.upload_dir = str(UPLOAD_DIR)
app.state.composition_semaphore = asyncio.Semaphore(max(1, settings.max_parallel_compositions))


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
        f"[request] {request.method} {request.url.path} -> {response.status_code} "
        f"({round(latency * 1000, 2)} ms) id={request_id}"
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
    expose_headers=["X-Request-ID", "X-Skipped-Regions"],
)


# ========== Error envelope ==========

@app.exception_handler(CompositionError)
async def composition_exception_handler(request, exc: CompositionError):
    if exc.status_code >= 500:
        logger.error(f"[compose.error] {request.url.path}: {exc.message}")
    else:
        logger.warning(f"[compose.invalid] {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "error": exc.error_kind},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": str(exc.detail),
            "error": "invalid_input" if exc.status_code < 500 else "processing_failed",
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Invalid request",
            "error": "invalid_input",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error", "error": "processing_failed"},
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    try:
        request.app.state.storage_adapter.list_tests()
        return {
            "status": "healthy",
            "backend": STORAGE_BACKEND,
            "version": "1.0"
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "backend": STORAGE_BACKEND, "error": str(e)}
        )


@app.get("/healthz")
async def healthz():
    """
    Liveness probe.
    Returns 200 if the application is running.
    """
    return {
        "status": "ok",
        "timestamp": time.time(),
        "version": "1.0"
    }


@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "message": "Test Builder PDF API",
        "version": "1.0",
        "backend": STORAGE_BACKEND,
        "status": "running",
        "docs": "/docs"
    }


from routers import tests as tests_router
app.include_router(tests_router.router)

app.mount(UPLOADS_URL_PREFIX, StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")


@app.on_event("startup")
async def startup_event():
    logger.info("Test Builder PDF API starting up...")
    logger.info(f"Storage Backend: {STORAGE_BACKEND.upper()}")
    logger.info(f"Upload dir: {UPLOAD_DIR.resolve()}")
    logger.info(f"Bounds policy: {settings.region_bounds_policy}")
    logger.info(f"Allowed origins: {ALLOWED_ORIGINS}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Test Builder PDF API shutting down...")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
