"""
FastAPI application for the test generation API.

Mounts the job and admin routers, maps the job queue error taxonomy onto
HTTP status codes and serves /health for platform probes.
"""

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from testgen import __version__
from testgen.config import config
from testgen.jobs.errors import StoreUnavailable
from testgen.jobs.store import close_job_store, get_job_store
from testgen.routes.admin import router as admin_router
from testgen.routes.jobs import router as jobs_router
from testgen.utils.logging import api_logger as logger, configure_logging, get_log_buffer


configure_logging(config.LOG_LEVEL)

app = FastAPI(
    title="Test Generation API",
    description="Queue AI test-suggestion and test-code generation jobs and poll their status",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(jobs_router)
app.include_router(admin_router)


# ===== Root Endpoint =====

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Test Generation API",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
        "endpoints": {
            "queue_suggestions": "POST /jobs/suggestions (async, returns jobId)",
            "queue_code": "POST /jobs/code (async, returns jobId)",
            "job_status": "GET /jobs/{queue_name}/{job_id}",
            "health": "GET /health",
        }
    }


# ===== Health Check =====

@app.get("/health")
async def health_check():
    """Health check endpoint. Always 200; a store problem reports as degraded."""
    try:
        store = await get_job_store()
    except Exception as e:
        store_health = {"status": "unhealthy", "connected": False, "error": str(e)}
    else:
        store_health = await store.health_check()

    return {
        "status": "healthy" if store_health["status"] == "healthy" else "degraded",
        "store": store_health,
        "generation_configured": config.generation_configured,
        "errors_logged": get_log_buffer().get_stats()["error_count"],
    }


# ===== Error Handlers =====

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), not 422."""
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request, exc: StoreUnavailable):
    logger.error(f"Job store unavailable: {exc}", path=request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": "Job store unavailable"}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler."""
    logger.error(f"Unhandled error: {exc}", path=request.url.path, type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if config.DEBUG else "An error occurred",
            "type": type(exc).__name__
        }
    )


# ===== Startup / Shutdown =====

@app.on_event("startup")
async def startup_event():
    logger.info(
        "API starting",
        version=__version__,
        store_backend=config.JOB_STORE_BACKEND,
        environment=config.ENVIRONMENT,
        auth_required=config.auth_required
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    await close_job_store()
    logger.info("API stopped")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "testgen.api.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower()
    )
