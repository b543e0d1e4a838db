"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from api.routes import health, data, jobs
from api.dependencies import registry
from core.config import settings
from core.exceptions import PipelineException
from core.logging import setup_logging
from schemas.api import ErrorResponse
import logging
from api.middleware import RequestContextMiddleware

# Configure logging
setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Person Batch Pipeline API",
    description="Control surface for the chunked person ingest → enrich → export pipeline",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)


# Include routers
app.include_router(health.router)
app.include_router(jobs.router)
app.include_router(data.router)


@app.exception_handler(PipelineException)
async def pipeline_exception_handler(request: Request, exc: PipelineException):
    """Pipeline errors escaping a request become a logged 500"""
    request_id = getattr(request.state, "request_id", "-")
    logger.error(f"[{request_id}] {exc}", extra={"error_context": exc.to_dict()})
    return JSONResponse(
        status_code=500,
        content=jsonable_encoder(ErrorResponse(error=type(exc).__name__, detail=exc.message)),
    )


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Person Batch Pipeline API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    logger.info(f"Input CSV: {settings.INPUT_CSV_PATH}, output file: {settings.OUTPUT_FILE_PATH}")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Person Batch Pipeline API")
    await registry.shutdown()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Person Batch Pipeline API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "jobs": "/api/jobs",
            "persons": "/api/persons",
            "samples": "/api/data/generate/partial10k"
        }
    }
