"""
MediQueue - walk-in clinic queue service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .core.errors import ErrorKind, QueueError
from .database import Database
from .routers import (
    clinics_router,
    patients_router,
    check_ins_router,
    queue_router,
    analytics_router
)

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.DEPENDENCY: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    await Database.connect()

    yield

    # Shutdown
    await Database.disconnect()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"]
)


# Trace Middleware
@app.middleware("http")
async def trace_middleware(request: Request, call_next):
    response = await call_next(request)
    logger.debug("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


def with_cors(response: JSONResponse) -> JSONResponse:
    """Attach permissive CORS headers to an error response."""
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "*"
    response.headers["Access-Control-Allow-Headers"] = "*"
    return response


@app.exception_handler(QueueError)
async def queue_error_handler(request: Request, exc: QueueError):
    if exc.kind == ErrorKind.DEPENDENCY:
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return with_cors(JSONResponse(status_code=ERROR_STATUS[exc.kind], content=exc.to_dict()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return with_cors(JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return with_cors(JSONResponse(status_code=500, content={"detail": "Internal server error"}))


# Include routers
app.include_router(clinics_router)
app.include_router(patients_router)
app.include_router(check_ins_router)
app.include_router(queue_router)
app.include_router(analytics_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - health check."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "docs": "/docs"
    }


@app.get("/api/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": "connected" if Database.client else "disconnected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.APP_VERSION
    }


# Entry point for running directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mediqueue.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
