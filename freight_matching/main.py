from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import sys
import time
import structlog

from .config import settings
from .database import init_models
from .utils.redis_client import redis_client
from .services.exceptions import (
    RideServiceError,
    NotFoundError,
    InvalidInputError,
    InvalidStateError,
    ConflictError,
)
from .routes import health, rides, bids, drivers, ratings, commission, admin, vehicles

# Configure structured logging
logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Freight Matching Service")

    if settings.create_tables_on_startup:
        await init_models()

    # Broadcasts are best-effort: the service keeps serving without Redis
    try:
        await redis_client.connect()
        logger.info("Connected to external services")
    except Exception as e:
        logger.error(f"Redis unavailable, real-time notifications disabled: {e}")

    try:
        yield
    finally:
        logger.info("Shutting down Freight Matching Service")
        try:
            await redis_client.disconnect()
            logger.info("Disconnected from external services")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


# Create FastAPI app
app = FastAPI(
    title="Freight Matching Service",
    description="Shippers post loads, nearby drivers bid, one bid is accepted per ride",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RideServiceError)
async def ride_service_error_handler(request: Request, exc: RideServiceError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info(
        "Request rejected",
        url=str(request.url),
        error=exc.code,
        detail=exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message, **exc.extra},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # Internal details stay in the log
    logger.exception("Unhandled error", url=str(request.url))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal", "detail": "Internal server error"},
    )


# Middleware for request logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    start_time = time.perf_counter()

    # Correlation ID for tracing
    correlation_id = request.headers.get("x-correlation-id", "unknown")

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        correlation_id=correlation_id
    )

    response = await call_next(request)

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        correlation_id=correlation_id
    )

    return response


# Include routers
app.include_router(health.router)
app.include_router(rides.router)
app.include_router(bids.router)
app.include_router(drivers.router)
app.include_router(ratings.router)
app.include_router(commission.router)
app.include_router(admin.router)
app.include_router(vehicles.router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "freight-matching",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "health": "/api/health",
            "docs": "/docs",
            "redoc": "/redoc"
        }
    }


# Health check for Kubernetes
@app.get("/health")
async def simple_health():
    """Simple health check for load balancers"""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "freight_matching.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
