"""
Main FastAPI application
GreenPulse farm telemetry backend
"""

import asyncio
import time
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from app.config import settings
from app.database import engine, Base, SessionLocal
from app.core.alert_engine import AlertEvaluator
from app.core.exceptions import AppError
from app.services.notification import ConnectionManager
from app.services.mqtt_listener import MQTTListener
from app.api.endpoints import auth, users, farms, devices, sensors, alerts, analytics, websocket

API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    # Startup
    logger.info("Starting GreenPulse telemetry backend")

    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    app.state.connections = ConnectionManager()
    app.state.evaluator = AlertEvaluator(app.state.connections)

    listener = None
    if settings.MQTT_ENABLED:
        listener = MQTTListener(
            asyncio.get_running_loop(),
            evaluator=app.state.evaluator,
            manager=app.state.connections,
        )
        listener.start()

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application")
    if listener is not None:
        listener.stop()


# Create FastAPI application
app = FastAPI(
    title="GreenPulse Farm Telemetry",
    description="""
    Hydroponic farm monitoring backend

    Features:
    - Sensor reading ingestion over HTTP and MQTT
    - Per-device threshold alerts with deduplication
    - Live readings, alerts and device status over WebSocket
    - Farm, device and user management
    """,
    version=API_VERSION,
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


# Custom middleware for request logging and monitoring
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log all requests for monitoring
    """
    start_time = time.time()

    # Process request
    response = await call_next(request)

    # Log request details
    process_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.3f}s"
    )

    # Add custom headers
    response.headers["X-Process-Time"] = str(process_time)
    response.headers["X-API-Version"] = API_VERSION

    return response


def _error_response(request: Request, status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "status_code": status_code,
            "timestamp": datetime.utcnow().isoformat(),
            "path": str(request.url)
        },
        headers=headers
    )


# Exception handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Domain errors carry their own status code
    """
    return _error_response(request, exc.status_code, exc.message, exc.headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Custom HTTP exception handler
    """
    return _error_response(request, exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle request validation errors
    """
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))

    return _error_response(request, 400, "Validation error: " + "; ".join(problems))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected errors
    """
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return _error_response(request, 500, "Internal server error. Please try again later.")


# Include routers
for router_module in (auth, users, farms, devices, sensors, alerts, analytics):
    app.include_router(router_module.router, prefix=settings.API_PREFIX)

app.include_router(websocket.router)


# Health check endpoints
@app.get("/health")
async def health_check():
    """
    Health check with database connectivity
    """
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1")).fetchone()
        finally:
            db.close()
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    connections = getattr(app.state, "connections", None)

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "components": {
            "database": db_status,
            "mqtt": "enabled" if settings.MQTT_ENABLED else "disabled",
            "websocket_clients": len(connections.connections) if connections else 0
        }
    }


# Root endpoint
@app.get("/")
async def root():
    """
    API root endpoint
    """
    return {
        "message": "GreenPulse Farm Telemetry API",
        "version": API_VERSION,
        "docs_url": "/docs",
        "health_check": "/health",
        "websocket": settings.WEBSOCKET_PATH,
        "environment": settings.ENVIRONMENT
    }


if __name__ == "__main__":
    # Run the application
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
