"""
GP Sales Dashboard FastAPI Main Application
Entry point for the serial allocation and reservation API
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from typing import Optional
import asyncio
import logging

from gpdash.core.config import settings
from gpdash.core.database import SessionLocal, check_db_connection, erp_engine, init_db
from gpdash.core.logging import setup_logging
from gpdash.api.v1.api_router import api_router
from gpdash.services.inventory.reservation_service import SerialReservationService

logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## GP Sales Dashboard API

    Serial number allocation and reservation for Dynamics GP sales orders.

    ### Key Features:
    - **Allocation data**: stock, serials and holds for an item at a site
    - **Serial reservations**: time-boxed exclusive holds across users
    - **Inventory detail**: serial and receipt layer aging
    """,
    docs_url=settings.DOCS_URL,
    openapi_url=settings.OPENAPI_URL,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_sweep_task: Optional[asyncio.Task] = None
_sweep_heartbeat: dict = {
    "last_run": None,
    "last_success": None,
    "records_processed": 0,
    "errors": 0,
}


def _run_sweep() -> int:
    db = SessionLocal()
    try:
        return SerialReservationService(db).sweep_expired()
    finally:
        db.close()


async def run_reservation_sweep():
    """Delete expired reservations and update the heartbeat"""
    _sweep_heartbeat["last_run"] = datetime.now(timezone.utc).isoformat()
    try:
        removed = await asyncio.to_thread(_run_sweep)
        _sweep_heartbeat["last_success"] = datetime.now(timezone.utc).isoformat()
        _sweep_heartbeat["records_processed"] += removed
    except Exception as e:
        _sweep_heartbeat["errors"] += 1
        logger.error(f"Reservation sweep failed: {e}")


async def reservation_sweep_scheduler():
    """Runs the sweep at the configured interval until cancelled"""
    interval = settings.RESERVATION_SWEEP_INTERVAL_MINUTES * 60
    while True:
        await run_reservation_sweep()
        await asyncio.sleep(interval)


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers

    Returns connectivity of both databases and the sweep heartbeat
    """
    try:
        app_db_status = check_db_connection()
        erp_db_status = check_db_connection(erp_engine)

        return {
            "status": "healthy" if app_db_status and erp_db_status else "degraded",
            "version": settings.APP_VERSION,
            "database": "connected" if app_db_status else "disconnected",
            "erp_database": "connected" if erp_db_status else "disconnected",
            "reservation_sweep": _sweep_heartbeat,
            "debug": settings.DEBUG
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


# System information endpoint
@app.get("/info", tags=["System"])
async def system_info():
    """System information endpoint"""
    return {
        "application": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_version": "v1",
        "docs_url": settings.DOCS_URL,
        "reservation_timeout_minutes": settings.RESERVATION_TIMEOUT_MINUTES,
        "features": [
            "Serial Allocation",
            "Serial Reservations",
            "Inventory Detail"
        ]
    }


# Application startup event
@app.on_event("startup")
async def startup_event():
    """
    Application startup tasks

    Verify the application database, create its tables and start the sweep
    """
    global _sweep_task
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if not check_db_connection():
        logger.error("Failed to connect to database on startup")
        raise RuntimeError("Database connection failed")

    logger.info("Database connection established")
    init_db()

    if settings.RESERVATION_SWEEP_ENABLED:
        _sweep_task = asyncio.create_task(reservation_sweep_scheduler())
        logger.info("Reservation sweep scheduler ENABLED")
    else:
        logger.info("Reservation sweep scheduler DISABLED via config")

    logger.info("Application startup completed successfully")


# Application shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Stop the sweep scheduler"""
    logger.info("Shutting down application")
    if _sweep_task and not _sweep_task.done():
        _sweep_task.cancel()
        try:
            await _sweep_task
        except asyncio.CancelledError:
            logger.info("Reservation sweep scheduler cancelled")


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unhandled errors

    Args:
        request: FastAPI request object
        exc: Exception that occurred

    Returns:
        JSON error response
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
            "type": "server_error"
        }
    )


# Include API routers
app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gpdash.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
