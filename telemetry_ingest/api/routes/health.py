"""
Health check endpoints
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
import structlog

from telemetry_ingest.database.connection import get_database

logger = structlog.get_logger(__name__)
router = APIRouter()

SERVICE_NAME = "Tive Telemetry Ingestion API"
SERVICE_VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    }


@router.get("/health/detailed")
def detailed_health_check(request: Request, db: Session = Depends(get_database)):
    """Detailed health check with database connectivity"""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        db_status = "disconnected"

    return {
        "status": "healthy" if db_status == "connected" else "unhealthy",
        "database": db_status,
        "dispatcher": type(request.app.state.dispatcher).__name__,
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    }
