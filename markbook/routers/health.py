import time

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session
import logging

from markbook.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


# Health check endpoint with additional status info
@router.get("/health")
async def health_check(request: Request, db: Session = Depends(get_db)):
    redis = getattr(request.app.state, "redis", None)
    status_info = {
        "status": "healthy",
        "timestamp": time.time(),
        "database": "connected",
        "redis": "connected" if redis else "not configured",
    }

    # Check database connection
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        status_info["database"] = "disconnected"
        status_info["status"] = "unhealthy"
        logger.error(f"Database health check failed: {str(e)}")

    # Check Redis connection if configured
    if redis:
        try:
            await redis.ping()
        except Exception as e:
            status_info["redis"] = "disconnected"
            status_info["status"] = "unhealthy"
            logger.error(f"Redis health check failed: {str(e)}")

    return status_info
