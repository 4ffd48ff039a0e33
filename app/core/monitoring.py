"""Health checks and monitoring endpoints"""
import logging

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config.database import get_db, ping
from app.config.redis import ping_redis
from app.config.settings import get_settings

logger = logging.getLogger(__name__)

health_router = APIRouter()


@health_router.get("")
@health_router.get("/")
async def health_check():
    """Liveness"""
    return {"status": "healthy", "service": get_settings().APP_NAME}


@health_router.get("/detailed")
def detailed_health_check(db: Session = Depends(get_db)):
    """Readiness: the API is only useful while the database answers"""
    checks = {
        "api": "healthy",
        "database": "unknown",
        "lock_backend": get_settings().BOOKING_LOCK_BACKEND,
        "overall": "unknown"
    }

    try:
        ping(db)
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        checks["database"] = f"unhealthy: {str(e)}"

    if checks["lock_backend"] == "redis":
        try:
            ping_redis()
            checks["redis"] = "healthy"
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = f"unhealthy: {str(e)}"

    healthy = checks["database"] == "healthy" and checks.get("redis", "healthy") == "healthy"
    checks["overall"] = "healthy" if healthy else "degraded"
    return checks
