"""Health checks and monitoring endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from agenda.config.database import get_db
from agenda.config.settings import get_settings

health_router = APIRouter()


def _check_database(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
        return "healthy"
    except Exception as e:
        return f"unhealthy: {str(e)}"


def _check_lock_backend(backend: str) -> str:
    if backend != "redis":
        return "local"
    try:
        from agenda.config.redis import get_redis
        get_redis().ping()
        return "healthy"
    except Exception as e:
        return f"unhealthy: {str(e)}"


@health_router.get("/")
def health_check():
    """Liveness probe"""
    return {"status": "healthy", "service": "agenda-api"}


@health_router.get("/detailed")
def detailed_health_check(db: Session = Depends(get_db)):
    """Readiness: database plus the lock backend bookings depend on"""
    settings = get_settings()
    checks = {
        "database": _check_database(db),
        "schedule_locks": _check_lock_backend(settings.SCHEDULE_LOCK_BACKEND),
    }
    degraded = any(value.startswith("unhealthy") for value in checks.values())

    return {
        "overall": "degraded" if degraded else "healthy",
        "checks": checks,
        "scheduling": {
            "max_overrides_per_day": settings.MAX_OVERRIDES_PER_DAY,
            "recurrence_max_occurrences": settings.RECURRENCE_MAX_OCCURRENCES,
            "timezone": settings.DEFAULT_TIMEZONE,
        },
    }
