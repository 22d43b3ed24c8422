from fastapi import APIRouter, Depends
from pymongo.database import Database

from attribution.core.redis import get_redis
from attribution.database.mongo import get_db

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Database = Depends(get_db)):
    """Liveness plus reachability of MongoDB and Redis."""
    checks = {}
    try:
        db.command("ping")
        checks["mongodb"] = "ok"
    except Exception as e:
        checks["mongodb"] = f"error: {e}"

    try:
        get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    healthy = all(value == "ok" for value in checks.values())
    return {"status": "ok" if healthy else "degraded", "checks": checks}
