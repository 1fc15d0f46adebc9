"""Health endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from user_auth.database import DB_HEALTHY
from user_auth.database import health_check as db_health_check

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    The service is degraded when the users store is unreachable or its
    schema is incomplete; account endpoints fail in either case.

    Returns:
        Status, database state, and timestamp in ISO8601 format
    """
    db_state = await db_health_check()
    return {
        "status": "healthy" if db_state == DB_HEALTHY else "degraded",
        "database": db_state,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
