"""Health check routes."""

from fastapi import APIRouter, Request, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness: the process is serving requests."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(request: Request, response: Response) -> dict[str, str]:
    """Readiness: the database answers a trivial query."""
    database = request.app.state.database
    try:
        async with database.session() as session:
            await session.execute(text("SELECT 1"))
    except (RuntimeError, SQLAlchemyError):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unavailable"}
    return {"status": "ready"}
