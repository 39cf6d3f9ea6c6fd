"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripgate.api.models import HealthResponse
from tripgate.db.session import get_db

log = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz(db: Session = Depends(get_db)) -> HealthResponse:
    """Health check endpoint.

    Reports whether the database answers a trivial query.
    """
    try:
        db.execute(text("SELECT 1"))
        return HealthResponse(ok=True, database=True)
    except SQLAlchemyError as e:
        log.warning(f"Health check warning: {e}")
        return HealthResponse(ok=True, database=False)
