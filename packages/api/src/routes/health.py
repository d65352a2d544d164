# This project was developed with assistance from AI tools.
"""Liveness and database connectivity probe."""

from fastapi import APIRouter, Depends
from tasheel_db import DatabaseService, get_db_service

from .. import __version__
from ..schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=list[HealthResponse])
async def health_check(
    db_service: DatabaseService = Depends(get_db_service),
) -> list[HealthResponse]:
    """Report API and database health. Always 200; inspect each item's status."""
    api = HealthResponse(
        name="API", status="healthy", message="API is running", version=__version__
    )
    database = HealthResponse(**await db_service.health_check())
    return [api, database]
