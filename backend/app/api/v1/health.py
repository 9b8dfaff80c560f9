"""Health check endpoints."""

from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from app.api import deps
from app.core.config import get_settings
from app.services.pricing_service import FareCalculator

router = APIRouter()


@router.get("", summary="Service health status")
async def healthcheck(
    calculator: Annotated[FareCalculator, Depends(deps.get_fare_calculator)],
) -> dict[str, Any]:
    """Return application health metadata."""
    settings = get_settings()
    config = calculator.store.snapshot()
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": settings.app_env,
        "vehicle_classes": len(config.vehicles),
    }
