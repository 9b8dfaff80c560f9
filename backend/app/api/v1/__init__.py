"""Versioned API router."""

from fastapi import APIRouter

from . import health, pricing

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(pricing.router)

__all__ = ["router"]
