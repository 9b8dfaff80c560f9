"""Pricing-related API endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api import deps
from app.schemas.pricing import (
    CancellationFeeRead,
    PricingQuoteRead,
    PricingQuoteRequest,
    SurgeStatusRead,
    TripRequest,
    VehicleClassRead,
)
from app.services.pricing_errors import (
    InvalidInputError,
    ServiceAreaError,
    UnknownVehicleError,
)
from app.services.pricing_service import FareCalculator, QuoteContext

router = APIRouter(prefix="/pricing", tags=["pricing"])

Calculator = Annotated[FareCalculator, Depends(deps.get_fare_calculator)]


def _context(payload: TripRequest) -> QuoteContext:
    return QuoteContext(
        trip_at=payload.trip_at,
        origin_code=payload.origin_code,
        destination_code=payload.destination_code,
        passenger_count=payload.passenger_count,
    )


def _unknown_vehicle(exc: UnknownVehicleError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/quote", response_model=PricingQuoteRead, summary="Quote a transfer")
async def quote_transfer(
    payload: PricingQuoteRequest, calculator: Calculator
) -> PricingQuoteRead:
    try:
        if not calculator.capacity_check(payload.vehicle_id, payload.passenger_count):
            vehicle = calculator.store.get_vehicle_config(payload.vehicle_id)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": "Vehicle capacity exceeded",
                    "max_capacity": vehicle.capacity.max_passengers,
                    "requested": payload.passenger_count,
                },
            )
        result = calculator.quote(
            payload.vehicle_id,
            payload.distance_miles,
            payload.duration_minutes,
            _context(payload),
            rounding=payload.rounding_strategy,
        )
    except UnknownVehicleError as exc:
        raise _unknown_vehicle(exc) from exc
    except InvalidInputError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    if isinstance(result, ServiceAreaError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": result.message,
                "max_service_distance": str(result.max_service_distance),
            },
        )
    return PricingQuoteRead.model_validate(result)


@router.post(
    "/compare",
    response_model=list[PricingQuoteRead],
    summary="Quote every vehicle class, cheapest first",
)
async def compare_vehicles(
    payload: TripRequest, calculator: Calculator
) -> list[PricingQuoteRead]:
    try:
        quotes = calculator.compare_across_vehicles(
            payload.distance_miles, payload.duration_minutes, _context(payload)
        )
    except InvalidInputError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return [PricingQuoteRead.model_validate(quote) for quote in quotes]


@router.get("/surge", response_model=SurgeStatusRead, summary="Active surcharges")
async def surge_status(
    calculator: Calculator,
    at: Annotated[datetime, Query(description="Local pickup date and time")],
) -> SurgeStatusRead:
    return SurgeStatusRead.model_validate(calculator.surge_status(at))


@router.get(
    "/vehicles", response_model=list[VehicleClassRead], summary="List vehicle classes"
)
async def list_vehicles(calculator: Calculator) -> list[VehicleClassRead]:
    return [
        VehicleClassRead.model_validate(vehicle)
        for vehicle in calculator.store.list_vehicles()
    ]


@router.get(
    "/vehicles/{vehicle_id}",
    response_model=VehicleClassRead,
    summary="Get a vehicle class",
)
async def get_vehicle(vehicle_id: str, calculator: Calculator) -> VehicleClassRead:
    try:
        vehicle = calculator.store.get_vehicle_config(vehicle_id)
    except UnknownVehicleError as exc:
        raise _unknown_vehicle(exc) from exc
    return VehicleClassRead.model_validate(vehicle)


@router.get(
    "/cancellation-fee",
    response_model=CancellationFeeRead,
    summary="Current cancellation fee",
)
async def cancellation_fee(calculator: Calculator) -> CancellationFeeRead:
    return CancellationFeeRead(amount=calculator.cancellation_fee())
