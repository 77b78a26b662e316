"""
Driver endpoints (authenticated)
================================

POST /api/v1/drivers            -- register / update the caller's profile
GET  /api/v1/drivers/{identity} -- profile (zero-valued if unregistered)
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.api.dependencies import get_current_identity, get_db
from ridescrow.api.middleware import limiter
from ridescrow.api.schemas import DriverRegisterRequest, DriverResponse, ErrorResponse
from ridescrow.config import settings
from ridescrow.services.driver_registry import DriverRegistry
from ridescrow.services.reader import LedgerReader

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post(
    "",
    response_model=DriverResponse,
    summary="Register the caller as a driver",
    description="Re-registering overwrites every field of the caller's profile.",
    responses={400: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def register_driver(
    request: Request,
    body: DriverRegisterRequest,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    driver = await DriverRegistry(db).register_driver(
        identity,
        body.name,
        body.license_plate,
        body.vehicle_type,
        body.rate_per_km,
        payout_address=body.payout_address,
    )
    return DriverResponse.model_validate(driver)


@router.get(
    "/{identity}",
    response_model=DriverResponse,
    summary="Get a driver profile",
)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    identity: str,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(get_current_identity),
):
    return DriverResponse.model_validate(await LedgerReader(db).get_driver(identity))
