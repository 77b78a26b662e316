"""
Public read mirror (anonymous)
==============================

GET /api/v1/public/rides/counter
GET /api/v1/public/rides
GET /api/v1/public/rides/{ride_id}
GET /api/v1/public/drivers/{identity}
GET /api/v1/public/accounts/{identity}

No credentials; served from ``read_session_factory``.  Uses the same
``LedgerReader`` as the authenticated routes, so both return the same
snapshot for the same committed state.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.api.dependencies import get_read_db
from ridescrow.api.middleware import limiter
from ridescrow.api.schemas import (
    AccountResponse,
    DriverResponse,
    ErrorResponse,
    RideCounterResponse,
    RideResponse,
)
from ridescrow.config import settings
from ridescrow.services.reader import LedgerReader

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/rides/counter", response_model=RideCounterResponse)
@limiter.limit(settings.rate_limit)
async def ride_counter(request: Request, db: AsyncSession = Depends(get_read_db)):
    return RideCounterResponse(ride_counter=await LedgerReader(db).ride_counter())


@router.get("/rides", response_model=list[RideResponse])
@limiter.limit(settings.rate_limit)
async def list_rides(request: Request, db: AsyncSession = Depends(get_read_db)):
    return [RideResponse.model_validate(r) for r in await LedgerReader(db).list_rides()]


@router.get(
    "/rides/{ride_id}",
    response_model=RideResponse,
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request, ride_id: int, db: AsyncSession = Depends(get_read_db)
):
    return RideResponse.model_validate(await LedgerReader(db).get_ride(ride_id))


@router.get("/drivers/{identity}", response_model=DriverResponse)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request, identity: str, db: AsyncSession = Depends(get_read_db)
):
    return DriverResponse.model_validate(await LedgerReader(db).get_driver(identity))


@router.get("/accounts/{identity}", response_model=AccountResponse)
@limiter.limit(settings.rate_limit)
async def get_account(
    request: Request, identity: str, db: AsyncSession = Depends(get_read_db)
):
    return AccountResponse.model_validate(await LedgerReader(db).get_account(identity))
