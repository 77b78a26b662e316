"""
Ride endpoints (authenticated)
==============================

POST /api/v1/rides                    -- request a ride (caller becomes rider)
POST /api/v1/rides/{ride_id}/actions  -- accept | fund | complete | confirm | cancel | driver_cancel
GET  /api/v1/rides/counter            -- current ride counter
GET  /api/v1/rides                    -- every ride, ids 1..counter
GET  /api/v1/rides/{ride_id}          -- ride snapshot
GET  /api/v1/rides/{ride_id}/events   -- state-change history
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.api.dependencies import get_current_identity, get_db, get_policy
from ridescrow.api.middleware import limiter
from ridescrow.api.schemas import (
    ErrorResponse,
    RideActionRequest,
    RideCounterResponse,
    RideCreateRequest,
    RideEventResponse,
    RideResponse,
)
from ridescrow.config import settings
from ridescrow.domain.commands import parse_action
from ridescrow.domain.entities import LedgerPolicy
from ridescrow.services.reader import LedgerReader
from ridescrow.services.ride_ledger import RideLedger

router = APIRouter(prefix="/rides", tags=["rides"])

_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Request a ride",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def request_ride(
    request: Request,
    body: RideCreateRequest,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    policy: LedgerPolicy = Depends(get_policy),
):
    ride = await RideLedger(db, policy).request_ride(
        identity, body.pickup, body.destination, body.price
    )
    return RideResponse.model_validate(ride)


@router.post(
    "/{ride_id}/actions",
    response_model=RideResponse,
    summary="Apply a lifecycle transition",
    description=(
        "Accept (driver), fund with the exact price (rider), complete "
        "(driver), confirm arrival and release escrow (rider), cancel "
        "(rider) or driver_cancel (accepted driver)."
    ),
    responses={**_ERRORS, 422: {"model": ErrorResponse}, 424: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def apply_action(
    request: Request,
    ride_id: int,
    body: RideActionRequest,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    policy: LedgerPolicy = Depends(get_policy),
):
    command = parse_action(body.action, getattr(body, "value", None))
    ride = await RideLedger(db, policy).execute(ride_id, command, identity)
    return RideResponse.model_validate(ride)


@router.get(
    "/counter",
    response_model=RideCounterResponse,
    summary="Current ride counter",
)
@limiter.limit(settings.rate_limit)
async def ride_counter(
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    return RideCounterResponse(ride_counter=await LedgerReader(db).ride_counter())


@router.get(
    "",
    response_model=list[RideResponse],
    summary="Enumerate rides 1..counter",
)
@limiter.limit(settings.rate_limit)
async def list_rides(
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    return [RideResponse.model_validate(r) for r in await LedgerReader(db).list_rides()]


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get a ride",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    return RideResponse.model_validate(await LedgerReader(db).get_ride(ride_id))


@router.get(
    "/{ride_id}/events",
    response_model=list[RideEventResponse],
    summary="Ride state-change history (oldest first)",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def ride_events(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    events = await LedgerReader(db).ride_events(ride_id)
    return [RideEventResponse.model_validate(e) for e in events]
