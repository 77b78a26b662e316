"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from ridescrow.domain.enums import RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class DriverRegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    license_plate: str = Field(..., min_length=1, max_length=32)
    vehicle_type: str = Field(..., min_length=1, max_length=64)
    rate_per_km: int = Field(..., ge=0, description="Smallest currency unit per km.")
    payout_address: Optional[str] = Field(
        None,
        min_length=1,
        max_length=128,
        description="Where payouts go; defaults to the registering identity.",
    )


class RideCreateRequest(BaseModel):
    pickup: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., gt=0, description="Smallest currency unit.")


class AcceptAction(BaseModel):
    action: Literal["accept"]


class FundAction(BaseModel):
    action: Literal["fund"]
    value: int = Field(..., ge=0, description="Attached value; must equal the price.")


class CompleteAction(BaseModel):
    action: Literal["complete"]


class ConfirmAction(BaseModel):
    action: Literal["confirm"]


class CancelAction(BaseModel):
    action: Literal["cancel"]


class DriverCancelAction(BaseModel):
    action: Literal["driver_cancel"]


RideActionRequest = Annotated[
    Union[
        AcceptAction,
        FundAction,
        CompleteAction,
        ConfirmAction,
        CancelAction,
        DriverCancelAction,
    ],
    Field(discriminator="action"),
]


class AccountUpdateRequest(BaseModel):
    accepts_payments: bool


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    rider: str
    driver: Optional[str] = None
    pickup: str
    destination: str
    price: int
    status: RideStatus
    escrowed_amount: int = 0

    model_config = {"from_attributes": True}


class RideCounterResponse(BaseModel):
    ride_counter: int


class DriverResponse(BaseModel):
    identity: str
    is_registered: bool
    name: str = ""
    license_plate: str = ""
    vehicle_type: str = ""
    rate_per_km: int = 0
    payout_address: Optional[str] = None

    model_config = {"from_attributes": True}


class AccountResponse(BaseModel):
    identity: str
    balance: int
    accepts_payments: bool

    model_config = {"from_attributes": True}


class RideEventResponse(BaseModel):
    id: int
    ride_id: Optional[int] = None
    event_type: str
    payload: dict[str, Any] = {}
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CustodyResponse(BaseModel):
    total_escrowed: int
    custodial_balance: int
    balanced: bool

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    detail: str
