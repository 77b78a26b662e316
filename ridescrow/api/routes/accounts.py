"""
Account endpoints (authenticated)
=================================

GET   /api/v1/accounts/me -- caller's claimable balance
PATCH /api/v1/accounts/me -- open / close the caller's account to transfers
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.api.dependencies import get_current_identity, get_db, get_policy
from ridescrow.api.middleware import limiter
from ridescrow.api.schemas import AccountResponse, AccountUpdateRequest
from ridescrow.config import settings
from ridescrow.domain.entities import LedgerPolicy
from ridescrow.services.reader import LedgerReader
from ridescrow.services.ride_ledger import RideLedger

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("/me", response_model=AccountResponse, summary="Caller's account")
@limiter.limit(settings.rate_limit)
async def get_my_account(
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    return AccountResponse.model_validate(await LedgerReader(db).get_account(identity))


@router.patch(
    "/me",
    response_model=AccountResponse,
    summary="Accept or reject incoming transfers",
    description=(
        "An account that rejects transfers makes payouts and refunds to it "
        "fail with TransferFailed; the funds stay in escrow."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_my_account(
    request: Request,
    body: AccountUpdateRequest,
    db: AsyncSession = Depends(get_db),
    identity: str = Depends(get_current_identity),
    policy: LedgerPolicy = Depends(get_policy),
):
    account = await RideLedger(db, policy).set_accepts_payments(
        identity, body.accepts_payments
    )
    return AccountResponse(
        identity=account.identity,
        balance=account.balance or 0,
        accepts_payments=bool(account.accepts_payments),
    )
