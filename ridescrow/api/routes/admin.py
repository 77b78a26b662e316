"""
Admin / observability endpoints
===============================

GET /api/v1/admin/custody -- escrow total vs. journal custodial balance
GET /api/v1/admin/health  -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.api.dependencies import get_read_db
from ridescrow.api.middleware import limiter
from ridescrow.api.schemas import CustodyResponse, HealthResponse
from ridescrow.config import settings
from ridescrow.services.reader import LedgerReader

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/custody",
    response_model=CustodyResponse,
    summary="Check that escrow balances match the custodial journal",
)
@limiter.limit(settings.rate_limit)
async def custody(
    request: Request,
    db: AsyncSession = Depends(get_read_db),
):
    report = await LedgerReader(db).custody_report()
    return CustodyResponse(
        total_escrowed=report.total_escrowed,
        custodial_balance=report.custodial_balance,
        balanced=report.balanced,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
