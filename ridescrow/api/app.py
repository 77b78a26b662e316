"""
FastAPI application factory.

* Registers routes for rides, drivers, accounts, the public mirror and admin.
* Starts / stops the notification relay worker via lifespan events.
* Maps ledger errors to ``{"error": kind, "detail": message}`` responses.
* Applies rate-limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridescrow.api.middleware import limiter
from ridescrow.api.routes import accounts, admin, drivers, public, rides
from ridescrow.config import settings
from ridescrow.domain.errors import LedgerError
from ridescrow.workers import relay as _relay

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the notification relay on startup; stop on shutdown."""
    await _relay.start_relay_loop()
    yield
    await _relay.stop_relay_loop()


async def _ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Escrow Ledger API",
        description=(
            "Coordinates rider/driver ride transactions through a strict "
            "lifecycle state machine with escrowed payment: request, accept, "
            "fund, complete, confirm arrival, or cancel."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Ledger rejections
    app.add_exception_handler(LedgerError, _ledger_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(accounts.router, prefix="/api/v1")
    app.include_router(public.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
