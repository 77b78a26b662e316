"""
Driver Registry
===============

identity -> driver profile.  The caller always registers *itself*; a second
registration from the same identity overwrites every field, and
``is_registered`` is never reset.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.domain.entities import Driver
from ridescrow.domain.enums import EventType
from ridescrow.domain.validation import require_amount, require_text
from ridescrow.infrastructure.repositories import (
    DriverRepository,
    RideEventRepository,
    driver_to_entity,
)

logger = logging.getLogger(__name__)


class DriverRegistry:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.drivers = DriverRepository(session)
        self.events = RideEventRepository(session)

    async def register_driver(
        self,
        caller: str,
        name: str,
        license_plate: str,
        vehicle_type: str,
        rate_per_km: int,
        payout_address: Optional[str] = None,
    ) -> Driver:
        caller = require_text("caller", caller)
        name = require_text("name", name)
        license_plate = require_text("license_plate", license_plate)
        vehicle_type = require_text("vehicle_type", vehicle_type)
        rate_per_km = require_amount("rate_per_km", rate_per_km)
        payee = (
            require_text("payout_address", payout_address)
            if payout_address is not None
            else caller
        )

        row = await self.drivers.upsert(
            identity=caller,
            name=name,
            license_plate=license_plate,
            vehicle_type=vehicle_type,
            rate_per_km=rate_per_km,
            payout_address=payee,
        )
        await self.events.add(
            EventType.DRIVER_REGISTERED, {"identity": caller, "name": name}
        )
        logger.info("Driver registered: %s (%s)", caller, name)
        return driver_to_entity(row)

    async def get_driver(self, identity: str) -> Driver:
        """Return the profile, or a zero-valued unregistered one."""
        row = await self.drivers.get_by_identity(identity)
        if row is None:
            return Driver.unregistered(identity)
        return driver_to_entity(row)
