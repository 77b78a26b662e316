"""
SQLAlchemy ORM models -- the ledger's tables.

Tables
------
* ``drivers``          -- driver profiles keyed by identity
* ``rides``            -- ride records keyed by the sequential ride id
* ``ledger_counters``  -- named gapless counters (``ride`` allocates ride ids)
* ``accounts``         -- claimable balances credited by payouts / refunds
* ``ledger_entries``   -- append-only journal of every fund movement
* ``ride_events``      -- durable state-change records (notification outbox)

Indexes
-------
* **B-Tree** on ``rides.status`` / ``rides.driver`` for the per-driver
  concurrency check, on ``ride_events.published_at`` for the relay, and on
  ``ledger_entries.ride_id`` for custody audits.
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from ridescrow.domain.enums import LedgerEntryType, RideStatus

IDENTITY_LENGTH = 128


class DriverModel(Base):
    __tablename__ = "drivers"

    identity = Column(String(IDENTITY_LENGTH), primary_key=True)
    is_registered = Column(Boolean, default=True, nullable=False)
    name = Column(String(120), nullable=False)
    license_plate = Column(String(32), nullable=False)
    vehicle_type = Column(String(64), nullable=False)
    rate_per_km = Column(BigInteger, default=0, nullable=False)
    payout_address = Column(String(IDENTITY_LENGTH), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class RideModel(Base):
    __tablename__ = "rides"

    # Assigned from the ``ride`` counter, never by the database.
    id = Column(Integer, primary_key=True, autoincrement=False)
    rider = Column(String(IDENTITY_LENGTH), nullable=False)
    driver = Column(String(IDENTITY_LENGTH), nullable=True)
    pickup = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    price = Column(BigInteger, nullable=False)
    status = Column(Enum(RideStatus), default=RideStatus.REQUESTED, nullable=False)
    escrowed_amount = Column(BigInteger, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_rides_price_positive"),
        CheckConstraint("escrowed_amount >= 0", name="ck_rides_escrow_non_negative"),
        Index("idx_rides_status", "status"),
        Index("idx_rides_rider", "rider"),
        Index("idx_rides_driver_status", "driver", "status"),
    )


class LedgerCounterModel(Base):
    __tablename__ = "ledger_counters"

    name = Column(String(32), primary_key=True)
    value = Column(Integer, default=0, nullable=False)


class AccountModel(Base):
    __tablename__ = "accounts"

    identity = Column(String(IDENTITY_LENGTH), primary_key=True)
    balance = Column(BigInteger, default=0, nullable=False)
    accepts_payments = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )


class LedgerEntryModel(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    entry_type = Column(Enum(LedgerEntryType), nullable=False)
    account = Column(String(IDENTITY_LENGTH), nullable=False)
    amount = Column(BigInteger, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_ledger_entries_ride", "ride_id"),)


class RideEventModel(Base):
    __tablename__ = "ride_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    event_type = Column(String(32), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    published_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_ride_events_ride", "ride_id"),
        Index("idx_ride_events_published", "published_at"),
    )
