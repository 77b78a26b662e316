"""Initial ledger schema: drivers, rides, counters, accounts, journal, events.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ride_status = sa.Enum(
    "REQUESTED",
    "ACCEPTED",
    "FUNDED",
    "COMPLETED",
    "FINALIZED",
    "CANCELLED",
    name="ridestatus",
)
ledger_entry_type = sa.Enum(
    "ESCROW_DEPOSIT", "PAYOUT", "REFUND", name="ledgerentrytype"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("identity", sa.String(128), primary_key=True),
        sa.Column("is_registered", sa.Boolean, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("license_plate", sa.String(32), nullable=False),
        sa.Column("vehicle_type", sa.String(64), nullable=False),
        sa.Column("rate_per_km", sa.BigInteger, nullable=False),
        sa.Column("payout_address", sa.String(128), nullable=False),
        *_timestamps(),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("rider", sa.String(128), nullable=False),
        sa.Column("driver", sa.String(128), nullable=True),
        sa.Column("pickup", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("price", sa.BigInteger, nullable=False),
        sa.Column("status", ride_status, nullable=False),
        sa.Column("escrowed_amount", sa.BigInteger, nullable=False),
        *_timestamps(),
        sa.CheckConstraint("price > 0", name="ck_rides_price_positive"),
        sa.CheckConstraint("escrowed_amount >= 0", name="ck_rides_escrow_non_negative"),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_rider", "rides", ["rider"])
    op.create_index("idx_rides_driver_status", "rides", ["driver", "status"])

    # ── ledger_counters ───────────────────────────────────────────────
    counters = op.create_table(
        "ledger_counters",
        sa.Column("name", sa.String(32), primary_key=True),
        sa.Column("value", sa.Integer, nullable=False),
    )
    op.bulk_insert(counters, [{"name": "ride", "value": 0}])

    # ── accounts ──────────────────────────────────────────────────────
    op.create_table(
        "accounts",
        sa.Column("identity", sa.String(128), primary_key=True),
        sa.Column("balance", sa.BigInteger, nullable=False),
        sa.Column("accepts_payments", sa.Boolean, nullable=False),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
    )

    # ── ledger_entries ────────────────────────────────────────────────
    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("entry_type", ledger_entry_type, nullable=False),
        sa.Column("account", sa.String(128), nullable=False),
        sa.Column("amount", sa.BigInteger, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_ledger_entries_ride", "ledger_entries", ["ride_id"])

    # ── ride_events ───────────────────────────────────────────────────
    op.create_table(
        "ride_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=True),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_ride_events_ride", "ride_events", ["ride_id"])
    op.create_index("idx_ride_events_published", "ride_events", ["published_at"])


def downgrade() -> None:
    op.drop_table("ride_events")
    op.drop_table("ledger_entries")
    op.drop_table("accounts")
    op.drop_table("ledger_counters")
    op.drop_table("rides")
    op.drop_table("drivers")
    ledger_entry_type.drop(op.get_bind(), checkfirst=True)
    ride_status.drop(op.get_bind(), checkfirst=True)
