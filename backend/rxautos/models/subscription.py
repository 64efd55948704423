"""Subscription model: paid plan windows per account."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from rxautos.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

SUBSCRIPTION_STATUSES = (
    "active",
    "pending_payment",
    "blocked",
    "cancelled",
    "trial",
    "promotional_active",
)

BILLING_CYCLES = ("WEEKLY", "BIWEEKLY", "MONTHLY", "QUARTERLY", "SEMIANNUALLY", "YEARLY")


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One billing window for an account. The newest row is the current one."""

    __tablename__ = "user_subscriptions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    plan_type: Mapped[str] = mapped_column(String(50), nullable=False)
    plan_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    # Stored for the provider; renewal windows do not read it.
    billing_cycle: Mapped[str] = mapped_column(String(20), nullable=False, default="MONTHLY")
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending_payment")

    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    grace_period_ends_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, user_id={self.user_id}, plan={self.plan_type}, status={self.status})>"
