"""Trial period model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column

from rxautos.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class TrialPeriod(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Free trial window. One per account, ever."""

    __tablename__ = "trial_periods"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    plan_type: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime] = mapped_column(nullable=False)
    converted_to_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    def __repr__(self) -> str:
        return f"<TrialPeriod(user_id={self.user_id}, ends={self.end_date:%Y-%m-%d})>"
