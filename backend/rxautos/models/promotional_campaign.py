"""Promotional campaign model."""

from datetime import datetime

from sqlalchemy import Boolean, String, Text, false, true
from sqlalchemy.orm import Mapped, mapped_column

from rxautos.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class PromotionalCampaign(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Grants ``free_days`` of access to accounts that enroll while it runs."""

    __tablename__ = "promotional_campaigns"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    free_days: Mapped[int] = mapped_column(nullable=False, default=30)
    start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    applies_to_new_users: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    requires_valid_document: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    max_uses: Mapped[int | None] = mapped_column(nullable=True)  # None = uncapped
    current_uses: Mapped[int] = mapped_column(nullable=False, default=0)

    @property
    def has_uses_left(self) -> bool:
        return self.max_uses is None or self.current_uses < self.max_uses

    def __repr__(self) -> str:
        return f"<PromotionalCampaign(name={self.name!r}, uses={self.current_uses}/{self.max_uses})>"
