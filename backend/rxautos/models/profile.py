"""Profile model: the account of a seller or agency."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rxautos.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Profile(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Registered account. Plan and billing state live here; rows are never deleted."""

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    document: Mapped[str | None] = mapped_column(String(14), nullable=True)  # CPF or CNPJ digits
    account_type: Mapped[str] = mapped_column(String(20), nullable=False, default="individual")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Plan
    plan: Mapped[str | None] = mapped_column(String(50), nullable=True)
    plan_started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    plan_ends_at: Mapped[datetime | None] = mapped_column(nullable=True)
    unlimited_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    # Asaas identifiers
    billing_customer_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    billing_subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Promotional window
    promotional_campaign_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("promotional_campaigns.id", ondelete="SET NULL"),
        nullable=True,
    )
    promotional_started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    promotional_ends_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    vehicles: Mapped[list["Vehicle"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="owner", lazy="noload", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r} plan={self.plan!r}>"
