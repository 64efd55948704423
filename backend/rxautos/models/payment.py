"""Payment model: local mirror of Asaas payments, written by the webhook."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rxautos.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Payment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """At most one row per Asaas payment id (upsert target)."""

    __tablename__ = "payments"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    external_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    external_customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    external_subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    external_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    billing_type: Mapped[str | None] = mapped_column(String(30), nullable=True)  # PIX, BOLETO, CREDIT_CARD
    status: Mapped[str] = mapped_column(String(40), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    payment_date: Mapped[date | None] = mapped_column(nullable=True)

    invoice_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    bank_slip_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Timestamp of the last webhook event applied to this row.
    last_event_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Payment(external_id={self.external_id!r}, status={self.status!r})>"
