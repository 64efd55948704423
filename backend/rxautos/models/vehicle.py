"""Vehicle model: a listing owned by a profile."""

import uuid
from decimal import Decimal

from sqlalchemy import JSON, Boolean, ForeignKey, Numeric, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rxautos.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Vehicle(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A car, motorcycle or truck listed for sale."""

    __tablename__ = "vehicles"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(150), nullable=False)
    model_year: Mapped[int] = mapped_column(nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    mileage_km: Mapped[int | None] = mapped_column(default=None)
    fuel: Mapped[str | None] = mapped_column(String(30), default=None)
    transmission: Mapped[str | None] = mapped_column(String(30), default=None)
    color: Mapped[str | None] = mapped_column(String(50), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    city: Mapped[str | None] = mapped_column(String(100), default=None)
    state: Mapped[str | None] = mapped_column(String(2), default=None)
    photos: Mapped[list | None] = mapped_column(JSON, default=list)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available")  # available, sold, inactive

    # Relationships
    owner: Mapped["Profile"] = relationship(back_populates="vehicles", lazy="noload")  # type: ignore[name-defined]  # noqa: F821

    def __repr__(self) -> str:
        return f"<Vehicle(id={self.id}, {self.brand} {self.model} {self.model_year})>"
