# empires/models/village.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from empires.database import Base, utcnow


class Village(Base):
    __tablename__ = "villages"
    __table_args__ = (
        CheckConstraint("wood >= 0 AND clay >= 0 AND iron >= 0 AND crop >= 0", name="ck_villages_stock_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Ownership (auth lives outside this service; just the owner's id)
    owner_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)

    name: Mapped[str] = mapped_column(String(40), nullable=False)

    # Map position (tile coords)
    x: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    y: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    # Stock
    wood: Mapped[int] = mapped_column(Integer, default=750, nullable=False)
    clay: Mapped[int] = mapped_column(Integer, default=750, nullable=False)
    iron: Mapped[int] = mapped_column(Integer, default=750, nullable=False)
    crop: Mapped[int] = mapped_column(Integer, default=750, nullable=False)

    # Production rates (per hour), derived from buildings
    wood_rate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    clay_rate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    iron_rate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    crop_rate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Fractional accrual not yet credited (0 <= carry < 1)
    wood_carry: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    clay_carry: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    iron_carry: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    crop_carry: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # Storage caps: warehouse bounds wood/clay/iron, granary bounds crop
    warehouse: Mapped[int] = mapped_column(Integer, default=800, nullable=False)
    granary: Mapped[int] = mapped_column(Integer, default=800, nullable=False)

    population: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Accrual clock (naive UTC)
    last_update: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    buildings: Mapped[list["Building"]] = relationship(
        back_populates="village",
        order_by="Building.slot_position",
    )


from empires.models.building import Building  # noqa: E402, F401
