# empires/models/building.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from empires.database import Base, utcnow


class Building(Base):
    __tablename__ = "buildings"
    __table_args__ = (
        UniqueConstraint("village_id", "slot_position", name="uq_buildings_village_slot"),
        # One builder per village: at most one row under construction
        Index(
            "uq_buildings_one_active_per_village",
            "village_id",
            unique=True,
            sqlite_where=text("is_under_construction = 1"),
            postgresql_where=text("is_under_construction"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    village_id: Mapped[int] = mapped_column(ForeignKey("villages.id"), index=True, nullable=False)
    village: Mapped["Village"] = relationship(back_populates="buildings")

    # Catalog id, e.g. 1 = Woodcutter, 15 = Main Building
    type: Mapped[int] = mapped_column(Integer, nullable=False)

    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0 = slot reserved, not built yet

    # 1..18 resource fields, 19..40 village slots
    slot_position: Mapped[int] = mapped_column(Integer, nullable=False)

    is_under_construction: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completes_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
    build_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Snapshot of what was paid (refund basis)
    cost_wood: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_clay: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_iron: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_crop: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
