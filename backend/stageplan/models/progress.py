from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, Numeric, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stageplan.db.base import Base
from stageplan.models.enums import ProgressEventType


class ProgressEvent(Base):
    __tablename__ = "progress_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stage_id: Mapped[int] = mapped_column(
        ForeignKey("construction_stages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[ProgressEventType] = mapped_column(
        Enum(ProgressEventType, name="progress_event_type"),
        nullable=False,
    )
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(24, 4), nullable=True)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(24, 2), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(24, 2), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reverses_event_id: Mapped[int | None] = mapped_column(
        ForeignKey("progress_events.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    stage: Mapped["Stage"] = relationship("Stage", back_populates="progress_events")
