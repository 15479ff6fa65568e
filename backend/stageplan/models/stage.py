from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stageplan.db.base import Base
from stageplan.models.enums import StageKind


class Stage(Base):
    __tablename__ = "construction_stages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("construction_stages.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    kind: Mapped[StageKind] = mapped_column(
        Enum(StageKind, name="stage_kind"),
        default=StageKind.service,
        nullable=False,
    )

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(24, 4), default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    total_value: Mapped[Decimal] = mapped_column(Numeric(24, 2), default=0, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    project: Mapped["Project"] = relationship("Project", back_populates="stages")
    monthly_values: Mapped[list["StageMonthlyValue"]] = relationship(
        "StageMonthlyValue", back_populates="stage", cascade="all, delete-orphan"
    )
    progress_events: Mapped[list["ProgressEvent"]] = relationship(
        "ProgressEvent", back_populates="stage", cascade="all, delete-orphan"
    )
