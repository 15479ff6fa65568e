from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stageplan.db.base import Base
from stageplan.models.enums import MonthlyValueType


class StageMonthlyValue(Base):
    __tablename__ = "stage_monthly_values"
    __table_args__ = (
        UniqueConstraint(
            "stage_id", "month_key", "value_type", name="uq_stage_monthly_values_stage_month_type"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stage_id: Mapped[int] = mapped_column(
        ForeignKey("construction_stages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    month_key: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    value: Mapped[Decimal] = mapped_column(Numeric(24, 2), nullable=False)
    value_type: Mapped[MonthlyValueType] = mapped_column(
        Enum(MonthlyValueType, name="monthly_value_type"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    stage: Mapped["Stage"] = relationship("Stage", back_populates="monthly_values")
