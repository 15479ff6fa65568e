from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.models.project import Project
from stageplan.models.stage import Stage
from stageplan.services.hierarchy import StageIndex
from stageplan.utils.decimal_math import money


UNSET = object()


@dataclass(frozen=True)
class StageView:
    stage: Stage
    is_leaf: bool
    effective_start: date | None
    effective_end: date | None
    effective_total: Decimal | None


def get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None or not project.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
    return project


def get_stage_or_404(db: Session, project_id: int, stage_id: int) -> Stage:
    stage = db.scalar(
        select(Stage).where(
            Stage.id == stage_id,
            Stage.project_id == project_id,
            Stage.is_deleted.is_(False),
        )
    )
    if stage is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stage not found.")
    return stage


def list_project_stages(db: Session, project_id: int) -> list[Stage]:
    return list(
        db.scalars(
            select(Stage)
            .where(Stage.project_id == project_id, Stage.is_deleted.is_(False))
            .order_by(Stage.level, Stage.position, Stage.id)
        ).all()
    )


def build_stage_index(db: Session, project_id: int) -> StageIndex:
    return StageIndex(list_project_stages(db, project_id))


def build_stage_views(stages: list[Stage]) -> list[StageView]:
    index = StageIndex(stages)
    views: list[StageView] = []
    for stage in stages:
        start, end = index.effective_date_range(stage.id)
        views.append(
            StageView(
                stage=stage,
                is_leaf=index.is_leaf(stage.id),
                effective_start=start,
                effective_end=end,
                effective_total=index.effective_total(stage.id),
            )
        )
    return views


def apply_schedule_edit(
    stage: Stage,
    *,
    start_date: date | None | object = UNSET,
    end_date: date | None | object = UNSET,
    quantity: Decimal | None = None,
    unit_price: Decimal | None = None,
    total_value: Decimal | None = None,
) -> bool:
    """Apply schedule field edits to a stage and report whether planned values need a recompute.

    Quantity and unit price edits recompute ``total_value`` as their product; an
    explicit ``total_value`` wins when both are supplied.
    """
    before = (stage.start_date, stage.end_date, money(stage.total_value or 0))

    if start_date is not UNSET:
        stage.start_date = start_date  # type: ignore[assignment]
    if end_date is not UNSET:
        stage.end_date = end_date  # type: ignore[assignment]
    if stage.start_date is not None and stage.end_date is not None and stage.end_date < stage.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date cannot be earlier than start_date.",
        )

    if quantity is not None:
        if quantity < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="quantity must be >= 0.")
        stage.quantity = quantity
    if unit_price is not None:
        if unit_price < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="unit_price must be >= 0.")
        stage.unit_price = money(unit_price)
    if total_value is not None:
        if total_value < 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="total_value must be >= 0.")
        stage.total_value = money(total_value)
    elif quantity is not None or unit_price is not None:
        stage.total_value = money(Decimal(stage.quantity or 0) * Decimal(stage.unit_price or 0))

    after = (stage.start_date, stage.end_date, money(stage.total_value or 0))
    return before != after
