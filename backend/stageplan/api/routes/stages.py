from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.api.deps import get_db, get_scheduler
from stageplan.api.routes.projects import stage_out
from stageplan.models.enums import MonthlyValueType
from stageplan.models.monthly_value import StageMonthlyValue
from stageplan.schemas.stages import (
    MonthlyValueOut,
    PlannedRecomputeResponse,
    ProjectSyncResponse,
    StageOut,
    StageScheduleUpdateRequest,
    StageScheduleUpdateResponse,
)
from stageplan.services.distribution import recompute_planned_values, sync_project_planned_values
from stageplan.services.scheduler import RecomputeScheduler
from stageplan.services.stages import (
    UNSET,
    apply_schedule_edit,
    build_stage_views,
    get_project_or_404,
    get_stage_or_404,
    list_project_stages,
)


router = APIRouter(prefix="/projects/{project_id}", tags=["stages"])


def _stage_view_out(db: Session, project_id: int, stage_id: int) -> StageOut:
    views = build_stage_views(list_project_stages(db, project_id))
    return stage_out(next(view for view in views if view.stage.id == stage_id))


def _stage_rows(db: Session, stage_id: int) -> list[StageMonthlyValue]:
    return list(
        db.scalars(
            select(StageMonthlyValue)
            .where(StageMonthlyValue.stage_id == stage_id)
            .order_by(StageMonthlyValue.value_type, StageMonthlyValue.month_key)
        ).all()
    )


@router.patch("/stages/{stage_id}/schedule", response_model=StageScheduleUpdateResponse)
def update_stage_schedule(
    project_id: int,
    stage_id: int,
    payload: StageScheduleUpdateRequest,
    db: Session = Depends(get_db),
    scheduler: RecomputeScheduler = Depends(get_scheduler),
):
    get_project_or_404(db, project_id)
    stage = get_stage_or_404(db, project_id, stage_id)
    views = {view.stage.id: view for view in build_stage_views(list_project_stages(db, project_id))}
    if not views[stage.id].is_leaf:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Parent stages aggregate their children and cannot be edited directly.",
        )

    fields = payload.model_fields_set
    changed = apply_schedule_edit(
        stage,
        start_date=payload.start_date if "start_date" in fields else UNSET,
        end_date=payload.end_date if "end_date" in fields else UNSET,
        quantity=payload.quantity,
        unit_price=payload.unit_price,
        total_value=payload.total_value,
    )
    db.commit()
    if changed:
        scheduler.schedule_threadsafe(project_id, stage.id)

    return StageScheduleUpdateResponse(
        stage=_stage_view_out(db, project_id, stage.id),
        recompute_scheduled=changed,
        debounce_seconds=scheduler.delay_seconds,
    )


@router.post("/stages/{stage_id}/planned/recompute", response_model=PlannedRecomputeResponse)
def recompute_stage_planned(project_id: int, stage_id: int, db: Session = Depends(get_db)):
    get_project_or_404(db, project_id)
    stage = get_stage_or_404(db, project_id, stage_id)
    result = recompute_planned_values(db, stage)
    db.commit()
    return PlannedRecomputeResponse(
        stage_id=stage.id,
        total=result.total,
        inserted=result.inserted,
        updated=result.updated,
        deleted=result.deleted,
        rows=[
            MonthlyValueOut.model_validate(row)
            for row in _stage_rows(db, stage.id)
            if row.value_type == MonthlyValueType.planned
        ],
    )


@router.post("/planned/sync", response_model=ProjectSyncResponse)
def sync_planned(project_id: int, db: Session = Depends(get_db)):
    get_project_or_404(db, project_id)
    result = sync_project_planned_values(db, project_id)
    db.commit()
    return ProjectSyncResponse(
        project_id=result.project_id,
        stages_scheduled=result.stages_scheduled,
        rows_written=result.rows_written,
        rows_deleted=result.rows_deleted,
    )


@router.get("/stages/{stage_id}/monthly-values", response_model=list[MonthlyValueOut])
def list_stage_monthly_values(project_id: int, stage_id: int, db: Session = Depends(get_db)):
    get_project_or_404(db, project_id)
    stage = get_stage_or_404(db, project_id, stage_id)
    return _stage_rows(db, stage.id)
