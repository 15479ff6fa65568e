from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stageplan.api.deps import get_db, get_locale
from stageplan.models.enums import Granularity
from stageplan.schemas.scurve import (
    ScheduleColumnOut,
    ScheduleGridResponse,
    ScheduleRowOut,
    SCurvePointOut,
    SCurveResponse,
)
from stageplan.services.schedule import project_schedule_grid
from stageplan.services.scurve import project_s_curve
from stageplan.services.stages import get_project_or_404


router = APIRouter(prefix="/projects/{project_id}", tags=["s-curve"])


@router.get("/s-curve", response_model=SCurveResponse)
def get_s_curve(
    project_id: int,
    db: Session = Depends(get_db),
    locale: str = Depends(get_locale),
):
    get_project_or_404(db, project_id)
    result = project_s_curve(db, project_id, locale=locale)
    return SCurveResponse(
        status=result.status.value,
        points=[
            SCurvePointOut(
                month_key=point.month_key,
                label=point.label,
                planned_monthly=point.planned_monthly,
                actual_monthly=point.actual_monthly,
                planned_cumulative=point.planned_cumulative,
                actual_cumulative=point.actual_cumulative,
                deviation_cumulative=point.deviation_cumulative,
            )
            for point in result.points
        ],
    )


@router.get("/schedule", response_model=ScheduleGridResponse)
def get_schedule_grid(
    project_id: int,
    granularity: Granularity = Query(default=Granularity.monthly),
    db: Session = Depends(get_db),
    locale: str = Depends(get_locale),
):
    get_project_or_404(db, project_id)
    grid = project_schedule_grid(db, project_id, granularity=granularity, locale=locale)
    return ScheduleGridResponse(
        granularity=grid.granularity,
        columns=[
            ScheduleColumnOut(key=column.key, label=column.label, month_keys=column.month_keys)
            for column in grid.columns
        ],
        rows=[
            ScheduleRowOut(
                stage_id=row.stage_id,
                code=row.code,
                name=row.name,
                level=row.level,
                is_leaf=row.is_leaf,
                planned=row.planned,
                actual=row.actual,
                planned_total=row.planned_total,
                actual_total=row.actual_total,
            )
            for row in grid.rows
        ],
    )
