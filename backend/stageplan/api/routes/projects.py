from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.api.deps import get_db
from stageplan.models.project import Project
from stageplan.schemas.projects import ProjectOut
from stageplan.schemas.stages import StageOut
from stageplan.services.stages import StageView, build_stage_views, get_project_or_404, list_project_stages


router = APIRouter(prefix="/projects", tags=["projects"])


def stage_out(view: StageView) -> StageOut:
    stage = view.stage
    return StageOut(
        id=stage.id,
        parent_id=stage.parent_id,
        code=stage.code,
        name=stage.name,
        level=stage.level,
        position=stage.position,
        kind=stage.kind,
        start_date=stage.start_date,
        end_date=stage.end_date,
        quantity=stage.quantity,
        unit_price=stage.unit_price,
        total_value=stage.total_value,
        is_leaf=view.is_leaf,
        effective_start_date=view.effective_start,
        effective_end_date=view.effective_end,
        effective_total=view.effective_total,
    )


@router.get("", response_model=list[ProjectOut])
def list_projects(db: Session = Depends(get_db)):
    return list(
        db.scalars(select(Project).where(Project.is_active.is_(True)).order_by(Project.code)).all()
    )


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(project_id: int, db: Session = Depends(get_db)):
    return get_project_or_404(db, project_id)


@router.get("/{project_id}/stages", response_model=list[StageOut])
def list_stages(project_id: int, db: Session = Depends(get_db)):
    get_project_or_404(db, project_id)
    return [stage_out(view) for view in build_stage_views(list_project_stages(db, project_id))]
