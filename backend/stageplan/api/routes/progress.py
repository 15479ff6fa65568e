from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stageplan.api.deps import get_db
from stageplan.schemas.progress import (
    ActualValueOut,
    ProgressEventCreateRequest,
    ProgressEventOut,
    ProgressEventRectifyRequest,
    ProgressEventResponse,
    ProgressEventReverseRequest,
)
from stageplan.services.progress import (
    ActualUpsertResult,
    get_event_or_404,
    list_stage_events,
    record_progress_event,
    rectify_progress_event,
    reverse_progress_event,
)
from stageplan.services.stages import UNSET, get_project_or_404, get_stage_or_404


router = APIRouter(prefix="/projects/{project_id}", tags=["progress"])


def _actual_out(result: ActualUpsertResult) -> ActualValueOut:
    return ActualValueOut(
        stage_id=result.stage_id,
        month_key=result.month_key,
        value=result.value,
        action=result.action,
    )


@router.get("/stages/{stage_id}/progress", response_model=list[ProgressEventOut])
def list_progress(project_id: int, stage_id: int, db: Session = Depends(get_db)):
    get_project_or_404(db, project_id)
    stage = get_stage_or_404(db, project_id, stage_id)
    return list_stage_events(db, stage.id)


@router.post("/stages/{stage_id}/progress", response_model=ProgressEventResponse, status_code=201)
def record_progress(
    project_id: int,
    stage_id: int,
    payload: ProgressEventCreateRequest,
    db: Session = Depends(get_db),
):
    get_project_or_404(db, project_id)
    stage = get_stage_or_404(db, project_id, stage_id)
    event, actual = record_progress_event(
        db,
        stage,
        event_date=payload.event_date,
        amount=payload.amount,
        quantity=payload.quantity,
        description=payload.description,
    )
    db.commit()
    return ProgressEventResponse(
        event=ProgressEventOut.model_validate(event),
        actual=[_actual_out(actual)],
    )


@router.patch("/progress/{event_id}", response_model=ProgressEventResponse)
def rectify_progress(
    project_id: int,
    event_id: int,
    payload: ProgressEventRectifyRequest,
    db: Session = Depends(get_db),
):
    get_project_or_404(db, project_id)
    event = get_event_or_404(db, project_id, event_id)
    stage = get_stage_or_404(db, project_id, event.stage_id)
    fields = payload.model_fields_set
    event, actual = rectify_progress_event(
        db,
        stage,
        event,
        event_date=payload.event_date,
        amount=payload.amount if "amount" in fields else UNSET,
        quantity=payload.quantity if "quantity" in fields else UNSET,
        description=payload.description,
    )
    db.commit()
    return ProgressEventResponse(
        event=ProgressEventOut.model_validate(event),
        actual=[_actual_out(row) for row in actual],
    )


@router.post("/progress/{event_id}/reverse", response_model=ProgressEventResponse, status_code=201)
def reverse_progress(
    project_id: int,
    event_id: int,
    payload: ProgressEventReverseRequest | None = None,
    db: Session = Depends(get_db),
):
    get_project_or_404(db, project_id)
    event = get_event_or_404(db, project_id, event_id)
    stage = get_stage_or_404(db, project_id, event.stage_id)
    reversal, actual = reverse_progress_event(
        db,
        stage,
        event,
        description=payload.description if payload is not None else None,
    )
    db.commit()
    return ProgressEventResponse(
        event=ProgressEventOut.model_validate(reversal),
        actual=[_actual_out(actual)],
    )
