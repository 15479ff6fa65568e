from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.models.enums import MonthlyValueType, ProgressEventType
from stageplan.models.monthly_value import StageMonthlyValue
from stageplan.models.progress import ProgressEvent
from stageplan.models.stage import Stage
from stageplan.services.stages import UNSET, build_stage_index
from stageplan.utils.decimal_math import money
from stageplan.utils.months import month_bounds, month_key_for, parse_month_key


logger = logging.getLogger("stageplan.progress")


@dataclass(frozen=True)
class ActualUpsertResult:
    stage_id: int
    month_key: str
    value: Decimal
    action: str


def event_contribution(event: Any, stage_unit_price: Decimal | None = None) -> Decimal:
    """Signed monetary contribution of one progress event.

    An explicit amount wins; otherwise quantity is priced at the event's
    unit price snapshot, falling back to the stage's current unit price.
    """
    if event.amount is not None:
        value = money(event.amount)
    elif event.quantity is not None:
        unit_price = event.unit_price if event.unit_price is not None else stage_unit_price
        value = money(Decimal(event.quantity) * Decimal(unit_price or 0))
    else:
        value = money(0)
    if ProgressEventType(event.event_type) == ProgressEventType.reversal:
        return -value
    return value


def aggregate_actual_value(
    events: Iterable[Any],
    stage_unit_price: Decimal | None = None,
) -> Decimal:
    total = money(0)
    for event in events:
        total = money(total + event_contribution(event, stage_unit_price))
    return total


def upsert_actual_value(
    db: Session,
    *,
    project_id: int,
    stage_id: int,
    month_key: str,
    value: Decimal,
) -> ActualUpsertResult:
    parse_month_key(month_key)
    value = money(value)
    if value < 0:
        logger.warning(
            "Actual value for stage %s in %s nets to %s; storing no row.",
            stage_id,
            month_key,
            value,
        )
        value = money(0)

    row = db.scalar(
        select(StageMonthlyValue).where(
            StageMonthlyValue.stage_id == stage_id,
            StageMonthlyValue.month_key == month_key,
            StageMonthlyValue.value_type == MonthlyValueType.actual,
        )
    )
    if row is not None and value == 0:
        db.delete(row)
        action = "deleted"
    elif row is not None:
        action = "unchanged" if money(row.value) == value else "updated"
        row.value = value
    elif value > 0:
        db.add(
            StageMonthlyValue(
                project_id=project_id,
                stage_id=stage_id,
                month_key=month_key,
                value=value,
                value_type=MonthlyValueType.actual,
            )
        )
        action = "inserted"
    else:
        action = "noop"
    db.flush()
    return ActualUpsertResult(stage_id=stage_id, month_key=month_key, value=value, action=action)


def list_month_events(db: Session, stage_id: int, month_key: str) -> list[ProgressEvent]:
    first_day, last_day = month_bounds(*parse_month_key(month_key))
    return list(
        db.scalars(
            select(ProgressEvent)
            .where(
                ProgressEvent.stage_id == stage_id,
                ProgressEvent.event_date >= first_day,
                ProgressEvent.event_date <= last_day,
            )
            .order_by(ProgressEvent.event_date, ProgressEvent.id)
        ).all()
    )


def recompute_actual_value(db: Session, stage: Stage, month_key: str) -> ActualUpsertResult:
    """Rebuild the actual row for (stage, month) from the month's full event history."""
    events = list_month_events(db, stage.id, month_key)
    total = aggregate_actual_value(events, stage_unit_price=stage.unit_price)
    result = upsert_actual_value(
        db,
        project_id=stage.project_id,
        stage_id=stage.id,
        month_key=month_key,
        value=total,
    )
    logger.info(
        "Actual value recomputed for stage %s in %s from %s events: %s (%s)",
        stage.id,
        month_key,
        len(events),
        result.value,
        result.action,
    )
    return result


def list_stage_events(db: Session, stage_id: int) -> list[ProgressEvent]:
    return list(
        db.scalars(
            select(ProgressEvent)
            .where(ProgressEvent.stage_id == stage_id)
            .order_by(ProgressEvent.event_date, ProgressEvent.id)
        ).all()
    )


def get_event_or_404(db: Session, project_id: int, event_id: int) -> ProgressEvent:
    event = db.scalar(
        select(ProgressEvent).where(
            ProgressEvent.id == event_id,
            ProgressEvent.project_id == project_id,
        )
    )
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Progress event not found.")
    return event


def _assert_leaf(db: Session, stage: Stage) -> None:
    index = build_stage_index(db, stage.project_id)
    if not index.is_leaf(stage.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Progress can only be recorded against leaf stages.",
        )


def _validate_measure(amount: Decimal | None, quantity: Decimal | None) -> None:
    if amount is None and quantity is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either amount or quantity is required.",
        )
    if amount is not None and amount <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="amount must be > 0.")
    if quantity is not None and quantity <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="quantity must be > 0.")


def _is_reversed(db: Session, event: ProgressEvent) -> bool:
    return (
        db.scalar(
            select(ProgressEvent.id).where(
                ProgressEvent.reverses_event_id == event.id,
                ProgressEvent.event_type == ProgressEventType.reversal,
            )
        )
        is not None
    )


def record_progress_event(
    db: Session,
    stage: Stage,
    *,
    event_date: date,
    amount: Decimal | None = None,
    quantity: Decimal | None = None,
    description: str | None = None,
) -> tuple[ProgressEvent, ActualUpsertResult]:
    _assert_leaf(db, stage)
    _validate_measure(amount, quantity)
    event = ProgressEvent(
        project_id=stage.project_id,
        stage_id=stage.id,
        event_type=ProgressEventType.inclusion,
        event_date=event_date,
        amount=money(amount) if amount is not None else None,
        quantity=quantity,
        unit_price=money(stage.unit_price or 0) if amount is None else None,
        description=description,
    )
    db.add(event)
    db.flush()
    return event, recompute_actual_value(db, stage, month_key_for(event_date))


def rectify_progress_event(
    db: Session,
    stage: Stage,
    event: ProgressEvent,
    *,
    event_date: date | None = None,
    amount: Decimal | None | object = UNSET,
    quantity: Decimal | None | object = UNSET,
    description: str | None = None,
) -> tuple[ProgressEvent, list[ActualUpsertResult]]:
    """Correct a recorded event in place and recompute every month it touched."""
    if event.event_type == ProgressEventType.reversal:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reversal events cannot be rectified.",
        )
    if _is_reversed(db, event):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Event has been reversed and can no longer be rectified.",
        )
    _assert_leaf(db, stage)

    new_amount = event.amount if amount is UNSET else amount
    new_quantity = event.quantity if quantity is UNSET else quantity
    _validate_measure(new_amount, new_quantity)  # type: ignore[arg-type]

    old_month = month_key_for(event.event_date)
    if event_date is not None:
        event.event_date = event_date
    event.amount = money(new_amount) if new_amount is not None else None  # type: ignore[arg-type]
    event.quantity = new_quantity  # type: ignore[assignment]
    if event.amount is None and event.unit_price is None:
        event.unit_price = money(stage.unit_price or 0)
    if description is not None:
        event.description = description
    event.event_type = ProgressEventType.rectification
    db.flush()

    new_month = month_key_for(event.event_date)
    months = [old_month] if old_month == new_month else [old_month, new_month]
    return event, [recompute_actual_value(db, stage, key) for key in months]


def reverse_progress_event(
    db: Session,
    stage: Stage,
    event: ProgressEvent,
    *,
    description: str | None = None,
) -> tuple[ProgressEvent, ActualUpsertResult]:
    """Record a reversal dated with the original event so its month nets out."""
    if event.event_type == ProgressEventType.reversal:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reversal events cannot be reversed.",
        )
    if _is_reversed(db, event):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Event has already been reversed.",
        )
    reversal = ProgressEvent(
        project_id=event.project_id,
        stage_id=event.stage_id,
        event_type=ProgressEventType.reversal,
        event_date=event.event_date,
        amount=event.amount,
        quantity=event.quantity,
        unit_price=event.unit_price,
        description=description or f"Reversal of event {event.id}",
        reverses_event_id=event.id,
    )
    db.add(reversal)
    db.flush()
    return reversal, recompute_actual_value(db, stage, month_key_for(event.event_date))
