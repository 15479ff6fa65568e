from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.models.enums import POINT_IN_TIME_KINDS, MonthlyValueType, StageKind
from stageplan.models.monthly_value import StageMonthlyValue
from stageplan.models.stage import Stage
from stageplan.services.hierarchy import StageIndex
from stageplan.services.stages import list_project_stages
from stageplan.utils.decimal_math import from_cents, money, to_cents
from stageplan.utils.months import month_bounds, month_key, next_month


logger = logging.getLogger("stageplan.distribution")


@dataclass(frozen=True)
class MonthSpan:
    month_key: str
    days: int


@dataclass(frozen=True)
class MonthlyAllocation:
    month_key: str
    value: Decimal


@dataclass(frozen=True)
class PlannedRecomputeResult:
    stage_id: int
    allocations: list[MonthlyAllocation]
    inserted: int
    updated: int
    deleted: int

    @property
    def total(self) -> Decimal:
        return money(sum((row.value for row in self.allocations), Decimal("0")))


@dataclass(frozen=True)
class ProjectSyncResult:
    project_id: int
    stages_scheduled: int
    rows_written: int
    rows_deleted: int


def resolve_schedule(
    start: date | None,
    end: date | None,
    kind: StageKind | str | None,
) -> tuple[date, date] | None:
    """Return the effective (start, end) pair, or None when the stage is unscheduled."""
    if kind is not None and StageKind(kind) in POINT_IN_TIME_KINDS:
        if start is None:
            return None
        return start, start
    if start is None or end is None:
        return None
    return start, end


def month_spans(start: date, end: date) -> list[MonthSpan]:
    """Inclusive day counts of ``[start, end]`` within each calendar month it touches."""
    spans: list[MonthSpan] = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        first_day, last_day = month_bounds(year, month)
        overlap_start = max(start, first_day)
        overlap_end = min(end, last_day)
        days = (overlap_end - overlap_start).days + 1
        if days > 0:
            spans.append(MonthSpan(month_key=month_key(year, month), days=days))
        year, month = next_month(year, month)
    return spans


def _repair_negative_last(cents: list[int]) -> None:
    # Pull single cents from the nearest preceding non-zero month.
    last = len(cents) - 1
    donor = last - 1
    while cents[last] < 0 and donor >= 0:
        if cents[donor] <= 0:
            donor -= 1
            continue
        cents[donor] -= 1
        cents[last] += 1


def distribute_planned_value(
    start: date | None,
    end: date | None,
    total_value: Decimal | int | str | None,
    kind: StageKind | str | None = StageKind.service,
) -> list[MonthlyAllocation]:
    """Time-phase a stage total into per-month planned amounts.

    Allocation is proportional to scheduled days per month. Every month but
    the last is rounded half-up to the cent; the last month takes the
    residual so the result sums to ``total_value`` exactly. Months that end
    up at zero are omitted. Returns an empty list when the stage is
    unscheduled or its total is not positive.
    """
    if total_value is None:
        return []
    total = money(total_value)
    if total <= 0:
        return []

    schedule = resolve_schedule(start, end, kind)
    if schedule is None:
        return []
    range_start, range_end = schedule

    total_days = (range_end - range_start).days + 1
    if total_days <= 0:
        return []

    spans = month_spans(range_start, range_end)
    if not spans:
        return []

    cents: list[int] = []
    allocated = Decimal("0")
    for span in spans[:-1]:
        share = money(Decimal(span.days) * total / Decimal(total_days))
        allocated += share
        cents.append(to_cents(share))
    cents.append(to_cents(money(total - allocated)))

    if cents[-1] < 0:
        _repair_negative_last(cents)

    return [
        MonthlyAllocation(month_key=span.month_key, value=from_cents(value))
        for span, value in zip(spans, cents)
        if value != 0
    ]


def replace_planned_values(
    db: Session,
    *,
    project_id: int,
    stage_id: int,
    allocations: list[MonthlyAllocation],
) -> PlannedRecomputeResult:
    """Make the stored planned rows for a stage equal ``allocations``.

    Rows for months no longer allocated are deleted, surviving months are
    updated in place and new months inserted, all within the caller's
    transaction, so a committed reader never sees the stage without a plan
    mid-replacement.
    """
    existing = {
        row.month_key: row
        for row in db.scalars(
            select(StageMonthlyValue).where(
                StageMonthlyValue.stage_id == stage_id,
                StageMonthlyValue.value_type == MonthlyValueType.planned,
            )
        ).all()
    }
    wanted = {row.month_key: row.value for row in allocations}

    deleted = 0
    for key, row in existing.items():
        if key not in wanted:
            db.delete(row)
            deleted += 1

    inserted = 0
    updated = 0
    for key, value in wanted.items():
        row = existing.get(key)
        if row is None:
            db.add(
                StageMonthlyValue(
                    project_id=project_id,
                    stage_id=stage_id,
                    month_key=key,
                    value=value,
                    value_type=MonthlyValueType.planned,
                )
            )
            inserted += 1
        elif money(row.value) != value:
            row.value = value
            updated += 1

    db.flush()
    return PlannedRecomputeResult(
        stage_id=stage_id,
        allocations=allocations,
        inserted=inserted,
        updated=updated,
        deleted=deleted,
    )


def recompute_planned_values(
    db: Session,
    stage: Stage,
    *,
    index: StageIndex | None = None,
) -> PlannedRecomputeResult:
    if index is None:
        index = StageIndex(list_project_stages(db, stage.project_id))

    if stage.is_deleted or not index.is_leaf(stage.id):
        allocations: list[MonthlyAllocation] = []
    else:
        allocations = distribute_planned_value(
            stage.start_date,
            stage.end_date,
            stage.total_value,
            stage.kind,
        )

    result = replace_planned_values(
        db,
        project_id=stage.project_id,
        stage_id=stage.id,
        allocations=allocations,
    )
    logger.info(
        "Planned values recomputed for stage %s: %s months, total %s (+%s ~%s -%s)",
        stage.id,
        len(allocations),
        result.total,
        result.inserted,
        result.updated,
        result.deleted,
    )
    return result


def sync_project_planned_values(db: Session, project_id: int) -> ProjectSyncResult:
    """Recompute planned rows for every leaf of a project and clear rows owned by other stages."""
    stages = list_project_stages(db, project_id)
    index = StageIndex(stages)
    leaf_ids = index.leaf_ids()

    stale_query = select(StageMonthlyValue).where(
        StageMonthlyValue.project_id == project_id,
        StageMonthlyValue.value_type == MonthlyValueType.planned,
    )
    if leaf_ids:
        stale_query = stale_query.where(StageMonthlyValue.stage_id.not_in(leaf_ids))
    stale_rows = list(db.scalars(stale_query).all())
    for row in stale_rows:
        db.delete(row)
    rows_deleted = len(stale_rows)

    rows_written = 0
    stages_scheduled = 0
    for stage in stages:
        if stage.id not in leaf_ids:
            continue
        result = recompute_planned_values(db, stage, index=index)
        rows_written += result.inserted + result.updated
        rows_deleted += result.deleted
        if result.allocations:
            stages_scheduled += 1

    db.flush()
    logger.info(
        "Planned values synced for project %s: %s scheduled stages, %s rows written, %s rows deleted",
        project_id,
        stages_scheduled,
        rows_written,
        rows_deleted,
    )
    return ProjectSyncResult(
        project_id=project_id,
        stages_scheduled=stages_scheduled,
        rows_written=rows_written,
        rows_deleted=rows_deleted,
    )
