from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.models.enums import Granularity, MonthlyValueType
from stageplan.models.monthly_value import StageMonthlyValue
from stageplan.services.hierarchy import StageIndex
from stageplan.services.scurve import filter_monthly_values
from stageplan.services.stages import list_project_stages
from stageplan.utils.decimal_math import from_cents, to_cents
from stageplan.utils.months import iter_month_keys, month_key_for, month_label


GROUP_SIZES: dict[Granularity, int] = {
    Granularity.monthly: 1,
    Granularity.quarterly: 3,
    Granularity.semiannual: 6,
    Granularity.annual: 12,
}


@dataclass(frozen=True)
class ScheduleColumn:
    key: str
    label: str
    month_keys: list[str]


@dataclass(frozen=True)
class ScheduleRow:
    stage_id: int
    code: str
    name: str
    level: int
    is_leaf: bool
    planned: dict[str, Decimal]
    actual: dict[str, Decimal]
    planned_total: Decimal
    actual_total: Decimal


@dataclass(frozen=True)
class ScheduleGrid:
    granularity: Granularity
    columns: list[ScheduleColumn]
    rows: list[ScheduleRow]


def group_month_columns(
    month_keys: list[str],
    granularity: Granularity = Granularity.monthly,
    locale: str = "en",
) -> list[ScheduleColumn]:
    size = GROUP_SIZES[granularity]
    columns: list[ScheduleColumn] = []
    for offset in range(0, len(month_keys), size):
        chunk = month_keys[offset : offset + size]
        first, last = chunk[0], chunk[-1]
        if len(chunk) == 1:
            columns.append(ScheduleColumn(key=first, label=month_label(first, locale), month_keys=chunk))
            continue
        columns.append(
            ScheduleColumn(
                key=f"{first}_{last}",
                label=f"{month_label(first, locale)} - {month_label(last, locale)}",
                month_keys=chunk,
            )
        )
    return columns


def _month_range(index: StageIndex, keys: Iterable[str]) -> list[str]:
    bounds: list[str] = list(keys)
    for leaf_id in index.leaf_ids():
        start, end = index.effective_date_range(leaf_id)
        if start is not None:
            bounds.append(month_key_for(start))
        if end is not None:
            bounds.append(month_key_for(end))
    if not bounds:
        return []
    return list(iter_month_keys(min(bounds), max(bounds)))


def build_schedule_grid(
    stages: list[Any],
    monthly_values: Iterable[Any],
    *,
    granularity: Granularity = Granularity.monthly,
    locale: str = "en",
) -> ScheduleGrid:
    """Physical-financial schedule: planned and actual per stage per column.

    Parent rows sum the leaves beneath them; the month range covers both the
    leaves' scheduled dates and every stored value.
    """
    index = StageIndex(stages)
    rows = filter_monthly_values(index, monthly_values)

    cents: dict[tuple[Any, MonthlyValueType], dict[str, int]] = {}
    for row, value_type in rows:
        bucket = cents.setdefault((row.stage_id, value_type), {})
        bucket[row.month_key] = bucket.get(row.month_key, 0) + to_cents(row.value)

    columns = group_month_columns(
        _month_range(index, (row.month_key for row, _ in rows)),
        granularity,
        locale,
    )

    def _column_totals(leaf_ids: list[Any], value_type: MonthlyValueType) -> dict[str, int]:
        totals: dict[str, int] = {}
        for column in columns:
            column_cents = 0
            for leaf_id in leaf_ids:
                bucket = cents.get((leaf_id, value_type), {})
                column_cents += sum(bucket.get(key, 0) for key in column.month_keys)
            if column_cents:
                totals[column.key] = column_cents
        return totals

    grid_rows: list[ScheduleRow] = []
    for stage in stages:
        leaf_ids = index.descendant_leaf_ids(stage.id)
        planned = _column_totals(leaf_ids, MonthlyValueType.planned)
        actual = _column_totals(leaf_ids, MonthlyValueType.actual)
        grid_rows.append(
            ScheduleRow(
                stage_id=stage.id,
                code=stage.code,
                name=stage.name,
                level=stage.level,
                is_leaf=index.is_leaf(stage.id),
                planned={key: from_cents(value) for key, value in planned.items()},
                actual={key: from_cents(value) for key, value in actual.items()},
                planned_total=from_cents(sum(planned.values())),
                actual_total=from_cents(sum(actual.values())),
            )
        )
    return ScheduleGrid(granularity=granularity, columns=columns, rows=grid_rows)


def project_schedule_grid(
    db: Session,
    project_id: int,
    *,
    granularity: Granularity = Granularity.monthly,
    locale: str = "en",
) -> ScheduleGrid:
    stages = list_project_stages(db, project_id)
    values = db.scalars(
        select(StageMonthlyValue).where(StageMonthlyValue.project_id == project_id)
    ).all()
    return build_schedule_grid(stages, values, granularity=granularity, locale=locale)
