"""Cumulative planned-vs-actual progress curve.

Monthly value rows are filtered in a fixed order before aggregation:

1. orphans (stage not in the current collection) are dropped;
2. rows whose month key is not ``YYYY-MM`` are dropped with a warning;
3. rows owned by stages that are no longer leaves are dropped;
4. only ``planned`` and ``actual`` rows are kept.

The month range spans the surviving rows only, so actual values recorded
outside the planned window widen the curve. Sums are kept in integer cents
and converted back to two-place decimals on output.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from stageplan.models.enums import MonthlyValueType
from stageplan.models.monthly_value import StageMonthlyValue
from stageplan.services.hierarchy import StageIndex
from stageplan.services.stages import list_project_stages
from stageplan.utils.decimal_math import from_cents, to_cents
from stageplan.utils.months import is_month_key, iter_month_keys, month_label


logger = logging.getLogger("stageplan.scurve")


class SCurveStatus(str, enum.Enum):
    no_leaves = "no-leaves"
    no_values = "no-values"
    ok = "ok"


@dataclass(frozen=True)
class SCurvePoint:
    month_key: str
    label: str
    planned_monthly: Decimal
    actual_monthly: Decimal
    planned_cumulative: Decimal
    actual_cumulative: Decimal
    deviation_cumulative: Decimal


@dataclass(frozen=True)
class SCurveResult:
    status: SCurveStatus
    points: list[SCurvePoint] = field(default_factory=list)


def _value_type(raw: Any) -> MonthlyValueType | None:
    try:
        return MonthlyValueType(raw)
    except ValueError:
        return None


def filter_monthly_values(index: StageIndex, monthly_values: Iterable[Any]) -> list[tuple[Any, MonthlyValueType]]:
    leaf_ids = index.leaf_ids()
    kept: list[tuple[Any, MonthlyValueType]] = []
    for row in monthly_values:
        if row.stage_id not in index:
            continue
        if not is_month_key(row.month_key):
            logger.warning(
                "Discarding monthly value with invalid month key %r for stage %s",
                row.month_key,
                row.stage_id,
            )
            continue
        if row.stage_id not in leaf_ids:
            continue
        value_type = _value_type(row.value_type)
        if value_type is None:
            continue
        kept.append((row, value_type))
    return kept


def build_s_curve(
    stages: Iterable[Any],
    monthly_values: Iterable[Any],
    *,
    locale: str = "en",
) -> SCurveResult:
    index = StageIndex(stages)
    if not index.leaf_ids():
        return SCurveResult(status=SCurveStatus.no_leaves)

    rows = filter_monthly_values(index, monthly_values)
    if not rows:
        return SCurveResult(status=SCurveStatus.no_values)

    first_key = rows[0][0].month_key
    min_month = first_key
    max_month = first_key
    planned_cents: dict[str, int] = {}
    actual_cents: dict[str, int] = {}
    for row, value_type in rows:
        key = row.month_key
        if key < min_month:
            min_month = key
        if key > max_month:
            max_month = key
        bucket = planned_cents if value_type == MonthlyValueType.planned else actual_cents
        bucket[key] = bucket.get(key, 0) + to_cents(row.value)

    points: list[SCurvePoint] = []
    planned_running = 0
    actual_running = 0
    for key in iter_month_keys(min_month, max_month):
        planned = planned_cents.get(key, 0)
        actual = actual_cents.get(key, 0)
        planned_running += planned
        actual_running += actual
        points.append(
            SCurvePoint(
                month_key=key,
                label=month_label(key, locale),
                planned_monthly=from_cents(planned),
                actual_monthly=from_cents(actual),
                planned_cumulative=from_cents(planned_running),
                actual_cumulative=from_cents(actual_running),
                deviation_cumulative=from_cents(actual_running - planned_running),
            )
        )
    return SCurveResult(status=SCurveStatus.ok, points=points)


def project_s_curve(db: Session, project_id: int, *, locale: str = "en") -> SCurveResult:
    stages = list_project_stages(db, project_id)
    values = db.scalars(
        select(StageMonthlyValue).where(
            StageMonthlyValue.project_id == project_id,
            StageMonthlyValue.value_type.in_([MonthlyValueType.planned, MonthlyValueType.actual]),
        )
    ).all()
    return build_s_curve(stages, values, locale=locale)
