from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from stageplan.models.enums import Granularity


class SCurvePointOut(BaseModel):
    month_key: str
    label: str
    planned_monthly: Decimal
    actual_monthly: Decimal
    planned_cumulative: Decimal
    actual_cumulative: Decimal
    deviation_cumulative: Decimal


class SCurveResponse(BaseModel):
    status: Literal["no-leaves", "no-values", "ok"]
    points: list[SCurvePointOut]


class ScheduleColumnOut(BaseModel):
    key: str
    label: str
    month_keys: list[str]


class ScheduleRowOut(BaseModel):
    stage_id: int
    code: str
    name: str
    level: int
    is_leaf: bool
    planned: dict[str, Decimal]
    actual: dict[str, Decimal]
    planned_total: Decimal
    actual_total: Decimal


class ScheduleGridResponse(BaseModel):
    granularity: Granularity
    columns: list[ScheduleColumnOut]
    rows: list[ScheduleRowOut]
