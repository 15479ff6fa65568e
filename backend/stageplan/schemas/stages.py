from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from stageplan.models.enums import MonthlyValueType, StageKind
from stageplan.schemas.common import ORMModel


class StageOut(BaseModel):
    id: int
    parent_id: int | None = None
    code: str
    name: str
    level: int
    position: int
    kind: StageKind
    start_date: date | None = None
    end_date: date | None = None
    quantity: Decimal
    unit_price: Decimal
    total_value: Decimal
    is_leaf: bool
    effective_start_date: date | None = None
    effective_end_date: date | None = None
    effective_total: Decimal | None = None


class StageScheduleUpdateRequest(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    quantity: Decimal | None = Field(default=None, ge=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    total_value: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "StageScheduleUpdateRequest":
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be earlier than start_date.")
        return self


class StageScheduleUpdateResponse(BaseModel):
    stage: StageOut
    recompute_scheduled: bool
    debounce_seconds: float


class MonthlyValueOut(ORMModel):
    stage_id: int
    month_key: str
    value: Decimal
    value_type: MonthlyValueType


class PlannedRecomputeResponse(BaseModel):
    stage_id: int
    total: Decimal
    inserted: int
    updated: int
    deleted: int
    rows: list[MonthlyValueOut]


class ProjectSyncResponse(BaseModel):
    project_id: int
    stages_scheduled: int
    rows_written: int
    rows_deleted: int
