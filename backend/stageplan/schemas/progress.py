from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stageplan.models.enums import ProgressEventType
from stageplan.schemas.common import ORMModel


class ProgressEventCreateRequest(BaseModel):
    event_date: date
    amount: Decimal | None = Field(default=None, gt=0)
    quantity: Decimal | None = Field(default=None, gt=0)
    description: str | None = Field(default=None, max_length=3000)


class ProgressEventRectifyRequest(BaseModel):
    event_date: date | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    quantity: Decimal | None = Field(default=None, gt=0)
    description: str | None = Field(default=None, max_length=3000)


class ProgressEventReverseRequest(BaseModel):
    description: str | None = Field(default=None, max_length=3000)


class ProgressEventOut(ORMModel):
    id: int
    stage_id: int
    event_type: ProgressEventType
    event_date: date
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    amount: Decimal | None = None
    description: str | None = None
    reverses_event_id: int | None = None
    created_at: datetime


class ActualValueOut(BaseModel):
    stage_id: int
    month_key: str
    value: Decimal
    action: str


class ProgressEventResponse(BaseModel):
    event: ProgressEventOut
    actual: list[ActualValueOut]
