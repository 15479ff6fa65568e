from datetime import datetime

from stageplan.schemas.common import ORMModel


class ProjectOut(ORMModel):
    id: int
    code: str
    name: str
    currency: str
    is_active: bool
    created_at: datetime
