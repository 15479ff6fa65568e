from stageplan.models.enums import Granularity, MonthlyValueType, ProgressEventType, StageKind
from stageplan.models.monthly_value import StageMonthlyValue
from stageplan.models.progress import ProgressEvent
from stageplan.models.project import Project
from stageplan.models.stage import Stage

__all__ = [
    "Granularity",
    "MonthlyValueType",
    "ProgressEventType",
    "StageKind",
    "StageMonthlyValue",
    "ProgressEvent",
    "Project",
    "Stage",
]
