import enum


class StageKind(str, enum.Enum):
    service = "service"
    labor = "labor"
    material = "material"
    # one-off charges scheduled on a single day
    fee = "fee"


POINT_IN_TIME_KINDS = frozenset({StageKind.fee})


class MonthlyValueType(str, enum.Enum):
    planned = "planned"
    actual = "actual"


class ProgressEventType(str, enum.Enum):
    inclusion = "inclusion"
    rectification = "rectification"
    reversal = "reversal"


class Granularity(str, enum.Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    semiannual = "semiannual"
    annual = "annual"
