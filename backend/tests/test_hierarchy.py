from datetime import date

from stageplan.services.hierarchy import (
    StageIndex,
    StageSnapshot,
    effective_date_range,
    effective_total,
    is_leaf,
)
from stageplan.models.enums import StageKind
from stageplan.utils.decimal_math import money


STAGES = [
    StageSnapshot(id=1),
    StageSnapshot(id=2, parent_id=1),
    StageSnapshot(id=3, parent_id=2, start_date=date(2024, 3, 1), end_date=date(2024, 4, 15), total_value=money("100.00")),
    StageSnapshot(id=4, parent_id=2, start_date=date(2024, 1, 10), end_date=None, total_value=money("250.50")),
    StageSnapshot(id=5, parent_id=1, total_value=money("49.50")),
    StageSnapshot(id=6),
    StageSnapshot(id=7, parent_id=6),
]


def test_leaf_status_is_derived_from_parent_pointers() -> None:
    index = StageIndex(STAGES)
    assert index.leaf_ids() == {3, 4, 5, 7}
    assert index.is_leaf(3) is True
    assert index.is_leaf(2) is False
    assert is_leaf(STAGES[0], STAGES) is False
    assert is_leaf(STAGES[4], STAGES) is True


def test_parent_date_range_bounds_defined_descendants() -> None:
    assert effective_date_range(STAGES[1], STAGES) == (date(2024, 1, 10), date(2024, 4, 15))
    assert effective_date_range(STAGES[0], STAGES) == (date(2024, 1, 10), date(2024, 4, 15))
    assert effective_date_range(STAGES[3], STAGES) == (date(2024, 1, 10), None)


def test_parent_without_dated_descendants_has_no_range() -> None:
    assert effective_date_range(STAGES[5], STAGES) == (None, None)


def test_parent_total_sums_leaves() -> None:
    index = StageIndex(STAGES)
    assert index.effective_total(2) == money("350.50")
    assert index.effective_total(1) == money("400.00")
    assert effective_total(STAGES[4], STAGES) == money("49.50")


def test_missing_totals_are_none_not_zero() -> None:
    index = StageIndex(STAGES)
    assert index.effective_total(7) is None
    assert index.effective_total(6) is None
    assert index.effective_total(404) is None


def test_point_in_time_leaf_range_collapses_to_start_day() -> None:
    stages = [
        StageSnapshot(id=1),
        StageSnapshot(
            id=2,
            parent_id=1,
            start_date=date(2024, 1, 8),
            end_date=date(2024, 9, 30),
            kind=StageKind.fee,
        ),
        StageSnapshot(id=3, parent_id=1, start_date=date(2024, 1, 15), end_date=date(2024, 2, 10)),
    ]
    index = StageIndex(stages)
    assert index.effective_date_range(2) == (date(2024, 1, 8), date(2024, 1, 8))
    assert index.effective_date_range(1) == (date(2024, 1, 8), date(2024, 2, 10))
