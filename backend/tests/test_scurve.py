from dataclasses import dataclass
from decimal import Decimal

import pytest

from stageplan.services.hierarchy import StageSnapshot
from stageplan.services.scurve import SCurveStatus, build_s_curve
from stageplan.utils.decimal_math import money


@dataclass(frozen=True)
class _Row:
    stage_id: int
    month_key: str
    value: Decimal | float
    value_type: str


STAGES = [
    StageSnapshot(id=1),
    StageSnapshot(id=2, parent_id=1),
    StageSnapshot(id=3, parent_id=1),
]


def test_empty_or_all_parent_collections_report_no_leaves() -> None:
    def _untouchable():
        raise AssertionError("monthly values must not be read")
        yield  # pragma: no cover

    assert build_s_curve([], _untouchable()).status == SCurveStatus.no_leaves
    cyclic = [StageSnapshot(id=1, parent_id=2), StageSnapshot(id=2, parent_id=1)]
    assert build_s_curve(cyclic, _untouchable()).status == SCurveStatus.no_leaves


def test_leaves_without_usable_rows_report_no_values() -> None:
    rows = [
        _Row(1, "2024-01", money("10.00"), "planned"),
        _Row(99, "2024-01", money("10.00"), "planned"),
    ]
    result = build_s_curve(STAGES, rows)
    assert result.status == SCurveStatus.no_values
    assert result.points == []


def test_cumulative_series_with_gap_filled_months() -> None:
    rows = [
        _Row(2, "2024-01", money("100.00"), "planned"),
        _Row(3, "2024-01", money("50.00"), "planned"),
        _Row(2, "2024-04", money("200.00"), "planned"),
        _Row(2, "2024-01", money("120.00"), "actual"),
        _Row(3, "2024-04", money("30.00"), "actual"),
    ]
    result = build_s_curve(STAGES, rows)
    assert result.status == SCurveStatus.ok
    assert [point.month_key for point in result.points] == ["2024-01", "2024-02", "2024-03", "2024-04"]
    assert [point.label for point in result.points] == ["Jan/2024", "Feb/2024", "Mar/2024", "Apr/2024"]

    jan, feb, mar, apr = result.points
    assert (jan.planned_monthly, jan.actual_monthly) == (money("150.00"), money("120.00"))
    assert jan.deviation_cumulative == money("-30.00")
    assert (feb.planned_monthly, feb.actual_monthly) == (money("0.00"), money("0.00"))
    assert feb.planned_cumulative == money("150.00")
    assert mar.actual_cumulative == money("120.00")
    assert apr.planned_cumulative == money("350.00")
    assert apr.actual_cumulative == money("150.00")
    assert apr.deviation_cumulative == money("-200.00")

    cumulative = [point.planned_cumulative for point in result.points]
    assert cumulative == sorted(cumulative)


def test_actual_outside_planned_window_extends_range() -> None:
    rows = [
        _Row(2, "2024-03", money("10.00"), "planned"),
        _Row(2, "2023-12", money("5.00"), "actual"),
        _Row(3, "2024-05", money("7.00"), "actual"),
    ]
    result = build_s_curve(STAGES, rows)
    assert result.points[0].month_key == "2023-12"
    assert result.points[-1].month_key == "2024-05"
    assert len(result.points) == 6
    assert result.points[-1].deviation_cumulative == money("2.00")


def test_orphan_rows_do_not_affect_range() -> None:
    rows = [
        _Row(2, "2024-02", money("10.00"), "planned"),
        _Row(42, "2020-01", money("999.00"), "planned"),
        _Row(42, "2030-01", money("999.00"), "actual"),
    ]
    result = build_s_curve(STAGES, rows)
    assert [point.month_key for point in result.points] == ["2024-02"]
    assert result.points[0].planned_cumulative == money("10.00")


def test_malformed_month_key_is_discarded_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    rows = [
        _Row(2, "2024-13", money("10.00"), "planned"),
        _Row(2, "2024-1", money("10.00"), "planned"),
        _Row(3, "2024-06", money("25.00"), "planned"),
    ]
    with caplog.at_level("WARNING", logger="stageplan.scurve"):
        result = build_s_curve(STAGES, rows)
    assert [point.month_key for point in result.points] == ["2024-06"]
    assert "'2024-13'" in caplog.text
    assert "stage 2" in caplog.text


def test_non_leaf_and_unknown_type_rows_are_excluded() -> None:
    rows = [
        _Row(1, "2024-01", money("500.00"), "planned"),
        _Row(2, "2024-02", money("40.00"), "forecast"),
        _Row(2, "2024-03", money("60.00"), "actual"),
    ]
    result = build_s_curve(STAGES, rows)
    assert [point.month_key for point in result.points] == ["2024-03"]
    assert result.points[0].planned_cumulative == money("0.00")
    assert result.points[0].actual_cumulative == money("60.00")


def test_float_inputs_are_summed_in_cents() -> None:
    rows = [_Row(2, "2024-01", 0.1, "actual") for _ in range(10)]
    rows.append(_Row(3, "2024-01", 0.2, "actual"))
    result = build_s_curve(STAGES, rows)
    assert result.points[0].actual_monthly == Decimal("1.20")


def test_portuguese_labels() -> None:
    rows = [_Row(2, "2024-02", money("1.00"), "planned")]
    result = build_s_curve(STAGES, rows, locale="pt")
    assert result.points[0].label == "Fev/2024"
