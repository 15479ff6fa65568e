from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Protocol

from stageplan.models.enums import POINT_IN_TIME_KINDS, StageKind
from stageplan.utils.decimal_math import money


class StageLike(Protocol):
    id: Any
    parent_id: Any


@dataclass(frozen=True)
class StageSnapshot:
    id: int
    parent_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    total_value: Decimal | None = None
    kind: StageKind = StageKind.service


DateRange = tuple[date | None, date | None]


class StageIndex:
    """Adjacency index over a flat parent-pointer stage collection.

    Built once per snapshot. Effective date ranges and totals for parent
    stages are memoized, so a batch of lookups walks each subtree once.
    """

    def __init__(self, stages: Iterable[StageLike]) -> None:
        self._stages: dict[Any, StageLike] = {}
        self._children: dict[Any, list[Any]] = {}
        for stage in stages:
            self._stages[stage.id] = stage
        for stage in self._stages.values():
            if stage.parent_id is not None:
                self._children.setdefault(stage.parent_id, []).append(stage.id)
        self._ranges: dict[Any, DateRange] = {}
        self._totals: dict[Any, Decimal | None] = {}

    def __contains__(self, stage_id: object) -> bool:
        return stage_id in self._stages

    def is_leaf(self, stage_id: Any) -> bool:
        return not self._children.get(stage_id)

    def leaf_ids(self) -> set[Any]:
        return {stage_id for stage_id in self._stages if self.is_leaf(stage_id)}

    def descendant_leaf_ids(self, stage_id: Any) -> list[Any]:
        leaves: list[Any] = []
        stack = [stage_id]
        seen: set[Any] = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            children = self._children.get(current)
            if not children:
                if current in self._stages:
                    leaves.append(current)
                continue
            stack.extend(children)
        return leaves

    def effective_date_range(self, stage_id: Any) -> DateRange:
        if stage_id in self._ranges:
            return self._ranges[stage_id]
        stage = self._stages.get(stage_id)
        if stage is None:
            return None, None
        if self.is_leaf(stage_id):
            start = getattr(stage, "start_date", None)
            end = getattr(stage, "end_date", None)
            kind = getattr(stage, "kind", None)
            if kind is not None and StageKind(kind) in POINT_IN_TIME_KINDS:
                # point-in-time stages occupy their start day only
                end = start
            result: DateRange = (start, end)
        else:
            starts: list[date] = []
            ends: list[date] = []
            for leaf_id in self.descendant_leaf_ids(stage_id):
                leaf_start, leaf_end = self.effective_date_range(leaf_id)
                if leaf_start is not None:
                    starts.append(leaf_start)
                if leaf_end is not None:
                    ends.append(leaf_end)
            result = (min(starts) if starts else None, max(ends) if ends else None)
        self._ranges[stage_id] = result
        return result

    def effective_total(self, stage_id: Any) -> Decimal | None:
        if stage_id in self._totals:
            return self._totals[stage_id]
        stage = self._stages.get(stage_id)
        if stage is None:
            return None
        if self.is_leaf(stage_id):
            raw = getattr(stage, "total_value", None)
            result = money(raw) if raw is not None else None
        else:
            values = [
                money(raw)
                for raw in (
                    getattr(self._stages[leaf_id], "total_value", None)
                    for leaf_id in self.descendant_leaf_ids(stage_id)
                )
                if raw is not None
            ]
            result = money(sum(values, Decimal("0"))) if values else None
        self._totals[stage_id] = result
        return result


def is_leaf(stage: StageLike, all_stages: Iterable[StageLike]) -> bool:
    return all(other.parent_id != stage.id for other in all_stages)


def effective_date_range(stage: StageLike, all_stages: Iterable[StageLike]) -> DateRange:
    return StageIndex(all_stages).effective_date_range(stage.id)


def effective_total(stage: StageLike, all_stages: Iterable[StageLike]) -> Decimal | None:
    return StageIndex(all_stages).effective_total(stage.id)
