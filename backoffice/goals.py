"""Interactive editing of projected goals on hierarchy rows.

A row's growth percentage and projected goal always describe the same
target: ``goal == sales_ref_month * (1 + growth / 100)``.  Whichever of the
two the user edits drives the other.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from .aggregation import aggregate_hierarchy, hierarchy_filter_options
from .models import FilterOptions, HierarchyFilters, HierarchyRow, HierarchySummary

logger = logging.getLogger(__name__)


def goal_for_growth(sales_ref_month: float, growth: float) -> float:
    return sales_ref_month * (1 + growth / 100)


def set_growth(row: HierarchyRow, growth: float) -> HierarchyRow:
    return replace(row, growth=growth, projected_goal=goal_for_growth(row.sales_ref_month, growth))


def set_goal(row: HierarchyRow, goal: float) -> HierarchyRow:
    """Set the goal directly and back-compute the growth.

    Rows without positive reference sales get a growth of zero.
    """

    growth = (goal / row.sales_ref_month - 1) * 100 if row.sales_ref_month > 0 else 0.0
    return replace(row, projected_goal=goal, growth=growth)


def parse_goal_input(text: str) -> Optional[float]:
    """Parse a goal typed as formatted currency (``"R$ 1.500,50"``)."""

    cleaned = re.sub(r"[^0-9,-]+", "", text or "").replace(",", ".", 1)
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def apply_additional_pct(
    rows: Iterable[HierarchyRow],
    filters: HierarchyFilters,
    delta: float,
) -> list[HierarchyRow]:
    """Add ``delta`` points of growth to every row passing ``filters``."""

    updated = []
    for row in rows:
        if delta and filters.matches(row):
            row = set_growth(row, row.growth + delta)
        updated.append(row)
    return updated


@dataclass(slots=True)
class GoalBoard:
    """Editable goal projection state for one set of merged sales rows."""

    rows: list[HierarchyRow] = field(default_factory=list)
    filters: HierarchyFilters = field(default_factory=HierarchyFilters)
    additional_pct: float = 0.0

    def _find(self, row_id: str) -> int:
        for position, row in enumerate(self.rows):
            if row.id == row_id:
                return position
        raise KeyError(row_id)

    def update_growth(self, row_id: str, growth: float) -> HierarchyRow:
        position = self._find(row_id)
        self.rows[position] = set_growth(self.rows[position], growth)
        return self.rows[position]

    def update_goal(self, row_id: str, goal: float) -> HierarchyRow:
        position = self._find(row_id)
        self.rows[position] = set_goal(self.rows[position], goal)
        return self.rows[position]

    def set_filter(self, field_name: str, value: str) -> None:
        self.filters = self.filters.changed(field_name, value)

    def apply_additional_pct(self) -> int:
        """Apply the pending delta to the filtered rows, then reset it.

        Returns the number of rows that changed.
        """

        if not self.additional_pct:
            return 0
        affected = sum(1 for row in self.rows if self.filters.matches(row))
        self.rows = apply_additional_pct(self.rows, self.filters, self.additional_pct)
        logger.info("Applied %+.2f%% to %d rows", self.additional_pct, affected)
        self.additional_pct = 0.0
        return affected

    def summary(self) -> HierarchySummary:
        return aggregate_hierarchy(self.rows, self.filters)

    def filter_options(self) -> FilterOptions:
        return hierarchy_filter_options(self.rows, self.filters)


__all__ = [
    "goal_for_growth",
    "set_growth",
    "set_goal",
    "parse_goal_input",
    "apply_additional_pct",
    "GoalBoard",
]
