# charting_agent/components/chart_suggester.py
from __future__ import annotations

from typing import List, Literal

from charting_agent.components.column_analyzer import ColumnClassification

__all__ = ["ChartType", "CHART_TYPES", "suggest_chart_types"]

ChartType = Literal["bar", "line", "pie"]
CHART_TYPES = ("bar", "line", "pie")


def suggest_chart_types(classification: ColumnClassification) -> List[str]:
    """
    Chart types that fit the classified columns, in first-suggested order.

    category + number          -> bar, pie
    (date or category) + number -> line
    Two numeric columns alone suggest nothing (no scatter support).
    """
    has_numeric = bool(classification.numeric_columns)
    has_category = bool(classification.category_columns)
    has_time = bool(classification.time_columns)

    suggested: List[str] = []
    if has_category and has_numeric:
        suggested += ["bar", "pie"]
    if (has_time or has_category) and has_numeric:
        suggested.append("line")
    return list(dict.fromkeys(suggested))
