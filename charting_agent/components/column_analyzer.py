# charting_agent/components/column_analyzer.py
"""
Best-effort column type inference.

Each column is judged from a sample of the first SAMPLE_SIZE records only, so a
column whose type changes further down the file is classified by its head.
A type wins when it covers at least TYPE_THRESHOLD of the non-empty sampled
values; types are tried in the order date, number, boolean and anything that
passes none of them is treated as a category (string). A column with no
non-empty sampled value is "unknown" and lands in no bucket.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from charting_agent.components.csv_loader import Dataset, Value

__all__ = ["ColumnClassification", "ColumnType", "classify_columns", "is_date_string", "SAMPLE_SIZE", "TYPE_THRESHOLD"]

logger = logging.getLogger(__name__)

ColumnType = Literal["number", "string", "boolean", "date", "unknown"]

SAMPLE_SIZE = 50
TYPE_THRESHOLD = 0.8

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})?)?$")
NUMERIC_RE = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?\s*$")


@dataclass(frozen=True)
class ColumnClassification:
    column_types: Dict[str, ColumnType] = field(default_factory=dict)
    numeric_columns: List[str] = field(default_factory=list)
    category_columns: List[str] = field(default_factory=list)
    time_columns: List[str] = field(default_factory=list)
    boolean_columns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "numericColumns": list(self.numeric_columns),
            "categoryColumns": list(self.category_columns),
            "timeColumns": list(self.time_columns),
            "booleanColumns": list(self.boolean_columns),
            "allColumnTypes": dict(self.column_types),
        }


def is_date_string(value: str) -> bool:
    return DATE_RE.fullmatch(value) is not None

def _is_numeric_string(value: str) -> bool:
    # plain decimal notation only; "inf", "nan" and "1_000" are text
    return NUMERIC_RE.match(value) is not None

def _dominant_type(values: List[Value]) -> ColumnType:
    non_null = numbers = booleans = dates = 0
    for v in values:
        if v is None or v == "":
            continue
        non_null += 1
        if isinstance(v, bool):
            booleans += 1
        elif isinstance(v, (int, float)):
            if not (isinstance(v, float) and math.isnan(v)):
                numbers += 1
        elif isinstance(v, str):
            if _is_numeric_string(v):
                numbers += 1
            elif is_date_string(v):
                dates += 1

    if non_null == 0:
        return "unknown"
    need = non_null * TYPE_THRESHOLD
    if dates > 0 and dates >= need:
        return "date"
    if numbers > 0 and numbers >= need:
        return "number"
    if booleans > 0 and booleans >= need:
        return "boolean"
    return "string"


def classify_columns(dataset: Dataset, sample_size: Optional[int] = None) -> ColumnClassification:
    """Classify every header of the dataset from its first `sample_size` records."""
    sample = dataset.records[: sample_size or SAMPLE_SIZE]
    buckets: Dict[str, List[str]] = {"number": [], "string": [], "date": [], "boolean": []}
    column_types: Dict[str, ColumnType] = {}

    for header in dataset.headers:
        kind = _dominant_type([row.get(header) for row in sample])
        column_types[header] = kind
        if kind in buckets:
            buckets[kind].append(header)

    logger.info("Column type analysis: %s", column_types)
    return ColumnClassification(
        column_types=column_types,
        numeric_columns=buckets["number"],
        category_columns=buckets["string"],
        time_columns=buckets["date"],
        boolean_columns=buckets["boolean"],
    )
