# charting_agent/components/csv_loader.py
from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from charting_agent.core.errors import CsvParseError, EmptyDataError

__all__ = ["Dataset", "Value", "Record", "parse_csv", "coerce_token", "sniff_delimiter"]

logger = logging.getLogger(__name__)

Value = Union[int, float, str, bool, None]
Record = Dict[str, Value]

_FLOAT_RE = re.compile(r"^\s*-?(\d+\.?|\.\d+|\d+\.\d+)([eE][-+]?\d+)?\s*$")
_INT_RE = re.compile(r"^\s*-?\d+\s*$")
_TRUE = {"true", "TRUE", "True"}
_FALSE = {"false", "FALSE", "False"}
_MAX_SAFE = 2 ** 53

_SNIFF_DELIMITERS = ",;\t|"
_SNIFF_LINES = 20


@dataclass(frozen=True)
class Dataset:
    """Parsed CSV: header names in column order plus one record per data row."""

    headers: Tuple[str, ...]
    records: Tuple[Record, ...]

    @property
    def row_count(self) -> int:
        return len(self.records)

    def column(self, header: str) -> List[Value]:
        """Values of one column in row order (None where a ragged row lacks the field)."""
        return [r.get(header) for r in self.records]


# ---------- token typing ----------
def coerce_token(token: str) -> Value:
    """Guess the scalar type of one CSV field: bool, int, float, None or str."""
    if token == "":
        return None
    if token in _TRUE:
        return True
    if token in _FALSE:
        return False
    if _FLOAT_RE.match(token):
        text = token.strip()
        number: Union[int, float] = int(text) if _INT_RE.match(text) else float(text)
        if -_MAX_SAFE < number < _MAX_SAFE:
            return number
    return token


# ---------- grammar helpers ----------
def sniff_delimiter(text: str, default: str = ",") -> str:
    """Pick the field delimiter from the head of the text, like the upload readers do."""
    sample = "\n".join(text.splitlines()[:_SNIFF_LINES])
    try:
        return csv.Sniffer().sniff(sample, delimiters=_SNIFF_DELIMITERS).delimiter
    except csv.Error:
        return default

def _is_blank(row: List[str]) -> bool:
    return not row or (len(row) == 1 and not row[0].strip())

def _unique_headers(raw: List[str]) -> Tuple[str, ...]:
    seen: Dict[str, int] = {}
    taken = set()
    out: List[str] = []
    for i, name in enumerate(raw, start=1):
        name = name.strip() or f"column_{i}"
        candidate = name
        while candidate in taken:
            seen[name] = seen.get(name, 0) + 1
            candidate = f"{name}_{seen[name]}"
        taken.add(candidate)
        out.append(candidate)
    return tuple(out)


# ---------- main ----------
def parse_csv(csv_text: str, delimiter: Optional[str] = None) -> Dataset:
    """
    Parse CSV text into a Dataset.

    - first non-blank row -> headers; blank lines are skipped
    - fields are typed with coerce_token()
    - short rows keep only the fields they have, long rows are cut at the header width

    Raises:
        CsvParseError: the text is not valid CSV (unterminated quote, stray quote...)
        EmptyDataError: there is a header row but no data rows
    """
    text = csv_text.lstrip("\ufeff")
    delim = delimiter or sniff_delimiter(text)

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delim, strict=True)
    headers: Optional[Tuple[str, ...]] = None
    records: List[Record] = []
    try:
        for row in reader:
            if _is_blank(row):
                continue
            if headers is None:
                headers = _unique_headers(row)
                continue
            records.append({h: coerce_token(v) for h, v in zip(headers, row)})
    except csv.Error as e:
        raise CsvParseError(f"CSV Parsing Error: {e}", row=reader.line_num) from e

    if headers is None or not records:
        raise EmptyDataError("CSV data is empty or contains only headers.")

    logger.debug("Parsed CSV: %d columns, %d rows (delimiter=%r)", len(headers), len(records), delim)
    return Dataset(headers=headers, records=tuple(records))
