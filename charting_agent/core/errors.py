# charting_agent/core/errors.py
from __future__ import annotations

from typing import Optional

__all__ = [
    "ChartingAgentError",
    "CsvParseError",
    "EmptyDataError",
    "ChartRenderError",
    "TaskError",
]


class ChartingAgentError(Exception):
    """Base class for every error raised by the charting pipeline."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CsvParseError(ChartingAgentError):
    """The CSV text violates the grammar (e.g. an unterminated quoted field)."""

    def __init__(self, message: str, row: Optional[int] = None):
        if row is not None:
            message = f"{message} on row {row}"
        super().__init__(message)
        self.row = row


class EmptyDataError(ChartingAgentError):
    """The CSV parsed cleanly but has no data rows."""


class ChartRenderError(ChartingAgentError):
    """The drawing engine failed; the original message is kept."""


class TaskError(ChartingAgentError):
    """A request failed; maps 1:1 onto the failure envelope."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        super().__init__(message)
        self.code = code
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"TaskError(code={self.code!r}, status_code={self.status_code}, message={self.message!r})"
