# charting_agent/core/schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

TaskType = Literal["analyze", "create"]
TASK_TYPES = ("analyze", "create")


class ChartRequest(BaseModel):
    """Validated parameters for one chart; only built once every check has passed."""
    chart_type: Literal["bar", "line", "pie"]
    label_column: str
    data_columns: List[str] = Field(min_length=1)
    title: Optional[str] = None


# ---------- result payloads ----------
class AnalysisDetails(BaseModel):
    numericColumns: List[str] = Field(default_factory=list)
    categoryColumns: List[str] = Field(default_factory=list)
    timeColumns: List[str] = Field(default_factory=list)
    booleanColumns: List[str] = Field(default_factory=list)
    allColumnTypes: Dict[str, str] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    suggestedChartTypes: List[str] = Field(default_factory=list)
    analysisDetails: AnalysisDetails


class ResultSchema(BaseModel):
    type: str
    encoding: Optional[str] = None


# ---------- envelopes ----------
class TaskSuccess(BaseModel):
    status: Literal["completed"] = "completed"
    message: str
    result_schema: ResultSchema
    result_reference: Union[AnalysisResult, str]

    def to_content(self) -> Dict[str, Any]:
        body = self.model_dump()
        body["result_schema"] = self.result_schema.model_dump(exclude_none=True)
        return body


class ErrorDetail(BaseModel):
    code: str
    message: str


class TaskFailure(BaseModel):
    status: Literal["failed"] = "failed"
    error: ErrorDetail

    @classmethod
    def of(cls, code: str, message: str) -> "TaskFailure":
        return cls(error=ErrorDetail(code=code, message=message))
