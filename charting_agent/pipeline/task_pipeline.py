# charting_agent/pipeline/task_pipeline.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from charting_agent.components.chart_renderer import render_chart_async
from charting_agent.components.chart_suggester import CHART_TYPES, suggest_chart_types
from charting_agent.components.column_analyzer import classify_columns
from charting_agent.components.csv_loader import Dataset, parse_csv
from charting_agent.core.errors import ChartRenderError, CsvParseError, EmptyDataError, TaskError
from charting_agent.core.logging_utils import Timer, log_task_event
from charting_agent.core.schemas import (
    TASK_TYPES,
    AnalysisDetails,
    AnalysisResult,
    ChartRequest,
    ResultSchema,
    TaskSuccess,
)
from charting_agent.core.settings import Settings, get_settings

__all__ = ["TaskState", "TaskRun", "ChartTaskPipeline", "analyze_dataset", "validate_task_input", "validate_chart_params"]

logger = logging.getLogger(__name__)


# ------------------------ State machine ------------------------
class TaskState(str, Enum):
    AWAITING_INPUT = "awaiting_input"
    PARSED = "parsed"
    ANALYZING = "analyzing"
    VALIDATING_CHART_PARAMS = "validating_chart_params"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: Dict[TaskState, Tuple[TaskState, ...]] = {
    TaskState.AWAITING_INPUT: (TaskState.PARSED, TaskState.FAILED),
    TaskState.PARSED: (TaskState.ANALYZING, TaskState.VALIDATING_CHART_PARAMS, TaskState.FAILED),
    TaskState.ANALYZING: (TaskState.DONE, TaskState.FAILED),
    TaskState.VALIDATING_CHART_PARAMS: (TaskState.RENDERING, TaskState.FAILED),
    TaskState.RENDERING: (TaskState.DONE, TaskState.FAILED),
    TaskState.DONE: (),
    TaskState.FAILED: (),
}


@dataclass
class TaskRun:
    """Lifecycle of a single request; one instance per call, never shared."""
    state: TaskState = TaskState.AWAITING_INPUT
    history: List[TaskState] = field(default_factory=lambda: [TaskState.AWAITING_INPUT])
    rows: Optional[int] = None
    columns: Optional[int] = None

    def advance(self, to: TaskState) -> None:
        if to not in _TRANSITIONS[self.state]:
            raise TaskError(
                "UNEXPECTED_STATE",
                f"Unexpected state transition {self.state.value} -> {to.value}.",
                status_code=500,
            )
        self.state = to
        self.history.append(to)


# ------------------------ Validation ------------------------
def validate_task_input(payload: Any) -> Tuple[str, str]:
    """Checks the request shape before any parsing. Returns (taskType, csvData)."""
    if not isinstance(payload, Mapping):
        raise TaskError("BAD_REQUEST", "Invalid or missing JSON payload.")
    task_type = payload.get("taskType")
    if task_type not in TASK_TYPES:
        raise TaskError(
            "INVALID_TASK_TYPE",
            "Missing or invalid taskType field (must be 'analyze' or 'create').",
        )
    csv_data = payload.get("csvData")
    if not isinstance(csv_data, str) or not csv_data.strip():
        raise TaskError("MISSING_INPUT", "Missing or empty csvData field (string) is required.")
    return task_type, csv_data


def validate_chart_params(payload: Mapping[str, Any], headers: Tuple[str, ...]) -> ChartRequest:
    """
    Chart parameter checks for a create task. Order matters: the first failing
    check is reported and the rest are skipped.
    """
    chart_type = payload.get("chartType")
    if chart_type not in CHART_TYPES:
        raise TaskError(
            "INVALID_PARAMETER",
            "Invalid or missing chartType (must be bar, line, or pie) for create task.",
        )
    options = payload.get("options")
    if not isinstance(options, Mapping):
        raise TaskError("MISSING_PARAMETER", "Missing options object for create task.")
    label_column = options.get("labelColumn")
    if not isinstance(label_column, str) or not label_column:
        raise TaskError("MISSING_PARAMETER", "Missing or invalid options.labelColumn (string).")
    data_columns = options.get("dataColumns")
    if not isinstance(data_columns, list) or not data_columns:
        raise TaskError("MISSING_PARAMETER", "Missing or invalid options.dataColumns (non-empty array).")
    if label_column not in headers:
        raise TaskError("INVALID_PARAMETER", f"Label column '{label_column}' not found in CSV headers.")
    for col in data_columns:
        if not isinstance(col, str) or col not in headers:
            raise TaskError("INVALID_PARAMETER", f"Data column '{col}' is invalid or not found in CSV headers.")

    title = options.get("title")
    return ChartRequest(
        chart_type=chart_type,
        label_column=label_column,
        data_columns=list(data_columns),
        title=title if isinstance(title, str) else None,
    )


# ------------------------ Analysis ------------------------
def analyze_dataset(dataset: Dataset) -> AnalysisResult:
    classification = classify_columns(dataset)
    return AnalysisResult(
        suggestedChartTypes=suggest_chart_types(classification),
        analysisDetails=AnalysisDetails(**classification.to_dict()),
    )


# ------------------------ Pipeline ------------------------
class ChartTaskPipeline:
    """
    Runs one analyze/create task:

        AWAITING_INPUT -> PARSED -> ANALYZING -> DONE
                                 -> VALIDATING_CHART_PARAMS -> RENDERING -> DONE

    Every failure ends in FAILED and surfaces as a TaskError.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def run(self, payload: Any) -> TaskSuccess:
        run = TaskRun()
        timer = Timer()
        task_type = payload.get("taskType") if isinstance(payload, Mapping) else None
        try:
            result = await self._execute(payload, run)
        except TaskError as e:
            if run.state is not TaskState.FAILED:
                run.state = TaskState.FAILED
                run.history.append(TaskState.FAILED)
            log_task_event(
                task_type if isinstance(task_type, str) else None,
                ok=False,
                code=e.code,
                error=e.message,
                rows=run.rows,
                columns=run.columns,
                duration_ms=timer.ms,
            )
            raise
        log_task_event(
            task_type,
            ok=True,
            rows=run.rows,
            columns=run.columns,
            chart_type=payload.get("chartType") if task_type == "create" else None,
            duration_ms=timer.ms,
        )
        return result

    async def _execute(self, payload: Any, run: TaskRun) -> TaskSuccess:
        task_type, csv_data = validate_task_input(payload)

        try:
            dataset = parse_csv(csv_data, delimiter=self.settings.CSV_DELIMITER)
        except CsvParseError as e:
            raise TaskError("INVALID_CSV_FORMAT", e.message) from e
        except EmptyDataError as e:
            raise TaskError("EMPTY_DATA", e.message) from e
        run.advance(TaskState.PARSED)
        run.rows, run.columns = dataset.row_count, len(dataset.headers)
        logger.info("Parsed CSV for %s task: %d rows x %d columns", task_type, dataset.row_count, len(dataset.headers))

        if task_type == "analyze":
            run.advance(TaskState.ANALYZING)
            analysis = analyze_dataset(dataset)
            run.advance(TaskState.DONE)
            return TaskSuccess(
                message="Data analysis complete.",
                result_schema=ResultSchema(type="application/json"),
                result_reference=analysis,
            )

        if task_type == "create":
            run.advance(TaskState.VALIDATING_CHART_PARAMS)
            request = validate_chart_params(payload, dataset.headers)
            run.advance(TaskState.RENDERING)
            try:
                image = await render_chart_async(dataset, request)
            except ChartRenderError as e:
                raise TaskError(
                    "CHART_GENERATION_FAILED",
                    e.message or "Failed to generate chart image.",
                    status_code=500,
                ) from e
            run.advance(TaskState.DONE)
            return TaskSuccess(
                message="Chart created successfully.",
                result_schema=ResultSchema(type="image/png", encoding="base64"),
                result_reference=image,
            )

        raise TaskError("UNEXPECTED_STATE", "Task finished without a result.", status_code=500)
