import asyncio
import logging

import pytest

from charting_agent.core.errors import ChartRenderError, TaskError
from charting_agent.core.schemas import AnalysisResult, ChartRequest
from charting_agent.pipeline import task_pipeline
from charting_agent.pipeline.task_pipeline import (
    ChartTaskPipeline,
    TaskRun,
    TaskState,
    validate_chart_params,
    validate_task_input,
)

HEADERS = ("a", "b")


def _run(payload):
    return asyncio.run(ChartTaskPipeline().run(payload))


def _error(payload) -> TaskError:
    with pytest.raises(TaskError) as exc:
        _run(payload)
    return exc.value


# ---------- request shape ----------
@pytest.mark.parametrize("payload", [None, "text", ["taskType", "analyze"], 42])
def test_payload_must_be_an_object(payload):
    assert _error(payload).code == "BAD_REQUEST"


@pytest.mark.parametrize("task_type", [None, "", "render", "ANALYZE", 1])
def test_task_type_must_be_known(task_type):
    err = _error({"taskType": task_type, "csvData": "a,b\n1,2"})
    assert err.code == "INVALID_TASK_TYPE"
    assert err.status_code == 400


@pytest.mark.parametrize("csv_data", [None, "", "   \n  ", 123])
def test_csv_data_required(csv_data):
    payload = {"taskType": "analyze"}
    if csv_data is not None:
        payload["csvData"] = csv_data
    assert _error(payload).code == "MISSING_INPUT"


def test_task_type_checked_before_csv():
    with pytest.raises(TaskError) as exc:
        validate_task_input({"taskType": "nope"})
    assert exc.value.code == "INVALID_TASK_TYPE"


# ---------- parsing ----------
def test_headers_only_is_empty_data():
    err = _error({"taskType": "analyze", "csvData": "h1,h2"})
    assert err.code == "EMPTY_DATA"


def test_bad_csv_is_invalid_format():
    err = _error({"taskType": "analyze", "csvData": 'a,b\n"open,1'})
    assert err.code == "INVALID_CSV_FORMAT"


# ---------- analyze ----------
def test_analyze_task():
    result = _run({"taskType": "analyze", "csvData": "category,value\nAlpha,10\nBeta,20"})
    assert result.message == "Data analysis complete."
    assert result.result_schema.type == "application/json"
    assert isinstance(result.result_reference, AnalysisResult)
    assert result.result_reference.suggestedChartTypes == ["bar", "pie", "line"]
    assert result.result_reference.analysisDetails.numericColumns == ["value"]


def test_analyze_ignores_chart_params():
    result = _run({"taskType": "analyze", "csvData": "a\n1", "chartType": "bubble"})
    assert result.result_reference.suggestedChartTypes == []


# ---------- chart parameter checks, in order ----------
@pytest.mark.parametrize(
    "payload,code,fragment",
    [
        ({"chartType": "bubble"}, "INVALID_PARAMETER", "chartType"),
        ({}, "INVALID_PARAMETER", "chartType"),
        ({"chartType": "bar"}, "MISSING_PARAMETER", "options"),
        ({"chartType": "bar", "options": ["a"]}, "MISSING_PARAMETER", "options"),
        ({"chartType": "bar", "options": {"dataColumns": ["b"]}}, "MISSING_PARAMETER", "labelColumn"),
        ({"chartType": "bar", "options": {"labelColumn": 3, "dataColumns": ["b"]}}, "MISSING_PARAMETER", "labelColumn"),
        ({"chartType": "bar", "options": {"labelColumn": "a"}}, "MISSING_PARAMETER", "dataColumns"),
        ({"chartType": "bar", "options": {"labelColumn": "a", "dataColumns": []}}, "MISSING_PARAMETER", "dataColumns"),
        ({"chartType": "bar", "options": {"labelColumn": "a", "dataColumns": "b"}}, "MISSING_PARAMETER", "dataColumns"),
        ({"chartType": "bar", "options": {"labelColumn": "c", "dataColumns": ["b"]}}, "INVALID_PARAMETER", "'c' not found"),
        ({"chartType": "bar", "options": {"labelColumn": "a", "dataColumns": ["b", "z"]}}, "INVALID_PARAMETER", "'z'"),
        ({"chartType": "bar", "options": {"labelColumn": "a", "dataColumns": [7]}}, "INVALID_PARAMETER", "'7'"),
    ],
)
def test_chart_param_checks(payload, code, fragment):
    with pytest.raises(TaskError) as exc:
        validate_chart_params(payload, HEADERS)
    assert exc.value.code == code
    assert fragment in exc.value.message


def test_invalid_chart_type_reported_before_missing_options():
    err = _error({"taskType": "create", "csvData": "a,b\n1,2", "chartType": "bubble"})
    assert err.code == "INVALID_PARAMETER"


def test_missing_data_columns_reported_before_unknown_label():
    err = _error({
        "taskType": "create",
        "csvData": "a,b\n1,2",
        "chartType": "pie",
        "options": {"labelColumn": "c", "dataColumns": []},
    })
    assert err.code == "MISSING_PARAMETER"


def test_valid_params_build_a_chart_request():
    req = validate_chart_params(
        {"chartType": "line", "options": {"labelColumn": "a", "dataColumns": ["b"], "title": "T"}},
        HEADERS,
    )
    assert req == ChartRequest(chart_type="line", label_column="a", data_columns=["b"], title="T")


# ---------- create ----------
def test_create_task_returns_png_uri():
    result = _run({
        "taskType": "create",
        "csvData": "a,b\n1,2",
        "chartType": "bar",
        "options": {"labelColumn": "a", "dataColumns": ["b"]},
    })
    assert result.message == "Chart created successfully."
    assert result.result_schema.type == "image/png"
    assert result.result_schema.encoding == "base64"
    assert result.result_reference.startswith("data:image/png;base64,")


def test_render_failure_is_chart_generation_failed(monkeypatch):
    async def broken(dataset, request):
        raise ChartRenderError("canvas exploded")

    monkeypatch.setattr(task_pipeline, "render_chart_async", broken)
    err = _error({
        "taskType": "create",
        "csvData": "a,b\n1,2",
        "chartType": "bar",
        "options": {"labelColumn": "a", "dataColumns": ["b"]},
    })
    assert err.code == "CHART_GENERATION_FAILED"
    assert err.status_code == 500
    assert err.message == "canvas exploded"


def test_renderer_not_called_when_validation_fails(monkeypatch):
    calls = []

    async def spy(dataset, request):
        calls.append(request)
        return "data:image/png;base64,"

    monkeypatch.setattr(task_pipeline, "render_chart_async", spy)
    _error({"taskType": "create", "csvData": "a,b\n1,2", "chartType": "bar", "options": {"labelColumn": "x", "dataColumns": ["b"]}})
    assert calls == []


# ---------- state machine ----------
def test_task_run_follows_allowed_transitions():
    run = TaskRun()
    for state in (TaskState.PARSED, TaskState.VALIDATING_CHART_PARAMS, TaskState.RENDERING, TaskState.DONE):
        run.advance(state)
    assert run.history == [
        TaskState.AWAITING_INPUT,
        TaskState.PARSED,
        TaskState.VALIDATING_CHART_PARAMS,
        TaskState.RENDERING,
        TaskState.DONE,
    ]


def test_illegal_transition_is_unexpected_state():
    run = TaskRun()
    with pytest.raises(TaskError) as exc:
        run.advance(TaskState.RENDERING)
    assert exc.value.code == "UNEXPECTED_STATE"
    assert exc.value.status_code == 500


def test_done_is_terminal():
    run = TaskRun()
    run.advance(TaskState.PARSED)
    run.advance(TaskState.ANALYZING)
    run.advance(TaskState.DONE)
    with pytest.raises(TaskError):
        run.advance(TaskState.ANALYZING)


# ---------- task events ----------
def _task_events(caplog, event):
    return [r for r in caplog.records if getattr(r, "event", None) == event]


def test_completed_task_logs_dataset_shape(caplog):
    caplog.set_level(logging.INFO, logger="charting_agent")
    _run({"taskType": "analyze", "csvData": "category,value\nAlpha,10\nBeta,20\nGamma,30"})
    (record,) = _task_events(caplog, "task.complete")
    assert (record.rows, record.columns) == (3, 2)
    assert record.task_type == "analyze"


def test_failed_task_logs_shape_once_parsed(caplog):
    caplog.set_level(logging.INFO, logger="charting_agent")
    _error({"taskType": "create", "csvData": "a,b\n1,2", "chartType": "bubble"})
    (record,) = _task_events(caplog, "task.failed")
    assert (record.rows, record.columns) == (1, 2)
    assert record.code == "INVALID_PARAMETER"


def test_unparsed_task_logs_no_shape(caplog):
    caplog.set_level(logging.INFO, logger="charting_agent")
    _error({"taskType": "analyze", "csvData": "h1,h2"})
    (record,) = _task_events(caplog, "task.failed")
    assert record.rows is None
    assert record.columns is None
