# charting_agent/routes/task_routes.py
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from charting_agent.core.errors import TaskError
from charting_agent.pipeline.task_pipeline import ChartTaskPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/charting", tags=["charting"])
# agent-to-agent clients post tasks to the well-known path
a2a_router = APIRouter(prefix="/.well-known/a2a/tasks", tags=["a2a"])

pipeline = ChartTaskPipeline()


async def _read_payload(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise TaskError("BAD_REQUEST", "Invalid or missing JSON payload.") from e


async def handle_task(request: Request) -> JSONResponse:
    payload = await _read_payload(request)
    try:
        result = await pipeline.run(payload)
    except TaskError:
        raise
    except Exception as e:
        logger.exception("Unhandled error processing task")
        raise TaskError(
            "INTERNAL_SERVER_ERROR",
            "An internal server error occurred.",
            status_code=500,
        ) from e
    return JSONResponse(status_code=200, content=result.to_content())


@router.post("/send")
async def send_task(request: Request) -> JSONResponse:
    """
    Run an analyze or create task.

    Body: {taskType, csvData, chartType?, options?: {labelColumn, dataColumns, title?}}
    """
    return await handle_task(request)


@a2a_router.post("/send")
async def send_a2a_task(request: Request) -> JSONResponse:
    return await handle_task(request)
