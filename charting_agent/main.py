# charting_agent/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from charting_agent.components.chart_renderer import setup_drawing_engine
from charting_agent.core.errors import TaskError
from charting_agent.core.logging_utils import install_fastapi_middleware, log_request, setup_logging
from charting_agent.core.schemas import TaskFailure
from charting_agent.core.settings import get_settings
from charting_agent.routes import agent_card, task_routes

logger = logging.getLogger(__name__)

_HTTP_CODES = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}


def _failure(status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=TaskFailure.of(code, message).model_dump(),
        headers=headers,
    )


async def _task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Task failed: %s - %s", exc.code, exc.message)
    return _failure(exc.status_code, exc.code, exc.message)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        allow = (exc.headers or {}).get("Allow", "POST")
        message = f"Method {request.method} Not Allowed. Only {allow} is supported."
        return _failure(405, "METHOD_NOT_ALLOWED", message, headers={"Allow": allow})
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return _failure(exc.status_code, code, str(exc.detail), headers=exc.headers)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _failure(500, "INTERNAL_SERVER_ERROR", "An internal server error occurred.")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()

    app = FastAPI(title=settings.APP_NAME, description=settings.APP_DESCRIPTION, version=settings.APP_VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_fastapi_middleware(app)

    app.add_exception_handler(TaskError, _task_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(task_routes.router, prefix=settings.API_PREFIX)
    app.include_router(task_routes.a2a_router)
    app.include_router(agent_card.router)

    # font + theme registration happens once, before the first request
    font = setup_drawing_engine()
    log_request("app.startup", env=settings.APP_ENV, api_prefix=settings.API_PREFIX, chart_font=font)
    return app


app = create_app()
