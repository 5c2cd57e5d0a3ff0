# charting_agent/core/logging_utils.py
from __future__ import annotations

import json
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from charting_agent.core.settings import get_settings

# -----------------------------------------------------------------------------
# Correlation / request context
# -----------------------------------------------------------------------------
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")

def new_correlation_id() -> str:
    cid = uuid.uuid4().hex[:16]
    correlation_id.set(cid)
    return cid

def get_correlation_id() -> str:
    return correlation_id.get()


# -----------------------------------------------------------------------------
# JSON / pretty formatters
# -----------------------------------------------------------------------------
_RESERVED = frozenset((
    "msg", "args", "levelname", "levelno", "pathname", "filename", "module", "exc_info",
    "exc_text", "stack_info", "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "taskName", "name", "message",
))

class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "cid": get_correlation_id(),
        }
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        # include any extra structured fields
        for k, v in record.__dict__.items():
            if k.startswith("_") or k in base or k in _RESERVED:
                continue
            try:
                json.dumps(v)
                base[k] = v
            except (TypeError, ValueError):
                base[k] = repr(v)
        return json.dumps(base, ensure_ascii=False)

class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        cid = get_correlation_id()
        prefix = f"[{record.levelname:<5}] {record.name} cid={cid} - "
        return prefix + super().format(record)


# -----------------------------------------------------------------------------
# Logger setup
# -----------------------------------------------------------------------------
def _make_stream_handler(json_mode: bool) -> logging.Handler:
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(JsonFormatter() if json_mode else PrettyFormatter("%(message)s"))
    return h

def _make_file_handler(path: str, json_mode: bool) -> logging.Handler:
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    h = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
    h.setFormatter(JsonFormatter() if json_mode else PrettyFormatter("%(message)s"))
    return h

def setup_logging(
    level: str | int | None = None,
    *,
    json_mode: bool | None = None,
    file_path: Optional[str] = None,
) -> None:
    """
    Initialize root logger. Called once by create_app() at startup.

    Args:
        level: e.g., "INFO", "DEBUG". Defaults to settings.LOG_LEVEL.
        json_mode: True -> JSON logs; False -> pretty; None -> settings (JSON outside development).
        file_path: optional rotating logfile path, e.g., "logs/charting.log".
    """
    settings = get_settings()
    lvl = level or settings.LOG_LEVEL
    json_enabled = settings.json_logs if json_mode is None else json_mode
    file_path = file_path or settings.LOG_FILE

    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(lvl)

    # Clear existing handlers (uvicorn might set defaults)
    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_make_stream_handler(json_enabled))
    if file_path:
        root.addHandler(_make_file_handler(file_path, json_enabled))

    # matplotlib is chatty about font lookups at DEBUG
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)


# -----------------------------------------------------------------------------
# Timing helper
# -----------------------------------------------------------------------------
class Timer:
    def __init__(self):
        self.start = time.perf_counter()

    @property
    def ms(self) -> int:
        return int((time.perf_counter() - self.start) * 1000)


# -----------------------------------------------------------------------------
# Structured event helpers
# -----------------------------------------------------------------------------
def _log(event: str, level: int, **fields: Any) -> None:
    logger = logging.getLogger("charting_agent")
    extra = {"event": event, **fields}
    logger.log(level, fields.get("msg", event), extra=extra)

def log_task_event(
    task_type: Optional[str],
    *,
    ok: bool = True,
    code: Optional[str] = None,
    error: Optional[str] = None,
    rows: Optional[int] = None,
    columns: Optional[int] = None,
    chart_type: Optional[str] = None,
    duration_ms: Optional[int] = None,
) -> None:
    _log(
        "task.complete" if ok else "task.failed",
        logging.INFO if ok else logging.WARNING,
        task_type=task_type,
        ok=ok,
        code=code,
        error=error,
        rows=rows,
        columns=columns,
        chart_type=chart_type,
        duration_ms=duration_ms,
    )

def log_request(event: str, **fields: Any) -> None:
    _log(event, logging.INFO, **fields)


# -----------------------------------------------------------------------------
# FastAPI middleware to attach correlation id & access logs
# -----------------------------------------------------------------------------
def install_fastapi_middleware(app) -> None:
    """
    Usage in charting_agent/main.py:

        setup_logging()
        app = FastAPI()
        install_fastapi_middleware(app)
    """
    from fastapi import Request
    from starlette.responses import Response

    @app.middleware("http")
    async def _logging_middleware(request: Request, call_next):
        cid = request.headers.get("x-correlation-id") or new_correlation_id()
        correlation_id.set(cid)

        timer = Timer()
        try:
            response: Response = await call_next(request)
        except Exception as e:
            log_request(
                "http.error",
                method=request.method,
                path=str(request.url.path),
                status=500,
                duration_ms=timer.ms,
                error=f"{type(e).__name__}: {e}",
            )
            raise
        log_request(
            "http.access",
            method=request.method,
            path=str(request.url.path),
            status=response.status_code,
            duration_ms=timer.ms,
            client=str(request.client.host if request.client else "-"),
        )
        response.headers["x-correlation-id"] = cid
        return response
