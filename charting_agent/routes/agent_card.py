# charting_agent/routes/agent_card.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from charting_agent.core.settings import get_settings

router = APIRouter(tags=["agent"])

STARTED_AT = datetime.now(timezone.utc).isoformat(timespec="seconds")


def build_agent_card() -> Dict[str, Any]:
    settings = get_settings()
    endpoint = f"{settings.PUBLIC_URL.rstrip('/')}{settings.API_PREFIX}/charting/send"
    return {
        "name": settings.APP_NAME,
        "description": settings.APP_DESCRIPTION,
        "version": settings.APP_VERSION,
        "url": endpoint,
        "lastUpdated": STARTED_AT,
        "defaultInputModes": ["application/json"],
        "defaultOutputModes": ["application/json", "image/png"],
        "capabilities": {
            "methods": [
                {
                    "name": "analyze",
                    "description": "Infer column types from CSV data and suggest suitable chart types.",
                    "parameters": {"taskType": "analyze", "csvData": "string"},
                    "returns": "application/json",
                },
                {
                    "name": "create",
                    "description": "Render a bar, line or pie chart from CSV columns as a base64 PNG data URI.",
                    "parameters": {
                        "taskType": "create",
                        "csvData": "string",
                        "chartType": "bar | line | pie",
                        "options": {"labelColumn": "string", "dataColumns": "string[]", "title": "string (optional)"},
                    },
                    "returns": "image/png",
                },
            ],
        },
    }


@router.get("/.well-known/agent.json")
def agent_card() -> Dict[str, Any]:
    return build_agent_card()


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}
