# app/api/routes.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from models.report_models import AnalysisReport
from services.errors import UrlAnalysisError
from services.url_analyzer import analyze_url, iso_timestamp

logger = logging.getLogger(__name__)

router = APIRouter()


# --------- Request / Response モデル ---------


class AnalyzeRequest(BaseModel):
    # 型チェックはエンドポイント側で行い、422 ではなく 400 を返す
    url: Any = None
    options: Optional[Any] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str


# --------- エンドポイント ---------


@router.post(
    "/analyze",
    response_model=AnalysisReport,
    response_model_exclude_none=True,
)
def api_analyze(payload: Optional[AnalyzeRequest] = None):
    """
    URL を解析してレポートを返す（ブラウザのテストページ用）。
    同期関数なので FastAPI のスレッドプール上で fetch が走る。
    """
    if payload is None or not isinstance(payload.url, str) or not payload.url:
        return JSONResponse(
            status_code=400,
            content={"error": 'Missing or invalid "url" parameter.'},
        )

    logger.info("[api.analyze] start url=%s", payload.url)
    try:
        report = analyze_url(payload.url, payload.options)
    except UrlAnalysisError as e:
        logger.error("[api.analyze] failed url=%s: %s", payload.url, e)
        return JSONResponse(status_code=500, content={"error": str(e)})

    logger.info("[api.analyze] done url=%s status=%s", payload.url, report.status.code)
    return report


@router.get("/health", response_model=HealthResponse)
def api_health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=iso_timestamp())
