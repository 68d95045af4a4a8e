# services/url_analyzer.py

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional, Union
from urllib.parse import parse_qsl, urlparse

from models.report_models import (
    AnalysisOptions,
    AnalysisReport,
    BasicInfo,
    SecurityInfo,
    StatusInfo,
)
from services.crawler import fetch_page
from services.errors import InvalidUrlError
from services.html_parser import (
    analyze_content,
    analyze_performance,
    analyze_seo,
    check_security_headers,
    parse_document,
)

logger = logging.getLogger(__name__)


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """2024-01-01T00:00:00.000Z 形式（UTC・ミリ秒まで）の時刻文字列。"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def decompose_url(url: str) -> BasicInfo:
    """
    URL を domain / protocol / path / query に分解する。
    ネットワークアクセスの前に呼ばれ、失敗した場合は InvalidUrlError。
    """
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except (TypeError, ValueError, AttributeError) as e:
        raise InvalidUrlError(url) from e

    if not parsed.scheme or not hostname:
        raise InvalidUrlError(url)

    # 同じキーが複数ある場合は最初の値を採用
    query = {}
    for key, value in parse_qsl(parsed.query, keep_blank_values=True):
        query.setdefault(key, value or "")

    return BasicInfo(
        domain=hostname,
        protocol=parsed.scheme,
        path=parsed.path or "/",
        query=query,
    )


def analyze_url(
    url: str,
    options: Union[AnalysisOptions, dict, None] = None,
    timeout: Optional[float] = None,
) -> AnalysisReport:
    """
    URL を 1 回だけ取得し、解析レポートを返すメイン処理。

    1) URL 分解（ここで失敗したら fetch しない）
    2) 制限時間付き fetch
    3) HTML パース
    4) options に応じて content / seo / performance を集計
    5) security は常に集計

    fetch に失敗した場合は UrlAnalysisError 系の例外をそのまま送出する。
    """
    if not isinstance(options, AnalysisOptions):
        options = AnalysisOptions.from_raw(options)

    basic = decompose_url(url)
    logger.info(
        "[url_analyzer] start url=%s content=%s seo=%s performance=%s",
        url,
        options.include_content,
        options.include_seo,
        options.include_performance,
    )

    start = time.monotonic()
    page = fetch_page(url, timeout=timeout)
    response_time = int(round((time.monotonic() - start) * 1000))

    soup = parse_document(page.html)

    report = AnalysisReport(
        url=url,
        timestamp=iso_timestamp(),
        status=StatusInfo(code=page.status_code, message=page.reason),
        basic=basic,
        security=SecurityInfo(
            https=basic.protocol == "https",
            has_security_headers=check_security_headers(page.headers),
        ),
    )

    if options.include_content:
        report.content = analyze_content(soup, url)

    if options.include_seo:
        report.seo = analyze_seo(soup)

    if options.include_performance:
        report.performance = analyze_performance(soup, page.content_size, response_time)

    logger.info(
        "[url_analyzer] done url=%s status=%s elapsed_ms=%s",
        url,
        page.status_code,
        response_time,
    )
    return report
