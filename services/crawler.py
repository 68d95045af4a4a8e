# services/crawler.py

from __future__ import annotations

import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional, Tuple

import requests
from requests.structures import CaseInsensitiveDict

from app.config import settings
from models.fetch_models import FetchedPage
from services.errors import FetchError, FetchTimeoutError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class _InFlight:
    """
    進行中の fetch 1 件分のハンドル。
    期限切れになったら呼び出し側のスレッドから abort() して通信を打ち切る。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._resp: Optional[requests.Response] = None
        self.aborted = False

    def attach(self, resp: requests.Response) -> None:
        with self._lock:
            self._resp = resp
            aborted = self.aborted
        # ヘッダ受信中に期限が来ていた場合は、ここで即座に閉じる
        if aborted:
            _close_response(resp)

    def abort(self) -> None:
        with self._lock:
            self.aborted = True
            resp = self._resp
        if resp is not None:
            _close_response(resp)


def _close_response(resp: requests.Response) -> None:
    """
    ブロック中の recv は close() だけでは戻らないので、先にソケットを shutdown する。
    """
    conn = getattr(resp.raw, "connection", None)
    sock = getattr(conn, "sock", None)
    if sock is not None:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # すでに切断済み
            logger.debug("[crawler] socket already closed")
    resp.close()


def _decode_body(body: bytes, resp: requests.Response) -> str:
    """
    Content-Type に charset があればそれで、なければ UTF-8 でデコードする。
    （requests は text/* で charset 無しだと ISO-8859-1 を仮定するので使わない）
    """
    content_type = resp.headers.get("content-type", "") or ""
    encoding = resp.encoding if "charset" in content_type.lower() else None
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        # 未知の charset 名
        return body.decode("utf-8", errors="replace")


def _download(
    url: str,
    headers: dict,
    timeout: float,
    in_flight: _InFlight,
) -> Tuple[requests.Response, bytes]:
    """ワーカースレッド側: GET して本文を最後まで読む。"""
    resp = requests.get(
        url,
        headers=headers,
        timeout=(timeout, timeout),
        stream=True,
    )
    in_flight.attach(resp)
    try:
        body = b"".join(resp.iter_content(chunk_size=CHUNK_SIZE))
    finally:
        resp.close()
    return resp, body


def fetch_page(
    url: str,
    timeout: Optional[float] = None,
    user_agent: Optional[str] = None,
) -> FetchedPage:
    """
    単純な GET 1 回だけのクロール。リトライは入れていない。

    - 接続から本文の読み込み完了までを timeout 秒で打ち切る
      （通信はワーカースレッドで行い、期限が来たらソケットを閉じて中断する）
    - 時間切れは FetchTimeoutError、それ以外の通信エラーは FetchError
    - 4xx / 5xx はエラーにせず、そのまま status_code として返す
    """
    timeout = settings.fetch_timeout if timeout is None else timeout
    headers = {
        "User-Agent": user_agent or settings.user_agent,
    }
    in_flight = _InFlight()

    logger.info("[crawler] GET %s timeout=%.1fs", url, timeout)
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="crawler")
    try:
        future = pool.submit(_download, url, headers, timeout, in_flight)
        resp, body = future.result(timeout=timeout)
    except FutureTimeoutError as e:
        in_flight.abort()
        logger.warning("[crawler] deadline exceeded url=%s timeout=%.1fs", url, timeout)
        raise FetchTimeoutError(timeout) from e
    except requests.exceptions.Timeout as e:
        logger.warning("[crawler] timeout url=%s: %s", url, e)
        raise FetchTimeoutError(timeout) from e
    except requests.exceptions.RequestException as e:
        logger.warning("[crawler] request failed url=%s: %s", url, e)
        raise FetchError(str(e)) from e
    finally:
        # 期限切れの場合もワーカーの終了は待たない
        pool.shutdown(wait=False)

    html = _decode_body(body, resp)
    page = FetchedPage(
        url=url,
        status_code=resp.status_code,
        reason=resp.reason or "",
        headers=CaseInsensitiveDict(resp.headers),
        html=html,
        content_size=len(html.encode("utf-8")),
    )
    logger.info(
        "[crawler] done url=%s status=%s bytes=%s",
        url,
        page.status_code,
        page.content_size,
    )
    return page
