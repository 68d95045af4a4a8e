# tests/test_crawler.py
import socketserver
import threading
import time

import pytest
import requests

from services.crawler import fetch_page
from services.errors import FetchError, FetchTimeoutError
from services.url_analyzer import analyze_url

from conftest import FakeResponse


def test_fetch_page_reads_body_and_status(fake_get):
    fake_get.response = FakeResponse(
        chunks=["<p>こんにちは</p>".encode("utf-8")[:5], "<p>こんにちは</p>".encode("utf-8")[5:]],
        status_code=404,
        reason="Not Found",
        headers={"Content-Type": "text/html", "X-Frame-Options": "DENY"},
    )

    page = fetch_page("https://example.com/missing", timeout=5)

    # 4xx はエラーにしない
    assert page.status_code == 404
    assert page.reason == "Not Found"
    assert page.html == "<p>こんにちは</p>"
    assert page.content_size == len("<p>こんにちは</p>".encode("utf-8"))
    assert page.headers["x-frame-options"] == "DENY"
    assert fake_get.response.closed is True


def test_fetch_page_sends_user_agent_and_timeout(fake_get):
    fetch_page("https://example.com/", timeout=3, user_agent="test-agent/1.0")

    call = fake_get.calls[0]
    assert call["url"] == "https://example.com/"
    assert call["headers"]["User-Agent"] == "test-agent/1.0"
    assert call["timeout"] == (3, 3)
    assert call["stream"] is True


def test_fetch_page_default_user_agent(fake_get):
    fetch_page("https://example.com/")
    assert fake_get.calls[0]["headers"]["User-Agent"] == "Mozilla/5.0 (compatible; MCP-URL-Analyzer/1.0)"


def test_fetch_page_uses_declared_charset(fake_get):
    fake_get.response = FakeResponse(
        "<p>日本語</p>".encode("shift_jis"),
        headers={"Content-Type": "text/html; charset=Shift_JIS"},
    )
    assert fetch_page("https://example.jp/").html == "<p>日本語</p>"


def test_fetch_page_connect_timeout_is_distinct(fake_get):
    fake_get.error = requests.exceptions.ConnectTimeout("connect timed out")

    with pytest.raises(FetchTimeoutError) as exc_info:
        fetch_page("https://slow.example.com/", timeout=10)

    assert str(exc_info.value).startswith("Request timeout")
    assert exc_info.value.timeout == 10


def test_fetch_page_connection_error_is_not_timeout(fake_get, connection_error):
    fake_get.error = connection_error

    with pytest.raises(FetchError) as exc_info:
        fetch_page("https://nope.invalid/")

    assert not isinstance(exc_info.value, FetchTimeoutError)
    assert "Failed to resolve" in str(exc_info.value)


def test_fetch_page_deadline_exceeded_while_reading_body(fake_get):
    class SlowResponse(FakeResponse):
        def iter_content(self, chunk_size=1):
            for chunk in (b"<html>", b"</html>"):
                time.sleep(0.3)
                yield chunk

    fake_get.response = SlowResponse()

    with pytest.raises(FetchTimeoutError):
        fetch_page("https://slow.example.com/", timeout=0.1)

    assert fake_get.response.closed is True


def test_fetch_page_read_timeout_while_reading_body(fake_get):
    fake_get.response = FakeResponse(
        chunks=[b"<html>"],
        error=requests.exceptions.ReadTimeout("Read timed out."),
    )

    with pytest.raises(FetchTimeoutError):
        fetch_page("https://slow.example.com/", timeout=10)


def test_fetch_page_body_error_before_deadline_is_fetch_error(fake_get):
    fake_get.response = FakeResponse(
        chunks=[b"<html>"],
        error=requests.exceptions.ChunkedEncodingError("Connection broken"),
    )

    with pytest.raises(FetchError) as exc_info:
        fetch_page("https://example.com/", timeout=10)

    assert not isinstance(exc_info.value, FetchTimeoutError)
    assert fake_get.response.closed is True


# --------- 実ソケットで 1 バイトずつ送ってくるサーバー ---------


class _TrickleHandler(socketserver.BaseRequestHandler):
    """リクエストを読んだあと、prefix を送り、残りを 1 バイトずつゆっくり送る。"""

    prefix = b""
    trickle = b""
    interval = 0.2

    def handle(self):
        self.request.recv(65536)
        try:
            self.request.sendall(self.prefix)
            for i in range(len(self.trickle)):
                time.sleep(self.interval)
                self.request.sendall(self.trickle[i:i + 1])
        except OSError:
            # クライアント側が切断した
            return


@pytest.fixture
def local_no_proxy(monkeypatch):
    # ローカルサーバーへの接続がプロキシ経由にならないようにする
    for var in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")


def _serve(prefix: bytes, trickle: bytes):
    handler = type("Handler", (_TrickleHandler,), {"prefix": prefix, "trickle": trickle})
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), handler)
    server.daemon_threads = True
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


@pytest.fixture
def slow_body_server(local_no_proxy):
    server = _serve(
        b"HTTP/1.1 200 OK\r\nContent-Type: text/html\r\nContent-Length: 24\r\n\r\n",
        b"<html>slow body!!</html>",
    )
    yield "http://127.0.0.1:%d/" % server.server_address[1]
    server.shutdown()
    server.server_close()


@pytest.fixture
def slow_headers_server(local_no_proxy):
    server = _serve(
        b"HTTP/1.1 200 OK\r\n",
        b"Content-Type: text/html\r\nContent-Length: 0\r\n\r\n",
    )
    yield "http://127.0.0.1:%d/" % server.server_address[1]
    server.shutdown()
    server.server_close()


def test_fetch_page_aborts_slow_body_at_deadline(slow_body_server):
    started = time.monotonic()

    with pytest.raises(FetchTimeoutError):
        fetch_page(slow_body_server, timeout=1.0)

    # 24 バイト x 0.2 秒 = 4.8 秒かかるところを 1 秒で打ち切る
    assert time.monotonic() - started < 2.0


def test_fetch_page_aborts_slow_headers_at_deadline(slow_headers_server):
    started = time.monotonic()

    with pytest.raises(FetchTimeoutError):
        fetch_page(slow_headers_server, timeout=1.0)

    assert time.monotonic() - started < 2.0


def test_analyze_url_reports_timeout_for_slow_server(slow_body_server):
    started = time.monotonic()

    with pytest.raises(FetchTimeoutError) as exc_info:
        analyze_url(slow_body_server, timeout=1.0)

    assert str(exc_info.value).startswith("Request timeout")
    assert time.monotonic() - started < 2.0


def test_fetch_page_reads_real_socket_within_deadline(local_no_proxy):
    server = _serve(
        b"HTTP/1.1 200 OK\r\nContent-Type: text/html; charset=utf-8\r\n"
        b"X-Content-Type-Options: nosniff\r\nContent-Length: 13\r\n\r\n<p>fast</p>\r\n",
        b"",
    )
    try:
        page = fetch_page("http://127.0.0.1:%d/" % server.server_address[1], timeout=5.0)
    finally:
        server.shutdown()
        server.server_close()

    assert page.status_code == 200
    assert page.html == "<p>fast</p>\r\n"
    assert page.headers["x-content-type-options"] == "nosniff"
