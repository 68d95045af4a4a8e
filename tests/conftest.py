# tests/conftest.py
from __future__ import annotations

from typing import Dict, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

import services.crawler as crawler

META_DESCRIPTION_160 = "A" * 150 + " page desc"

SAMPLE_HTML = f"""<!DOCTYPE html>
<html>
<head>
  <title>Example Domain - a sample page for testing</title>
  <meta name="description" content="{META_DESCRIPTION_160}">
  <meta property="og:title" content="Example OG Title">
  <meta property="og:image" content="https://example.com/og.png">
  <meta property="og:empty" content="">
  <meta name="twitter:card" content="summary">
  <meta name="twitter:site" content="@example">
  <link rel="stylesheet" href="/main.css">
  <link rel="stylesheet" href="https://cdn.example.net/lib.css">
  <link rel="icon" href="/favicon.ico">
  <script src="/app.js"></script>
</head>
<body>
  <h1> Welcome </h1>
  <p>Hello world from the example page.</p>
  <h1>Second heading</h1>
  <a href="/about">About</a>
  <a href="https://example.com/contact">Contact</a>
  <a href="https://other.org/page">Other</a>
  <a href="mailto:info@example.com">Mail</a>
  <a href="">Empty</a>
  <a>No href</a>
  <img src="/a.png" alt="A picture">
  <img src="/b.png" alt="">
  <img src="/c.png">
  <script>var notCounted = "one two three";</script>
  <!-- a comment that is not counted -->
</body>
</html>
"""


class FakeResponse:
    """requests.Response のうち fetch_page が使う部分だけを真似たもの。"""

    def __init__(
        self,
        body: bytes = b"",
        status_code: int = 200,
        reason: str = "OK",
        headers: Optional[Dict[str, str]] = None,
        chunks: Optional[List[bytes]] = None,
        error: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.reason = reason
        self.headers = CaseInsensitiveDict(headers or {"Content-Type": "text/html; charset=utf-8"})
        self.encoding = get_encoding_from_headers(self.headers)
        self._chunks = chunks if chunks is not None else [body]
        self._error = error
        self.raw = None
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    def close(self) -> None:
        self.closed = True


class FakeGet:
    """requests.get の差し替え。呼び出し内容を記録する。"""

    def __init__(self):
        self.response: Optional[FakeResponse] = FakeResponse(SAMPLE_HTML.encode("utf-8"))
        self.error: Optional[Exception] = None
        self.calls: List[dict] = []

    def __call__(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_get(monkeypatch) -> FakeGet:
    fake = FakeGet()
    monkeypatch.setattr(crawler.requests, "get", fake)
    return fake


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML


@pytest.fixture
def connection_error() -> Exception:
    return requests.exceptions.ConnectionError("Failed to resolve 'nope.invalid'")
