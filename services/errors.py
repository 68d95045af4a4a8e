# services/errors.py


class UrlAnalysisError(Exception):
    """URL 解析エンジンの例外の基底クラス。str(e) がそのままユーザー向けメッセージになる。"""


class InvalidUrlError(UrlAnalysisError):
    """URL を scheme / host / path に分解できない。fetch は行わない。"""

    def __init__(self, url: str):
        super().__init__(f"Invalid URL: {url!r}")
        self.url = url


class FetchError(UrlAnalysisError):
    """DNS・接続拒否・TLS など通信レベルの失敗。"""


class FetchTimeoutError(FetchError):
    """制限時間内に fetch が完了しなかった。"""

    def __init__(self, timeout: float):
        super().__init__("Request timeout - URL took too long to respond")
        self.timeout = timeout
