# models/fetch_models.py

from pydantic import BaseModel, ConfigDict
from requests.structures import CaseInsensitiveDict


class FetchedPage(BaseModel):
    """
    1 回の GET で取得したレスポンスを、本文まで読み切った状態で保持する。
    headers は requests の CaseInsensitiveDict のまま持つ（名前の大文字小文字を区別しない）。
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str
    status_code: int
    reason: str = ""
    headers: CaseInsensitiveDict
    html: str = ""
    content_size: int = 0
