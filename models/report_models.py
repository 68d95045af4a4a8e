# models/report_models.py

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """
    レポート用モデルの共通ベース。
    Python 側は snake_case、JSON 出力は camelCase (withAlt, hasH1 など)。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------------------
# 入力オプション
# -----------------------------------------
class AnalysisOptions(_CamelModel):
    """解析オプション。各フラグは明示的に False のときだけ無効になる。"""

    include_content: bool = True
    include_seo: bool = Field(True, alias="includeSEO")
    include_performance: bool = True

    @classmethod
    def from_raw(cls, raw: Any) -> "AnalysisOptions":
        """
        MCP / HTTP から届いた生の options を AnalysisOptions に変換する。

        - dict 以外（None, 文字列, 配列など）は {} とみなす
        - 値が bool の False のときだけ OFF。"false" や 0 は ON のまま
        """
        if not isinstance(raw, dict):
            raw = {}
        return cls(
            include_content=raw.get("includeContent") is not False,
            include_seo=raw.get("includeSEO") is not False,
            include_performance=raw.get("includePerformance") is not False,
        )


# -----------------------------------------
# 常に含まれる項目
# -----------------------------------------
class StatusInfo(_CamelModel):
    code: int
    message: str


class BasicInfo(_CamelModel):
    domain: str
    protocol: str
    path: str
    query: Dict[str, str] = Field(default_factory=dict)


class SecurityInfo(_CamelModel):
    https: bool
    has_security_headers: bool


# -----------------------------------------
# content
# -----------------------------------------
class Headings(_CamelModel):
    h1: List[str] = Field(default_factory=list)
    h2: List[str] = Field(default_factory=list)
    h3: List[str] = Field(default_factory=list)


class LinkCounts(_CamelModel):
    internal: int = 0
    external: int = 0
    total: int = 0


class ImageCounts(_CamelModel):
    total: int = 0
    with_alt: int = 0
    without_alt: int = 0


class ContentAnalysis(_CamelModel):
    title: str
    description: str
    headings: Headings
    links: LinkCounts
    images: ImageCounts
    word_count: int


# -----------------------------------------
# seo
# -----------------------------------------
class LengthCheck(_CamelModel):
    """title / meta description の長さ判定。"""

    present: bool
    length: int
    optimal: bool


class HeadingStructure(_CamelModel):
    has_h1: bool
    h1_count: int
    proper_hierarchy: bool


class SeoAnalysis(_CamelModel):
    title: LengthCheck
    meta_description: LengthCheck
    heading_structure: HeadingStructure
    open_graph: Dict[str, str] = Field(default_factory=dict)
    twitter_card: Dict[str, str] = Field(default_factory=dict)


# -----------------------------------------
# performance
# -----------------------------------------
class ResourceCounts(_CamelModel):
    scripts: int = 0
    stylesheets: int = 0
    images: int = 0


class PerformanceAnalysis(_CamelModel):
    response_time: int
    content_size: int
    resource_counts: ResourceCounts


# -----------------------------------------
# レポート本体
# -----------------------------------------
class AnalysisReport(_CamelModel):
    """
    1 URL 分の解析レポート。
    content / seo / performance はオプションで無効化された場合 None になり、
    JSON 化の際はキーごと省略する（空のデフォルト値とは区別する）。
    """

    url: str
    timestamp: str
    status: StatusInfo
    basic: BasicInfo
    content: Optional[ContentAnalysis] = None
    seo: Optional[SeoAnalysis] = None
    performance: Optional[PerformanceAnalysis] = None
    security: SecurityInfo

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
