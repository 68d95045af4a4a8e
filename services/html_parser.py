# services/html_parser.py

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, NavigableString
from bs4.element import PreformattedString

from models.report_models import (
    ContentAnalysis,
    HeadingStructure,
    Headings,
    ImageCounts,
    LengthCheck,
    LinkCounts,
    PerformanceAnalysis,
    ResourceCounts,
    SeoAnalysis,
)

# ============================================================
# SEO 判定パラメータ
# ============================================================

TITLE_MIN_LENGTH = 30
TITLE_MAX_LENGTH = 60
META_DESC_MIN_LENGTH = 120
META_DESC_MAX_LENGTH = 160

SECURITY_HEADERS = (
    "strict-transport-security",
    "content-security-policy",
    "x-frame-options",
    "x-content-type-options",
)

HEADING_TAG_RE = re.compile(r"^h[1-6]$")

# 本文の単語数に含めない要素
_INVISIBLE_TAGS = {"script", "style", "noscript", "template"}

# <body> が無い文書で head 側のテキストを拾わないための除外対象
_HEAD_TAGS = {"head", "title"}


# ============================================================
# ユーティリティ
# ============================================================

def parse_document(html: str) -> BeautifulSoup:
    """
    HTML 文字列を BeautifulSoup に変換する。
    html.parser は壊れたマークアップでも例外を出さずにベストエフォートで木を作る。
    """
    return BeautifulSoup(html or "", "html.parser")


def get_meta_tag(soup: BeautifulSoup, name: str) -> str:
    """<meta name="..."> の最初の 1 件の content を返す。無ければ空文字。"""
    tag = soup.find("meta", attrs={"name": name})
    if tag is None:
        return ""
    return tag.get("content") or ""


def get_title(soup: BeautifulSoup) -> str:
    return soup.title.get_text().strip() if soup.title else ""


def heading_levels(soup: BeautifulSoup) -> List[int]:
    """h1〜h6 のレベルを文書順に並べたリスト。"""
    return [int(tag.name[1]) for tag in soup.find_all(HEADING_TAG_RE)]


def has_proper_hierarchy(levels: Iterable[int]) -> bool:
    """
    直前の見出しより 2 段以上深くなる箇所が無ければ True。
    h1 から始まる必要はなく、浅くなる方向への移動はいくつ飛ばしても良い。
    """
    prev: Optional[int] = None
    for level in levels:
        if prev is not None and level > prev + 1:
            return False
        prev = level
    return True


def _visible_text(soup: BeautifulSoup) -> str:
    """
    <body> の表示テキスト。script/style/コメントは除く。
    テキストノードは区切り文字なしで連結する（インライン要素で単語が割れないように）。
    html.parser は暗黙の <body> を作らないので、無い場合は文書全体から head 部分を除いて使う。
    """
    root = soup.body or soup
    excluded = _INVISIBLE_TAGS if soup.body else _INVISIBLE_TAGS | _HEAD_TAGS
    parts: List[str] = []
    for s in root.find_all(string=True):
        if isinstance(s, PreformattedString):
            # Comment / Doctype / CDATA など
            continue
        if not isinstance(s, NavigableString):
            continue
        if any(p.name in excluded for p in s.parents):
            continue
        parts.append(str(s))
    return "".join(parts)


def count_words(text: str) -> int:
    collapsed = re.sub(r"\s+", " ", text or "").strip()
    if not collapsed:
        return 0
    return len([t for t in collapsed.split(" ") if t])


def _resolve_host(href: str, base_url: str) -> Optional[str]:
    """href を base_url 基準で解決し、ホスト名を返す。解決できなければ None。"""
    try:
        return urlparse(urljoin(base_url, href)).hostname
    except ValueError:
        # "http://[::1" のような壊れた URL
        return None


def _collect_meta(soup: BeautifulSoup, selector: str, key_attr: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for tag in soup.select(selector):
        key = tag.get(key_attr)
        content = tag.get("content")
        if key and content:
            result[key] = content
    return result


# ============================================================
# メトリクス
# ============================================================

def analyze_content(soup: BeautifulSoup, base_url: str) -> ContentAnalysis:
    """
    ページ本文まわりの指標を集計する。

    - title / meta description
    - h1〜h3 のテキスト（文書順）
    - リンク数（内部 / 外部 / 合計）
    - 画像数（alt あり / なし）
    - 本文の単語数
    """
    headings = Headings(
        h1=[h.get_text().strip() for h in soup.find_all("h1")],
        h2=[h.get_text().strip() for h in soup.find_all("h2")],
        h3=[h.get_text().strip() for h in soup.find_all("h3")],
    )

    page_host = urlparse(base_url).hostname
    anchors = soup.select("a[href]")
    internal = 0
    external = 0
    for a in anchors:
        href = (a.get("href") or "").strip()
        if not href:
            continue
        host = _resolve_host(href, base_url)
        if not host:
            # mailto: / javascript: などホストを持たないリンクは total のみ
            continue
        if host == page_host:
            internal += 1
        else:
            external += 1

    images = soup.find_all("img")
    with_alt = sum(1 for img in images if img.get("alt"))

    return ContentAnalysis(
        title=get_title(soup),
        description=get_meta_tag(soup, "description"),
        headings=headings,
        links=LinkCounts(internal=internal, external=external, total=len(anchors)),
        images=ImageCounts(
            total=len(images),
            with_alt=with_alt,
            without_alt=len(images) - with_alt,
        ),
        word_count=count_words(_visible_text(soup)),
    )


def _length_check(text: str, min_length: int, max_length: int) -> LengthCheck:
    length = len(text)
    return LengthCheck(
        present=length > 0,
        length=length,
        optimal=min_length <= length <= max_length,
    )


def analyze_seo(soup: BeautifulSoup) -> SeoAnalysis:
    """title / description の長さ、見出し構造、OGP / Twitter Card を判定する。"""
    h1_count = len(soup.find_all("h1"))

    return SeoAnalysis(
        title=_length_check(get_title(soup), TITLE_MIN_LENGTH, TITLE_MAX_LENGTH),
        meta_description=_length_check(
            get_meta_tag(soup, "description"),
            META_DESC_MIN_LENGTH,
            META_DESC_MAX_LENGTH,
        ),
        heading_structure=HeadingStructure(
            has_h1=h1_count > 0,
            h1_count=h1_count,
            proper_hierarchy=has_proper_hierarchy(heading_levels(soup)),
        ),
        open_graph=_collect_meta(soup, 'meta[property^="og:"]', "property"),
        twitter_card=_collect_meta(soup, 'meta[name^="twitter:"]', "name"),
    )


def analyze_performance(
    soup: BeautifulSoup,
    content_size: int,
    response_time: int,
) -> PerformanceAnalysis:
    return PerformanceAnalysis(
        response_time=response_time,
        content_size=content_size,
        resource_counts=ResourceCounts(
            scripts=len(soup.find_all("script")),
            stylesheets=len(soup.select('link[rel="stylesheet"]')),
            images=len(soup.find_all("img")),
        ),
    )


def check_security_headers(headers: Mapping[str, str]) -> bool:
    """セキュリティ系レスポンスヘッダが 1 つでもあれば True（名前は大文字小文字を区別しない）。"""
    names = {key.lower() for key in headers.keys()}
    return any(h in names for h in SECURITY_HEADERS)
