"""
MoonTV Advisor Chat Prompts - system prompt assembly

Contains:
- PREAMBLE: Assistant persona, capabilities and reply rules
- Section headings for each data source
- CLOSING: Source priority rules for the chat model
- build_system_prompt(): Compose the prompt from whatever sources returned data

Every excerpt is size-bounded: list results are capped, detail objects use a
fixed field allowlist, and long text fields are clipped.
"""

import json
from typing import Any, Dict, List, Optional

from routers.chat_orchestration.models import (
    CatalogDetail,
    CatalogResult,
    InternationalDetail,
    PopularList,
    SearchResults,
    VideoContext,
    WebSearchResults,
)

PREAMBLE = """你是 MoonTVPlus 的 AI 影视助手，专门帮助用户发现和了解影视内容。

## 你的能力
- 提供影视推荐（基于豆瓣热门榜单和TMDB数据）
- 回答影视相关问题（剧情、演员、评分等）
- 搜索最新影视资讯（如果启用了联网搜索）

## 回复要求
1. 语言风格：友好、专业、简洁
2. 信息来源：优先使用提供的数据，诚实告知数据不足
3. 推荐理由：说明为什么值得看，包括评分、类型、特色等
4. 格式清晰：使用分段、列表等让内容易读

"""

WEB_SEARCH_HEADING = "## 【联网搜索结果】（最新实时信息）"
DOUBAN_HEADING = "## 【豆瓣数据】（权威中文评分和信息）"
TMDB_HEADING = "## 【TMDB数据】（国际数据和详细元信息）"
CONTEXT_HEADING = "## 【当前视频上下文】"

CLOSING = """
## 数据来源优先级
1. 如果有联网搜索结果，优先使用其最新信息
2. 豆瓣数据提供中文评价和评分（更适合中文用户）
3. TMDB数据更国际化，提供关键词和相似推荐
4. 如果多个数据源有冲突，以联网搜索为准
5. 如果数据不足以回答问题，诚实告知用户

现在请回答用户的问题。"""

# Excerpt bounds
POPULAR_LIMIT = 10
SEARCH_LIMIT = 5
WEB_HIT_LIMIT = 5
REVIEW_LIMIT = 2
SIMILAR_LIMIT = 5
TEXT_LIMIT = 500

POPULAR_FIELDS = ("title", "rating", "year", "genres", "directors", "actors")
DETAIL_FIELDS = ("title", "rating", "year", "genres", "directors", "actors", "intro")


def _clip(value: Any, limit: int = TEXT_LIMIT) -> Any:
    """Truncate long strings anywhere inside a JSON-able value."""
    if isinstance(value, str):
        return value if len(value) <= limit else value[:limit] + "…"
    if isinstance(value, list):
        return [_clip(v, limit) for v in value]
    if isinstance(value, dict):
        return {k: _clip(v, limit) for k, v in value.items()}
    return value


def _dump(value: Any) -> str:
    return json.dumps(_clip(value), ensure_ascii=False, indent=2, default=str)


def _pick(item: Any, fields) -> Dict[str, Any]:
    if not isinstance(item, dict):
        return {}
    return {f: item.get(f) for f in fields}


def format_web_search(results: WebSearchResults) -> str:
    blocks = []
    for hit in results.hits[:WEB_HIT_LIMIT]:
        blocks.append(f"标题: {hit.title}\n摘要: {_clip(hit.snippet)}\n来源: {hit.url}")
    return "\n\n".join(blocks)


def format_douban(data: CatalogResult) -> str:
    if isinstance(data, PopularList):
        items = [_pick(item, POPULAR_FIELDS) for item in data.items[:POPULAR_LIMIT]]
        return f"推荐列表（{len(data.items)}部）:\n{_dump(items)}"
    if isinstance(data, SearchResults):
        return f"搜索结果:\n{_dump(data.items[:SEARCH_LIMIT])}"
    if isinstance(data, CatalogDetail):
        detail = _pick(data.data, DETAIL_FIELDS)
        reviews = data.data.get("reviews")
        detail["reviews"] = reviews[:REVIEW_LIMIT] if isinstance(reviews, list) else None
        return _dump(detail)
    return ""


def format_tmdb(data: InternationalDetail) -> str:
    return _dump({
        "title": data.title,
        "overview": data.overview,
        "vote_average": data.vote_average,
        "genres": data.genres,
        "keywords": data.keywords,
        "similar": data.similar[:SIMILAR_LIMIT],
    })


def format_context(context: VideoContext) -> str:
    line = f"用户正在浏览: {context.title}"
    if context.year:
        line += f" ({context.year})"
    if context.current_episode:
        line += f"，当前第 {context.current_episode} 集"
    return line


def build_system_prompt(
    context: Optional[VideoContext] = None,
    web_search: Optional[WebSearchResults] = None,
    douban: Optional[CatalogResult] = None,
    tmdb: Optional[InternationalDetail] = None,
) -> str:
    """Compose the system prompt. Always non-empty.

    With no data at all the result is the preamble plus the closing rules.
    """
    sections: List[str] = [PREAMBLE]

    if web_search is not None:
        formatted = format_web_search(web_search)
        if formatted:
            sections.append(f"\n{WEB_SEARCH_HEADING}\n{formatted}\n")

    if douban is not None:
        formatted = format_douban(douban)
        if formatted:
            sections.append(f"\n{DOUBAN_HEADING}\n{formatted}\n")

    if tmdb is not None:
        sections.append(f"\n{TMDB_HEADING}\n{format_tmdb(tmdb)}\n")

    if context is not None and context.title:
        sections.append(f"\n{CONTEXT_HEADING}\n{format_context(context)}\n")

    sections.append(CLOSING)
    return "".join(sections)
