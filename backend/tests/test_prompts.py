"""
Tests for system prompt assembly.
"""

from routers.chat_orchestration.models import (
    CatalogDetail,
    InternationalDetail,
    PopularList,
    SearchHit,
    SearchResults,
    VideoContext,
    WebSearchResults,
)
from routers.chat_prompts import (
    CLOSING,
    CONTEXT_HEADING,
    DOUBAN_HEADING,
    PREAMBLE,
    TEXT_LIMIT,
    TMDB_HEADING,
    WEB_SEARCH_HEADING,
    build_system_prompt,
    format_context,
    format_douban,
)


class TestBuildSystemPrompt:

    def test_no_data(self):
        prompt = build_system_prompt()
        assert prompt == PREAMBLE + CLOSING
        for heading in (WEB_SEARCH_HEADING, DOUBAN_HEADING, TMDB_HEADING, CONTEXT_HEADING):
            assert heading not in prompt

    def test_section_order(self):
        prompt = build_system_prompt(
            context=VideoContext(title="繁花", year="2023"),
            web_search=WebSearchResults(provider="tavily", hits=[SearchHit("标题A", "摘要A", "https://a")]),
            douban=SearchResults(items=[{"title": "繁花"}]),
            tmdb=InternationalDetail(title="Blossoms Shanghai"),
        )
        positions = [prompt.index(h) for h in (WEB_SEARCH_HEADING, DOUBAN_HEADING, TMDB_HEADING, CONTEXT_HEADING)]
        assert positions == sorted(positions)
        assert prompt.startswith(PREAMBLE)
        assert prompt.endswith("现在请回答用户的问题。")

    def test_web_hits(self):
        prompt = build_system_prompt(
            web_search=WebSearchResults(provider="serper", hits=[SearchHit("第二季定档", "明年播出", "https://news")])
        )
        assert "标题: 第二季定档\n摘要: 明年播出\n来源: https://news" in prompt

    def test_empty_web_results_omitted(self):
        prompt = build_system_prompt(web_search=WebSearchResults(provider="tavily", hits=[]))
        assert WEB_SEARCH_HEADING not in prompt

    def test_context_without_title_omitted(self):
        assert CONTEXT_HEADING not in build_system_prompt(context=VideoContext(tmdb_id=603, type="movie"))


class TestDoubanExcerpt:

    def test_popular_list_capped(self):
        items = [{"title": f"片{i}", "rating": {"value": 8.0}, "cover": "x"} for i in range(15)]
        text = format_douban(PopularList(items=items))
        assert text.startswith("推荐列表（15部）:")
        assert "片9" in text
        assert "片10" not in text
        assert "cover" not in text

    def test_search_capped(self):
        text = format_douban(SearchResults(items=[{"title": f"结果{i}"} for i in range(8)]))
        assert text.startswith("搜索结果:")
        assert "结果4" in text
        assert "结果5" not in text

    def test_detail_allowlist_and_reviews(self):
        data = {
            "title": "霸王别姬",
            "intro": "长" * (TEXT_LIMIT + 50),
            "trailer_urls": ["https://video"],
            "reviews": [{"content": "r1"}, {"content": "r2"}, {"content": "r3"}],
        }
        text = format_douban(CatalogDetail(data=data))
        assert "霸王别姬" in text
        assert "trailer_urls" not in text
        assert "r2" in text and "r3" not in text
        assert "长" * TEXT_LIMIT + "…" in text
        assert "长" * (TEXT_LIMIT + 1) not in text


class TestContextLine:

    def test_full_context(self):
        ctx = VideoContext(title="繁花", year="2023", currentEpisode=12)
        assert format_context(ctx) == "用户正在浏览: 繁花 (2023)，当前第 12 集"

    def test_title_only(self):
        assert format_context(VideoContext(title="繁花")) == "用户正在浏览: 繁花"
