"""
Tests for the decision model adapter.

The SDK clients are real; their HTTP goes through httpx.MockTransport.
"""

import asyncio
import json

import httpx

from routers.chat_orchestration.decision import (
    build_system_instruction,
    build_user_prompt,
    decide,
    parse_decision,
)
from routers.chat_orchestration.models import DecisionModelConfig, SourceAvailability, VideoContext

from conftest import mock_client

ALL_SOURCES = SourceAvailability(web_search=True, douban=True, tmdb=True)
DOUBAN_ONLY = SourceAvailability(web_search=False, douban=True, tmdb=False)

DECISION_JSON = {
    "needWebSearch": True,
    "needDouban": True,
    "needTMDB": False,
    "webSearchQuery": "漫长的季节 第二季 播出时间",
    "doubanQuery": "漫长的季节",
    "reasoning": "时效性问题",
}


def _openai_completion(content: str) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "decider",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


def _claude_message(text: str) -> dict:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": "claude-decider",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 10, "output_tokens": 10},
    }


class TestInstruction:
    """The instruction only offers configured sources."""

    def test_lists_available_sources(self):
        text = build_system_instruction(ALL_SOURCES)
        assert "联网搜索** -" in text
        assert "豆瓣API** -" in text
        assert "TMDB API** -" in text
        assert "必须返回false)" not in text

    def test_marks_unavailable_sources(self):
        text = build_system_instruction(DOUBAN_ONLY)
        assert "联网搜索** -" not in text
        assert "TMDB API** -" not in text
        assert '"needWebSearch": boolean,  // 是否需要联网搜索 (当前不可用，必须返回false)' in text
        assert '"needTMDB": boolean,       // 是否需要TMDB数据 (当前不可用，必须返回false)' in text
        assert "（但当前不可用）" in text

    def test_no_sources(self):
        text = build_system_instruction(SourceAvailability(web_search=False, douban=False, tmdb=False))
        assert "没有可用的数据源" in text

    def test_user_prompt_context(self):
        ctx = VideoContext(title="繁花", year="2023", type="tv", currentEpisode=5)
        prompt = build_user_prompt("后面会怎样", ctx)
        assert prompt.startswith("用户问题：后面会怎样")
        assert "- 标题：繁花" in prompt
        assert "- 年份：2023" in prompt
        assert "- 类型：电视剧" in prompt
        assert "- 当前集数：第5集" in prompt

    def test_user_prompt_without_context(self):
        assert build_user_prompt("你好") == "用户问题：你好"


class TestParseDecision:

    def test_plain_json(self):
        decision = parse_decision(json.dumps(DECISION_JSON, ensure_ascii=False))
        assert decision.need_web_search is True
        assert decision.need_douban is True
        assert decision.need_tmdb is False
        assert decision.web_search_query == "漫长的季节 第二季 播出时间"
        assert decision.douban_query == "漫长的季节"
        assert decision.reasoning == "时效性问题"

    def test_fenced_json(self):
        content = "```json\n" + json.dumps(DECISION_JSON) + "\n```"
        assert parse_decision(content).need_web_search is True

    def test_bare_fence(self):
        content = "```\n" + json.dumps(DECISION_JSON) + "\n```"
        assert parse_decision(content).need_douban is True

    def test_prose_around_object(self):
        content = "好的，决策如下：" + json.dumps(DECISION_JSON) + " 以上。"
        assert parse_decision(content).need_web_search is True

    def test_missing_fields_default_false(self):
        decision = parse_decision('{"needDouban": true}')
        assert decision.need_douban is True
        assert decision.need_web_search is False
        assert decision.web_search_query is None

    def test_unparseable(self):
        assert parse_decision("") is None
        assert parse_decision("I think you need Douban") is None
        assert parse_decision("{not json}") is None
        assert parse_decision("[1, 2]") is None


class TestDecideOpenAI:
    """OpenAI-compatible decision path."""

    CONFIG = DecisionModelConfig(provider="custom", api_key="sk-test", model="decider", base_url="https://llm.test/v1")

    def test_success_sends_json_mode(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_openai_completion(json.dumps(DECISION_JSON)))

        async def run():
            async with mock_client(handler) as client:
                return await decide("第二季什么时候出", None, self.CONFIG, ALL_SOURCES, http_client=client)

        decision = asyncio.run(run())
        assert decision is not None
        assert decision.need_web_search is True
        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["temperature"] == 0
        assert seen["body"]["max_tokens"] == 500
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert seen["body"]["messages"][0]["role"] == "system"
        assert seen["body"]["messages"][1]["content"] == "用户问题：第二季什么时候出"

    def test_server_error_returns_none(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"error": {"message": "overloaded"}})

        async def run():
            async with mock_client(handler) as client:
                return await decide("你好", None, self.CONFIG, ALL_SOURCES, http_client=client)

        assert asyncio.run(run()) is None
        # No retries
        assert len(calls) == 1

    def test_network_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        async def run():
            async with mock_client(handler) as client:
                return await decide("你好", None, self.CONFIG, ALL_SOURCES, http_client=client)

        assert asyncio.run(run()) is None

    def test_malformed_reply_returns_none(self):
        def handler(request):
            return httpx.Response(200, json=_openai_completion("sorry, I can't help with that"))

        async def run():
            async with mock_client(handler) as client:
                return await decide("你好", None, self.CONFIG, ALL_SOURCES, http_client=client)

        assert asyncio.run(run()) is None


class TestDecideClaude:
    """Claude decision path."""

    CONFIG = DecisionModelConfig(provider="claude", api_key="sk-ant-test", model="claude-decider")

    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("x-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_claude_message("```json\n" + json.dumps(DECISION_JSON) + "\n```"))

        async def run():
            async with mock_client(handler) as client:
                return await decide("第二季什么时候出", None, self.CONFIG, DOUBAN_ONLY, http_client=client)

        decision = asyncio.run(run())
        assert decision is not None
        assert decision.douban_query == "漫长的季节"
        assert seen["path"] == "/v1/messages"
        assert seen["key"] == "sk-ant-test"
        assert seen["body"]["temperature"] == 0
        assert seen["body"]["max_tokens"] == 500
        assert "response_format" not in seen["body"]
        assert "必须返回false" in seen["body"]["system"]

    def test_status_error_returns_none(self):
        def handler(request):
            return httpx.Response(401, json={"type": "error", "error": {"type": "authentication_error", "message": "bad key"}})

        async def run():
            async with mock_client(handler) as client:
                return await decide("你好", None, self.CONFIG, ALL_SOURCES, http_client=client)

        assert asyncio.run(run()) is None

    def test_unknown_provider_returns_none(self):
        config = DecisionModelConfig(provider="gemini", api_key="k", model="m")
        assert asyncio.run(decide("你好", None, config, ALL_SOURCES)) is None
