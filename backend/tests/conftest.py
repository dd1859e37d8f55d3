"""
Shared pytest fixtures for the advisor tests.

Network access is never real: provider calls go through httpx.MockTransport
or are patched at the module attribute the orchestrator calls.
"""

import json
from typing import Callable, List

import httpx
import pytest
from unittest.mock import patch

from config import RuntimeConfig
from routers.chat_orchestration.models import OrchestratorConfig

TEST_SECRET = "test-secret-key-for-session-tokens"


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse_body(payloads: List[object], done: bool = True) -> bytes:
    """Encode payloads as upstream `data:` lines (dicts are JSON-encoded)."""
    lines = []
    for payload in payloads:
        text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        lines.append(f"data: {text}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def openai_delta(text: str) -> dict:
    return {"choices": [{"index": 0, "delta": {"content": text}}]}


def claude_delta(text: str) -> dict:
    return {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}}


@pytest.fixture
def advisor_config():
    """A fully enabled custom-provider config installed as the runtime singleton."""
    cfg = RuntimeConfig(
        ai_enabled=True,
        ai_allow_regular_users=False,
        owner_username="owner",
        auth_secret=TEST_SECRET,
        chat_provider="custom",
        custom_api_key="sk-test",
        custom_base_url="https://llm.test/v1",
        custom_model="test-model",
        temperature=0.7,
        max_tokens=1000,
        system_prompt="",
        enable_decision_model=False,
        decision_model="",
        decision_provider="",
        decision_api_key="",
        decision_base_url="",
        enable_web_search=False,
        web_search_provider="tavily",
        tavily_api_key="",
        serper_api_key="",
        serpapi_api_key="",
        tmdb_api_key="",
        tmdb_proxy="",
    )
    with patch("config.runtime_config", cfg):
        yield cfg


@pytest.fixture
def full_sources_config():
    """Orchestrator config with web search (tavily) and TMDB configured."""
    return OrchestratorConfig(
        enable_web_search=True,
        web_search_provider="tavily",
        tavily_api_key="tvly-test",
        tmdb_api_key="tmdb-test",
    )


@pytest.fixture
def bare_config():
    """Orchestrator config with nothing optional configured."""
    return OrchestratorConfig()
