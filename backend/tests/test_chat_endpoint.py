"""
Tests for POST /api/ai/chat.

The orchestrator and the upstream chat client are patched; everything else
(auth, gates, provider request shape, SSE relay) runs for real.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from starlette.testclient import TestClient

from main import app
from routers.chat_orchestration.models import OrchestrationResult
from services.auth import create_token

from conftest import TEST_SECRET, claude_delta, mock_client, openai_delta, sse_body

CHAT_URL = "/api/ai/chat"
ORCH_PROMPT = "ORCHESTRATED PROMPT"


def _auth(username="owner", role="user", banned=False):
    return {"Authorization": f"Bearer {create_token(username, role, TEST_SECRET, banned=banned)}"}


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def upstream():
    """Records upstream requests and answers with a canned SSE body."""
    state = {"requests": [], "status": 200, "body": sse_body([openai_delta("你好"), openai_delta("！")])}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return httpx.Response(state["status"], content=state["body"])

    orchestrate = AsyncMock(return_value=OrchestrationResult(system_prompt=ORCH_PROMPT))
    with patch("routers.chat.create_upstream_client", new=lambda timeout_s: mock_client(handler)), \
            patch("routers.chat.orchestrate", new=orchestrate):
        state["orchestrate"] = orchestrate
        yield state


def _events(text):
    return [line[len("data: "):] for line in text.split("\n\n") if line.startswith("data: ")]


class TestGates:
    """Gate order: auth, permission, enabled, configured, body."""

    def test_no_token(self, client, advisor_config, upstream):
        resp = client.post(CHAT_URL, json={"message": "你好"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthorized"
        upstream["orchestrate"].assert_not_called()

    def test_bad_token(self, client, advisor_config, upstream):
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "AUTH_INVALID_TOKEN"

    def test_token_signed_with_other_secret(self, client, advisor_config, upstream):
        token = create_token("owner", "owner", "some-other-secret")
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_cookie_token(self, client, advisor_config, upstream):
        client.cookies.set("auth", create_token("owner", "user", TEST_SECRET))
        resp = client.post(CHAT_URL, json={"message": "你好"})
        assert resp.status_code == 200

    def test_regular_user_forbidden(self, client, advisor_config, upstream):
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth("alice", "user"))
        assert resp.status_code == 403
        assert resp.json()["error"] == "该功能仅限站长和管理员使用"
        assert upstream["requests"] == []

    def test_banned_admin_forbidden(self, client, advisor_config, upstream):
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth("bob", "admin", banned=True))
        assert resp.status_code == 403

    def test_permission_checked_before_enabled(self, client, advisor_config, upstream):
        advisor_config.ai_enabled = False
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth("alice", "user"))
        assert resp.status_code == 403

    def test_ai_disabled(self, client, advisor_config, upstream):
        advisor_config.ai_enabled = False
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth())
        assert resp.status_code == 400
        assert resp.json()["error"] == "AI功能未启用"

    def test_provider_incomplete(self, client, advisor_config, upstream):
        advisor_config.custom_base_url = ""
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth())
        assert resp.status_code == 400
        assert resp.json()["error"] == "自定义API配置不完整"
        assert resp.json()["code"] == "CONFIG_MISSING_KEY"

    def test_empty_message(self, client, advisor_config, upstream):
        for body in ({"message": ""}, {"message": "   "}, {}):
            resp = client.post(CHAT_URL, json=body, headers=_auth())
            assert resp.status_code == 400
            assert resp.json()["error"] == "消息内容不能为空"
        upstream["orchestrate"].assert_not_called()

    def test_non_json_body(self, client, advisor_config, upstream):
        resp = client.post(
            CHAT_URL,
            content=b"message=hi",
            headers={**_auth(), "Content-Type": "application/x-www-form-urlencoded"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "请求体必须是JSON"

    def test_invalid_history(self, client, advisor_config, upstream):
        body = {"message": "你好", "history": [{"role": "system", "content": "x"}]}
        resp = client.post(CHAT_URL, json=body, headers=_auth())
        assert resp.status_code == 400
        assert resp.json()["error"] == "请求参数无效"


class TestPermissions:

    @pytest.mark.parametrize("username,role", [("owner", "user"), ("carol", "admin"), ("dave", "owner")])
    def test_allowed(self, client, advisor_config, upstream, username, role):
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth(username, role))
        assert resp.status_code == 200

    def test_regular_users_allowed_when_enabled(self, client, advisor_config, upstream):
        advisor_config.ai_allow_regular_users = True
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth("alice", "user"))
        assert resp.status_code == 200


class TestStreaming:

    def test_relays_normalized_events(self, client, advisor_config, upstream):
        resp = client.post(CHAT_URL, json={"message": "推荐一部电影"}, headers=_auth())
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"

        events = _events(resp.text)
        assert [json.loads(e)["text"] for e in events[:-1]] == ["你好", "！"]
        assert events[-1] == "[DONE]"

    def test_openai_request_shape(self, client, advisor_config, upstream):
        advisor_config.system_prompt = "ADMIN PROMPT"
        body = {
            "message": "那第二部呢",
            "context": {"title": "流浪地球", "year": "2019", "type": "movie", "currentEpisode": None},
            "history": [
                {"role": "user", "content": "推荐科幻片"},
                {"role": "assistant", "content": "流浪地球"},
            ],
        }
        resp = client.post(CHAT_URL, json=body, headers=_auth())
        assert resp.status_code == 200

        request = upstream["requests"][0]
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["model"] == "test-model"
        assert payload["stream"] is True
        assert payload["temperature"] == 0.7
        assert payload["max_tokens"] == 1000
        assert payload["messages"] == [
            {"role": "user", "content": f"ADMIN PROMPT\n\n{ORCH_PROMPT}"},
            {"role": "assistant", "content": "明白了，我会按照要求回答用户的问题。"},
            {"role": "user", "content": "推荐科幻片"},
            {"role": "assistant", "content": "流浪地球"},
            {"role": "user", "content": "那第二部呢"},
        ]

        call = upstream["orchestrate"].call_args
        assert call.args[0] == "那第二部呢"
        assert call.kwargs["context"].title == "流浪地球"

    def test_claude_request_shape(self, client, advisor_config, upstream):
        advisor_config.chat_provider = "claude"
        advisor_config.custom_api_key = "sk-ant-test"
        upstream["body"] = sse_body([claude_delta("好的")], done=False)

        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth())
        assert resp.status_code == 200

        request = upstream["requests"][0]
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "sk-ant-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        payload = json.loads(request.content)
        assert payload["system"] == ORCH_PROMPT
        assert payload["messages"] == [{"role": "user", "content": "你好"}]

        events = _events(resp.text)
        assert json.loads(events[0]) == {"text": "好的"}
        assert events[-1] == "[DONE]"

    def test_upstream_error_status(self, client, advisor_config, upstream):
        upstream["status"] = 401
        upstream["body"] = b'{"error": {"message": "invalid api key"}}'
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth())
        assert resp.status_code == 500
        data = resp.json()
        assert data["error"] == "OpenAI API error: 401"
        assert data["code"] == "LLM_UPSTREAM_STATUS"
        assert "invalid api key" in data["details"]

    def test_dropped_upstream_truncates_and_closes_client(self, client, advisor_config, upstream):
        closed = {"stream": False, "client": False}

        class DroppingStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield sse_body([openai_delta("Hel")], done=False)
                raise httpx.ReadError("connection reset by peer")

            async def aclose(self):
                closed["stream"] = True

        class RecordingClient(httpx.AsyncClient):
            async def aclose(self):
                closed["client"] = True
                await super().aclose()

        def handler(request):
            return httpx.Response(200, stream=DroppingStream())

        upstream_client = RecordingClient(transport=httpx.MockTransport(handler))
        with patch("routers.chat.create_upstream_client", new=lambda timeout_s: upstream_client):
            resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth())

        assert resp.status_code == 200
        assert "[DONE]" not in resp.text
        assert [json.loads(e)["text"] for e in _events(resp.text)] == ["Hel"]
        assert closed == {"stream": True, "client": True}

    def test_upstream_closed_after_normal_stream(self, client, advisor_config, upstream):
        closed = []

        class RecordingClient(httpx.AsyncClient):
            async def aclose(self):
                closed.append(True)
                await super().aclose()

        def handler(request):
            return httpx.Response(200, content=sse_body([openai_delta("好")]))

        upstream_client = RecordingClient(transport=httpx.MockTransport(handler))
        with patch("routers.chat.create_upstream_client", new=lambda timeout_s: upstream_client):
            resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth())

        assert _events(resp.text)[-1] == "[DONE]"
        assert closed == [True]

    def test_orchestrator_crash_is_500(self, client, advisor_config, upstream):
        upstream["orchestrate"].side_effect = RuntimeError("unexpected")
        resp = client.post(CHAT_URL, json={"message": "你好"}, headers=_auth())
        assert resp.status_code == 500
        assert resp.json()["error"] == "AI chat request failed"
        assert upstream["requests"] == []


class TestHealth:

    def test_health_reports_sources(self, client, advisor_config):
        with patch("main.runtime_config", advisor_config):
            resp = client.get("/health")
        data = resp.json()
        assert resp.status_code == 200
        assert data["chat_ready"] is True
        assert data["sources"]["douban"] == "ok"
        assert data["sources"]["web_search"] == "disabled"
        assert data["sources"]["tmdb"] == "disabled"

    def test_security_headers(self, client):
        resp = client.get("/api/instance")
        assert resp.headers["x-frame-options"] == "DENY"
        assert "instance_id" in resp.json()
