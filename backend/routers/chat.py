"""
MoonTV Advisor Chat Router - POST /api/ai/chat

Gates, in order, before any provider call:
1. Logged in                    -> 401
2. Allowed to use the AI chat   -> 403
3. AI feature enabled           -> 400
4. Chat provider configured     -> 400
5. Request body valid           -> 400

Then orchestrates data sources, opens the upstream chat stream and relays it
as normalized SSE (see chat_streaming.py). Failures before the stream starts
return JSON ``{"error": ...}``; a failure mid-stream truncates the response.
"""

import logging
from typing import Any, AsyncIterator, Dict, List

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from config import RuntimeConfig, get_config
from errors import AdvisorError, ConfigurationError, ValidationError, http_error_response, log_error
from logging_config import log_message_in
from services.auth import AuthInfo, check_chat_permission, verify_user
from services.llm_client import get_provider

from .chat_orchestration.models import ChatRequest, OrchestratorConfig
from .chat_orchestration.orchestrator import orchestrate
from .chat_streaming import to_normalized_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def create_upstream_client(timeout_s: float) -> httpx.AsyncClient:
    """HTTP client for the upstream chat stream. Closed when the relay ends."""
    return httpx.AsyncClient(timeout=timeout_s)


def check_chat_config(cfg: RuntimeConfig) -> None:
    """Raise ConfigurationError when the AI chat cannot run."""
    if not cfg.ai_enabled:
        raise ConfigurationError("AI功能未启用", setting="ai_enabled", disabled=True)
    if not cfg.chat_provider_ready():
        raise ConfigurationError(
            "自定义API配置不完整",
            details=f"Provider {cfg.chat_provider!r} needs an API key"
            + ("" if cfg.chat_provider == "claude" else " and base URL"),
            setting="custom_api_key",
        )


async def parse_chat_request(request: Request) -> ChatRequest:
    """Validate the JSON body."""
    try:
        raw = await request.json()
    except ValueError:
        raise ValidationError("请求体必须是JSON", parameter="body", expected="JSON object")

    if not isinstance(raw, dict):
        raise ValidationError("请求体必须是JSON对象", parameter="body", expected="JSON object")

    message = raw.get("message")
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("消息内容不能为空", parameter="message", expected="non-empty string")

    try:
        return ChatRequest.model_validate(raw)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            "请求参数无效",
            details=first.get("msg"),
            parameter=location or None,
        )


def compose_system_prompt(admin_prompt: str, orchestration_prompt: str) -> str:
    """Admin-configured prompt goes first when set."""
    if admin_prompt:
        return f"{admin_prompt}\n\n{orchestration_prompt}"
    return orchestration_prompt


async def _close_upstream(response: httpx.Response, client: httpx.AsyncClient) -> None:
    await response.aclose()
    await client.aclose()


async def relay_upstream(
    response: httpx.Response, client: httpx.AsyncClient, provider_kind: str
) -> AsyncIterator[bytes]:
    """Normalized browser events; the upstream is closed however the relay ends."""
    try:
        async for event in to_normalized_stream(response.aiter_bytes(), provider_kind):
            yield event
    finally:
        await _close_upstream(response, client)


@router.post("/chat")
async def ai_chat(request: Request, user: AuthInfo = Depends(verify_user)):
    """Stream an AI answer for one chat message."""
    cfg = get_config()

    try:
        check_chat_permission(user, cfg)
        check_chat_config(cfg)
        body = await parse_chat_request(request)

        log_message_in(
            logger,
            body.message,
            user=user.username,
            history=len(body.history),
            title=body.context.title if body.context else None,
        )

        result = await orchestrate(
            body.message,
            context=body.context,
            config=OrchestratorConfig.from_runtime(cfg),
        )

        system_prompt = compose_system_prompt(cfg.system_prompt, result.system_prompt)
        history: List[Dict[str, Any]] = [m.model_dump() for m in body.history]

        provider_kind = cfg.chat_provider
        provider = get_provider(
            provider_kind,
            api_key=cfg.custom_api_key,
            base_url=None if provider_kind == "claude" else cfg.custom_base_url,
            timeout_s=cfg.llm_timeout_s,
        )

        client = create_upstream_client(cfg.llm_timeout_s)
        try:
            upstream = await provider.open_stream(
                client,
                system_prompt,
                history,
                body.message,
                model=cfg.custom_model,
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
            )
        except BaseException:
            await client.aclose()
            raise

    except AdvisorError as e:
        if e.status_code >= 500:
            log_error(logger, e, context="Chat")
        else:
            logger.info(f"[Chat] {e.code.value}: {e.message}")
        return http_error_response(e)
    except Exception as e:
        log_error(logger, e, context="Chat")
        return http_error_response(e)

    return StreamingResponse(
        relay_upstream(upstream, client, provider_kind),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
