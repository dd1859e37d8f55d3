"""
MoonTV Advisor Orchestrator - data source plan, fan-out and prompt assembly

Handles one chat message:
1. Resolve the source plan (decision model if configured, else keyword classifier)
2. Start the selected provider calls together and wait for all of them
3. Compose the system prompt from whatever came back

Provider failures never leave this module: a failed or timed-out source is
simply missing from the prompt.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Dict, Optional, Tuple

import httpx

from logging_config import log_decision
from routers.chat_prompts import build_system_prompt
from services import douban, tmdb, web_search

from .decision import decide
from .intent import classify
from .models import (
    DecisionResult,
    IntentAnalysisResult,
    OrchestrationResult,
    OrchestratorConfig,
    SourceAvailability,
    VideoContext,
)

logger = logging.getLogger(__name__)

POPULAR_CATEGORY = "热门"
POPULAR_TYPE_ALL = "全部"
DEFAULT_KIND = "movie"


def intent_from_decision(
    decision: DecisionResult,
    availability: SourceAvailability,
    context: Optional[VideoContext] = None,
) -> IntentAnalysisResult:
    """Convert a decision into the intent shape used downstream.

    Flags for sources that are not available are forced off regardless of
    what the model returned.
    """
    need_web_search = decision.need_web_search and availability.web_search
    need_douban = decision.need_douban and availability.douban
    need_tmdb = decision.need_tmdb and availability.tmdb

    if need_douban and not need_web_search:
        intent_type = "detail"
    elif need_web_search:
        intent_type = "query"
    else:
        intent_type = "general"

    return IntentAnalysisResult(
        type=intent_type,
        media_type=context.type if context else None,
        need_web_search=need_web_search,
        need_douban=need_douban,
        need_tmdb=need_tmdb,
        keywords=[decision.web_search_query] if decision.web_search_query else [],
        optimized_web_search_query=decision.web_search_query,
        optimized_douban_query=decision.douban_query,
    )


async def resolve_intent(
    message: str,
    context: Optional[VideoContext],
    config: OrchestratorConfig,
    decision_http_client: Optional[httpx.AsyncClient] = None,
) -> Tuple[IntentAnalysisResult, Optional[DecisionResult]]:
    """Return (intent, decision). decision is None when the classifier was used."""
    availability = config.availability()
    llm_config = config.decision_model_config()

    decision = None
    if llm_config is not None:
        decision = await decide(
            message,
            context,
            llm_config,
            availability,
            http_client=decision_http_client,
            max_tokens=config.decision_max_tokens,
        )
        if decision is None:
            logger.warning("Decision model unavailable, falling back to keyword intent")

    if decision is None:
        intent = classify(message, context)
        origin = "intent"
    else:
        intent = intent_from_decision(decision, availability, context)
        origin = "decision_model"

    log_decision(logger, origin, intent.need_web_search, intent.need_douban, intent.need_tmdb)
    return intent, decision


def plan_calls(
    message: str,
    context: Optional[VideoContext],
    intent: IntentAnalysisResult,
    config: OrchestratorConfig,
    client: httpx.AsyncClient,
) -> Dict[str, Awaitable[Any]]:
    """Build the provider calls to run, keyed by source name.

    A call is included only when its need flag is set and its configuration
    is present. Coroutines are created here but not started.
    """
    availability = config.availability()
    calls: Dict[str, Awaitable[Any]] = {}

    if intent.need_web_search and availability.web_search:
        calls["web_search"] = web_search.search_web(
            client,
            intent.optimized_web_search_query or message,
            config.web_search_provider,
            config.web_search_key(),
            timeout_s=config.web_search_timeout_s,
        )

    if intent.need_douban and availability.douban:
        timeout_s = config.douban_timeout_s
        if context and context.douban_id:
            calls["douban"] = douban.fetch_detail(client, context.douban_id, timeout_s=timeout_s)
        elif intent.type == "recommendation":
            calls["douban"] = douban.fetch_recent_hot(
                client,
                kind=intent.media_type or DEFAULT_KIND,
                category=POPULAR_CATEGORY,
                type_=intent.genre or POPULAR_TYPE_ALL,
                timeout_s=timeout_s,
            )
        elif intent.optimized_douban_query:
            calls["douban"] = douban.search_subjects(
                client,
                intent.optimized_douban_query,
                kind=intent.media_type or (context.type if context else None),
                timeout_s=timeout_s,
            )
        elif context and context.title:
            calls["douban"] = douban.search_subjects(
                client, context.title, kind=context.type, timeout_s=timeout_s
            )

    if intent.need_tmdb and availability.tmdb and context and context.tmdb_id and context.type:
        calls["tmdb"] = tmdb.fetch_detail(
            client,
            context.tmdb_id,
            context.type,
            config.tmdb_api_key,
            proxy=config.tmdb_proxy,
            timeout_s=config.tmdb_timeout_s,
        )

    return calls


async def gather_sources(calls: Dict[str, Awaitable[Any]]) -> Dict[str, Any]:
    """Run all calls together; a failed call yields None for its source only."""
    if not calls:
        return {}

    names = list(calls)
    outcomes = await asyncio.gather(*calls.values(), return_exceptions=True)

    results: Dict[str, Any] = {}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(f"[{name}] call failed: {type(outcome).__name__}: {outcome}")
            results[name] = None
        else:
            results[name] = outcome
    return results


async def orchestrate(
    message: str,
    context: Optional[VideoContext] = None,
    config: Optional[OrchestratorConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    decision_http_client: Optional[httpx.AsyncClient] = None,
) -> OrchestrationResult:
    """Gather data for one chat message and compose its system prompt.

    Args:
        message: User message
        context: Video the user is looking at, if any
        config: Source settings; defaults to no web search, no TMDB, no decision model
        client: Shared HTTP client for provider calls; one is created when omitted
        decision_http_client: HTTP client handed to the decision model SDK

    Returns:
        OrchestrationResult with a non-empty system_prompt
    """
    config = config or OrchestratorConfig()
    start = time.time()

    intent, decision = await resolve_intent(message, context, config, decision_http_client)

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=config.web_search_timeout_s, follow_redirects=True)

    try:
        calls = plan_calls(message, context, intent, config, client)
        results = await gather_sources(calls)
    finally:
        if owns_client:
            await client.aclose()

    web_search_results = results.get("web_search")
    douban_data = results.get("douban")
    tmdb_data = results.get("tmdb")

    system_prompt = build_system_prompt(
        context=context,
        web_search=web_search_results,
        douban=douban_data,
        tmdb=tmdb_data,
    )

    logger.info(
        f"Orchestration done in {time.time() - start:.2f}s: "
        f"called={list(calls)} "
        f"got={[name for name, value in results.items() if value is not None]} "
        f"prompt_chars={len(system_prompt)}"
    )

    return OrchestrationResult(
        system_prompt=system_prompt,
        web_search_results=web_search_results,
        douban_data=douban_data,
        tmdb_data=tmdb_data,
        intent=intent,
        decision=decision,
        sources_called=list(calls),
    )
