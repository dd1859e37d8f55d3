"""
Web search adapters: Tavily, Serper and SerpAPI.

Each provider has its own request shape and result path. Results are
normalized into WebSearchResults here so prompt assembly never has to look at
provider payloads.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import ExternalServiceError, handle_source_errors
from logging_config import log_source
from routers.chat_orchestration.models import SearchHit, WebSearchResults

logger = logging.getLogger(__name__)

TAVILY_URL = "https://api.tavily.com/search"
SERPER_URL = "https://google.serper.dev/search"
SERPAPI_URL = "https://serpapi.com/search"

# Trusted film sites for Tavily's domain filter
FILM_DOMAINS = ["douban.com", "imdb.com", "themoviedb.org", "mtime.com"]

MAX_RESULTS = 5
SNIPPET_CHARS = 300


def _hits(items: List[Dict[str, Any]], snippet_key: str, url_key: str) -> List[SearchHit]:
    hits = []
    for item in items[:MAX_RESULTS]:
        if not isinstance(item, dict):
            continue
        hits.append(
            SearchHit(
                title=(item.get("title") or "").strip(),
                snippet=(item.get(snippet_key) or "").strip()[:SNIPPET_CHARS],
                url=(item.get(url_key) or "").strip(),
            )
        )
    return hits


def parse_results(provider: str, data: Dict[str, Any]) -> List[SearchHit]:
    """Pull hits out of a provider payload. Unknown shapes give no hits."""
    if provider == "tavily":
        return _hits(data.get("results") or [], "content", "url")
    if provider == "serper":
        return _hits(data.get("organic") or [], "snippet", "link")
    if provider == "serpapi":
        return _hits(data.get("organic_results") or [], "snippet", "link")
    return []


async def _request(client: httpx.AsyncClient, query: str, provider: str, api_key: str) -> httpx.Response:
    if provider == "tavily":
        return await client.post(
            TAVILY_URL,
            json={
                "api_key": api_key,
                "query": query,
                "search_depth": "basic",
                "include_domains": FILM_DOMAINS,
                "max_results": MAX_RESULTS,
            },
        )
    if provider == "serper":
        return await client.post(
            SERPER_URL,
            headers={"X-API-KEY": api_key},
            json={"q": query, "num": MAX_RESULTS},
        )
    if provider == "serpapi":
        return await client.get(
            SERPAPI_URL,
            params={"engine": "google", "q": query, "api_key": api_key, "num": MAX_RESULTS},
        )
    raise ExternalServiceError(
        "Unknown web search provider",
        details=f"Provider {provider!r} is not supported",
        service="web_search",
    )


@handle_source_errors("web_search")
async def search_web(
    client: httpx.AsyncClient,
    query: str,
    provider: str,
    api_key: str,
    timeout_s: float = 15.0,
) -> Optional[WebSearchResults]:
    """Run one web search. Resolves to None on any failure."""
    log_source(logger, "web_search", "start", provider=provider, query=query[:40])

    try:
        response = await asyncio.wait_for(_request(client, query, provider, api_key), timeout=timeout_s)
    except asyncio.TimeoutError:
        raise ExternalServiceError(
            "Web search timed out",
            details=f"No response within {timeout_s:.0f}s",
            service="web_search",
        )

    if response.status_code != 200:
        raise ExternalServiceError(
            "Web search request failed",
            details=f"{provider} returned status {response.status_code}",
            service="web_search",
            status_code=response.status_code,
        )

    data = response.json()
    if not isinstance(data, dict):
        raise ExternalServiceError("Malformed web search payload", service="web_search")

    results = WebSearchResults(provider=provider, hits=parse_results(provider, data))
    log_source(logger, "web_search", "end", provider=provider, hits=len(results.hits))
    return results
