"""
Douban catalog adapter.

Three lookups, each resolved to one CatalogResult variant at this boundary:
- by subject id        -> CatalogDetail
- recent_hot category  -> PopularList
- tag/keyword search   -> SearchResults
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from errors import ExternalServiceError, handle_source_errors
from logging_config import log_source
from routers.chat_orchestration.models import CatalogDetail, CatalogResult, PopularList, SearchResults

logger = logging.getLogger(__name__)

DOUBAN_API = "https://m.douban.com/rexxar/api/v2"
DOUBAN_SEARCH_URL = "https://movie.douban.com/j/search_subjects"

# Douban rejects requests without a browser UA and a site referer
DOUBAN_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Referer": "https://movie.douban.com/",
    "Accept": "application/json, text/plain, */*",
}

PAGE_SIZE = 20


async def _get_json(client: httpx.AsyncClient, url: str, params: Dict[str, Any], timeout_s: float) -> Dict[str, Any]:
    try:
        response = await asyncio.wait_for(
            client.get(url, params=params, headers=DOUBAN_HEADERS),
            timeout=timeout_s,
        )
    except asyncio.TimeoutError:
        raise ExternalServiceError(
            "Douban request timed out",
            details=f"No response within {timeout_s:.0f}s",
            service="douban",
        )

    if response.status_code != 200:
        raise ExternalServiceError(
            "Douban request failed",
            details=f"{url} returned status {response.status_code}",
            service="douban",
            status_code=response.status_code,
        )

    data = response.json()
    if not isinstance(data, dict):
        raise ExternalServiceError("Malformed Douban payload", service="douban")
    return data


@handle_source_errors("douban")
async def fetch_detail(client: httpx.AsyncClient, subject_id: int, timeout_s: float = 10.0) -> Optional[CatalogResult]:
    """Subject detail by Douban id."""
    log_source(logger, "douban", "start", id=subject_id)
    data = await _get_json(client, f"{DOUBAN_API}/subject/{subject_id}", {}, timeout_s)
    log_source(logger, "douban", "end", id=subject_id, title=data.get("title"))
    return CatalogDetail(data=data)


@handle_source_errors("douban")
async def fetch_recent_hot(
    client: httpx.AsyncClient,
    kind: str = "movie",
    category: str = "热门",
    type_: str = "全部",
    timeout_s: float = 10.0,
) -> Optional[CatalogResult]:
    """Popular listing for a kind/category/type."""
    log_source(logger, "douban", "start", kind=kind, category=category, type=type_)
    data = await _get_json(
        client,
        f"{DOUBAN_API}/subject/recent_hot/{kind}",
        {"start": 0, "limit": PAGE_SIZE, "category": category, "type": type_},
        timeout_s,
    )
    items = data.get("items")
    if not isinstance(items, list):
        items = data.get("list") or []
    log_source(logger, "douban", "end", kind=kind, items=len(items))
    return PopularList(items=items)


@handle_source_errors("douban")
async def search_subjects(
    client: httpx.AsyncClient,
    query: str,
    kind: Optional[str] = None,
    timeout_s: float = 10.0,
) -> Optional[CatalogResult]:
    """Tag/keyword search. Kind defaults to movie."""
    kind = kind or "movie"
    log_source(logger, "douban", "start", query=query[:40], kind=kind)
    data = await _get_json(
        client,
        DOUBAN_SEARCH_URL,
        {
            "type": kind,
            "tag": query,
            "sort": "recommend",
            "page_limit": PAGE_SIZE,
            "page_start": 0,
        },
        timeout_s,
    )
    items = data.get("subjects")
    if not isinstance(items, list):
        items = data.get("items") or []
    log_source(logger, "douban", "end", query=query[:40], items=len(items))
    return SearchResults(items=items)
