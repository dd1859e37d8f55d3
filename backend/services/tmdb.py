"""
TMDB adapter: movie/tv detail with keywords and similar titles appended.

The call carries a hard timeout (15s by default). A timeout is a failure like
any other and resolves to None.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import ExternalServiceError, handle_source_errors
from logging_config import log_source
from routers.chat_orchestration.models import InternationalDetail

logger = logging.getLogger(__name__)

TMDB_API = "https://api.themoviedb.org/3"
TMDB_LANGUAGE = "zh-CN"

SIMILAR_LIMIT = 5


def _names(entries: Any) -> List[str]:
    if not isinstance(entries, list):
        return []
    return [e["name"] for e in entries if isinstance(e, dict) and e.get("name")]


def parse_detail(data: Dict[str, Any]) -> InternationalDetail:
    """Normalize a TMDB detail payload.

    Movies carry ``title`` and ``keywords.keywords``; tv shows carry ``name``
    and ``keywords.results``.
    """
    keywords = data.get("keywords") or {}
    if isinstance(keywords, dict):
        keyword_list = keywords.get("keywords") or keywords.get("results") or []
    else:
        keyword_list = keywords

    similar = (data.get("similar") or {}).get("results") or []
    similar_items = []
    for item in similar[:SIMILAR_LIMIT]:
        if not isinstance(item, dict):
            continue
        similar_items.append({
            "title": item.get("title") or item.get("name"),
            "vote_average": item.get("vote_average"),
            "release_date": item.get("release_date") or item.get("first_air_date"),
        })

    return InternationalDetail(
        title=data.get("title") or data.get("name"),
        overview=data.get("overview"),
        vote_average=data.get("vote_average"),
        genres=_names(data.get("genres")),
        keywords=_names(keyword_list),
        similar=similar_items,
    )


async def _get(client: httpx.AsyncClient, url: str, params: Dict[str, Any], timeout_s: float) -> httpx.Response:
    try:
        return await asyncio.wait_for(client.get(url, params=params, timeout=timeout_s), timeout=timeout_s)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        raise ExternalServiceError(
            "TMDB request timed out",
            details=f"No response within {timeout_s:.0f}s",
            service="tmdb",
        )


@handle_source_errors("tmdb")
async def fetch_detail(
    client: httpx.AsyncClient,
    tmdb_id: int,
    media_type: str,
    api_key: str,
    proxy: Optional[str] = None,
    timeout_s: float = 15.0,
) -> Optional[InternationalDetail]:
    """Detail for a movie or tv id. Resolves to None on any failure."""
    if media_type not in ("movie", "tv"):
        raise ExternalServiceError("Unsupported TMDB media type", details=str(media_type), service="tmdb")

    log_source(logger, "tmdb", "start", type=media_type, id=tmdb_id)
    url = f"{TMDB_API}/{media_type}/{tmdb_id}"
    params = {
        "api_key": api_key,
        "language": TMDB_LANGUAGE,
        "append_to_response": "keywords,similar",
    }

    if proxy:
        async with httpx.AsyncClient(proxy=proxy, timeout=timeout_s) as proxied:
            response = await _get(proxied, url, params, timeout_s)
    else:
        response = await _get(client, url, params, timeout_s)

    if response.status_code != 200:
        raise ExternalServiceError(
            "TMDB request failed",
            details=f"TMDB returned status {response.status_code}",
            service="tmdb",
            status_code=response.status_code,
        )

    data = response.json()
    if not isinstance(data, dict):
        raise ExternalServiceError("Malformed TMDB payload", service="tmdb")

    detail = parse_detail(data)
    log_source(logger, "tmdb", "end", id=tmdb_id, title=detail.title)
    return detail
