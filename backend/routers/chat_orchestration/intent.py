"""
Keyword intent classifier.

Maps a user message (plus the video the user is looking at) to the data
sources worth querying. Pure function: no I/O, no state.
"""

import re
from typing import List, Optional

from .models import Entity, IntentAnalysisResult, VideoContext

# Time-sensitive questions need fresh information
TIME_KEYWORDS = (
    "最新", "今年", "2024", "2025", "即将", "上映", "新出",
    "什么时候", "何时", "几时", "播出", "更新", "下一季",
    "第二季", "第三季", "续集", "下季", "下部",
)
RECOMMEND_KEYWORDS = ("推荐", "有什么", "好看", "值得", "介绍")
PERSON_KEYWORDS = ("演员", "导演", "主演", "出演", "作品")
PLOT_KEYWORDS = ("讲什么", "剧情", "故事", "内容", "讲的是")

NEWS_KEYWORD = "新闻"
THIS_SHOW = "这部"

# Checked in order; first hit wins
MEDIA_TYPE_KEYWORDS = (
    (("电影",), "movie"),
    (("电视剧", "剧集"), "tv"),
    (("综艺",), "variety"),
    (("动漫", "动画"), "anime"),
)

_PERSON_RE = re.compile(r"([一-龥]{2,4})(的|是|演|导)")


def _any(message: str, keywords) -> bool:
    return any(k in message for k in keywords)


def _media_type(message: str, context: Optional[VideoContext]) -> Optional[str]:
    for keywords, media_type in MEDIA_TYPE_KEYWORDS:
        if _any(message, keywords):
            return media_type
    return context.type if context else None


def _has_subject(context: Optional[VideoContext]) -> bool:
    """Whether the context identifies a title the user is looking at."""
    if context is None:
        return False
    return bool(
        context.title
        or (context.douban_id or 0) > 0
        or (context.tmdb_id or 0) > 0
    )


def extract_entities(message: str) -> List[Entity]:
    """Best-effort person names: 2-4 CJK characters before 的/是/演/导."""
    return [Entity(type="person", value=m.group(1)) for m in _PERSON_RE.finditer(message)]


def classify(message: str, context: Optional[VideoContext] = None) -> IntentAnalysisResult:
    """Classify a message into an intent with per-source need flags."""
    message = message or ""
    lowered = message.lower()

    has_time = _any(message, TIME_KEYWORDS)
    is_recommendation = _any(message, RECOMMEND_KEYWORDS)
    is_person = _any(message, PERSON_KEYWORDS)
    is_plot = _any(message, PLOT_KEYWORDS)

    if is_recommendation:
        intent_type = "recommendation"
    elif _has_subject(context) and (is_plot or (THIS_SHOW in lowered and not has_time)):
        # "这部" plus a time keyword asks about release news, not the title itself
        intent_type = "detail"
    elif is_person or has_time:
        intent_type = "query"
    else:
        intent_type = "general"

    douban_id = context.douban_id if context else None
    tmdb_id = context.tmdb_id if context else None

    need_web_search = (
        has_time
        or is_person
        or NEWS_KEYWORD in message
        or (is_recommendation and has_time)
        or intent_type == "query"
    )
    need_douban = is_recommendation or intent_type == "detail" or (douban_id or 0) > 0
    need_tmdb = intent_type == "detail" or (tmdb_id or 0) > 0

    return IntentAnalysisResult(
        type=intent_type,
        media_type=_media_type(message, context),
        need_web_search=need_web_search,
        need_douban=need_douban,
        need_tmdb=need_tmdb,
        keywords=[k for k in TIME_KEYWORDS if k in message],
        entities=extract_entities(message),
    )
