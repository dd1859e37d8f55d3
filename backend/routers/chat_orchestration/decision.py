"""
Decision model adapter.

Asks a small LLM which data sources a question needs. The instruction lists
only the sources that are configured; unconfigured ones are marked "must
return false". Any failure (network, status, unparseable reply) returns None
and the orchestrator falls back to the keyword classifier. No retries.
"""

import json
import logging
import re
from typing import Optional

import httpx

from errors import LLMError
from services import llm_client

from .models import DecisionModelConfig, DecisionResult, SourceAvailability, VideoContext

logger = logging.getLogger(__name__)

DECISION_TEMPERATURE = 0.0
DECISION_MAX_TOKENS = 500

SOURCE_LINES = {
    "web_search": "1. **联网搜索** - 获取最新的实时信息（新闻、上映时间、续集信息等）",
    "douban": "2. **豆瓣API** - 获取中文影视数据（评分、演员、简介、用户评论等）",
    "tmdb": "3. **TMDB API** - 获取国际影视数据（详细元数据、相似推荐等）",
}

UNAVAILABLE = " (当前不可用，必须返回false)"
UNAVAILABLE_HINT = "（但当前不可用）"
NO_SOURCES = "⚠️ 没有可用的数据源，请返回所有字段为false"

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def build_system_instruction(availability: SourceAvailability) -> str:
    """Decision instruction naming only the available sources."""
    lines = []
    if availability.web_search:
        lines.append(SOURCE_LINES["web_search"])
    if availability.douban:
        lines.append(SOURCE_LINES["douban"])
    if availability.tmdb:
        lines.append(SOURCE_LINES["tmdb"])

    web_note = "" if availability.web_search else UNAVAILABLE
    douban_note = "" if availability.douban else UNAVAILABLE
    tmdb_note = "" if availability.tmdb else UNAVAILABLE
    web_hint = "" if availability.web_search else UNAVAILABLE_HINT

    return f"""你是一个影视问答决策系统。请分析用户的问题，判断需要调用哪些数据源来回答。

当前可用的数据源：
{chr(10).join(lines)}
{NO_SOURCES if not lines else ''}

请以JSON格式返回决策结果，包含以下字段：
{{
  "needWebSearch": boolean,  // 是否需要联网搜索{web_note}
  "needDouban": boolean,     // 是否需要豆瓣数据{douban_note}
  "needTMDB": boolean,       // 是否需要TMDB数据{tmdb_note}
  "webSearchQuery": string,  // 如果需要联网，用什么关键词搜索（可选）
  "doubanQuery": string,     // 如果需要豆瓣，用什么关键词搜索（可选）
  "reasoning": string        // 简要说明决策理由
}}

决策原则：
- **只能选择当前可用的数据源，不可用的数据源必须返回false**
- **优先使用最少的数据源来满足需求，避免不必要的API调用**
- 时效性问题（最新、上映时间、续集、播出、更新等）→ 需要联网搜索{web_hint}
- 演员/导演相关问题 → 优先豆瓣，如果问"最近作品"则额外联网
- 推荐类问题 → 仅豆瓣（如果包含"最新""今年"等时效性关键词则额外联网）
- 剧情、评分等静态信息 → 仅豆瓣或TMDB，不需要联网
- 当前视频的详细信息（有视频上下文） → 豆瓣+TMDB，通常不需要联网
- 新闻、热点、讨论等 → 需要联网搜索{web_hint}

只返回JSON，不要其他内容。"""


def build_user_prompt(message: str, context: Optional[VideoContext] = None) -> str:
    prompt = f"用户问题：{message}"
    if context and context.title:
        prompt += f"\n\n当前视频上下文：\n- 标题：{context.title}"
        if context.year:
            prompt += f"\n- 年份：{context.year}"
        if context.type:
            prompt += f"\n- 类型：{'电影' if context.type == 'movie' else '电视剧'}"
        if context.current_episode:
            prompt += f"\n- 当前集数：第{context.current_episode}集"
    return prompt


def parse_decision(content: str) -> Optional[DecisionResult]:
    """Parse a model reply into a DecisionResult.

    Strips ``` / ```json fences, then takes the outermost {...}. Returns None
    when no JSON object can be read.
    """
    if not content:
        return None

    cleaned = _FENCE_OPEN_RE.sub("", content.strip())
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned).strip()

    match = _OBJECT_RE.search(cleaned)
    if not match:
        return None

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None
    return DecisionResult.from_dict(data)


async def decide(
    message: str,
    context: Optional[VideoContext],
    llm_config: DecisionModelConfig,
    availability: SourceAvailability,
    http_client: Optional[httpx.AsyncClient] = None,
    max_tokens: int = DECISION_MAX_TOKENS,
) -> Optional[DecisionResult]:
    """Ask the decision model for a source plan. Never raises."""
    try:
        provider = llm_client.get_provider(
            llm_config.provider,
            api_key=llm_config.api_key,
            base_url=llm_config.base_url,
            http_client=http_client,
        )
        content = await provider.complete(
            build_system_instruction(availability),
            build_user_prompt(message, context),
            model=llm_config.model,
            temperature=DECISION_TEMPERATURE,
            max_tokens=max_tokens,
            json_mode=provider.kind == "openai",
        )
    except LLMError as e:
        logger.warning(f"Decision model failed: {e.code.value}: {e}")
        return None
    except Exception as e:
        logger.warning(f"Decision model failed: {type(e).__name__}: {e}", exc_info=True)
        return None

    decision = parse_decision(content)
    if decision is None:
        logger.warning(f"Decision model reply not parseable: {content[:100]!r}")
    return decision
