"""
Shared types for the chat orchestration layer.

Request-facing shapes (VideoContext, ChatMessage) are pydantic models so the
endpoint can validate them directly. Everything derived per request
(intent, decision, fetched payloads) is a plain dataclass.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MediaKind = Literal["movie", "tv"]
IntentType = Literal["recommendation", "query", "detail", "general"]
MediaType = Literal["movie", "tv", "variety", "anime"]


# =============================================================================
# Request shapes
# =============================================================================


class VideoContext(BaseModel):
    """What the user is currently watching. Never mutated by the core."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: Optional[str] = None
    year: Optional[str] = None
    douban_id: Optional[int] = None
    tmdb_id: Optional[int] = None
    type: Optional[MediaKind] = None
    current_episode: Optional[int] = Field(default=None, alias="currentEpisode")


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """POST /api/ai/chat body."""

    message: str
    context: Optional[VideoContext] = None
    history: List[ChatMessage] = Field(default_factory=list)


# =============================================================================
# Derived per-request state
# =============================================================================


@dataclass
class Entity:
    type: str
    value: str


@dataclass
class IntentAnalysisResult:
    """Which data sources a message needs.

    The three need_* flags are the only gate for provider calls. The
    optimized_* queries are set only when the plan came from the decision
    model.
    """

    type: IntentType
    need_web_search: bool
    need_douban: bool
    need_tmdb: bool
    media_type: Optional[MediaType] = None
    genre: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    entities: List[Entity] = field(default_factory=list)
    optimized_web_search_query: Optional[str] = None
    optimized_douban_query: Optional[str] = None


@dataclass
class DecisionResult:
    """Data source plan returned by the decision model."""

    need_web_search: bool = False
    need_douban: bool = False
    need_tmdb: bool = False
    web_search_query: Optional[str] = None
    douban_query: Optional[str] = None
    reasoning: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecisionResult":
        """Build from the model's camelCase JSON reply."""

        def _text(key: str) -> Optional[str]:
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            return None

        return cls(
            need_web_search=_as_bool(data.get("needWebSearch")),
            need_douban=_as_bool(data.get("needDouban")),
            need_tmdb=_as_bool(data.get("needTMDB")),
            web_search_query=_text("webSearchQuery"),
            douban_query=_text("doubanQuery"),
            reasoning=_text("reasoning"),
        )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


@dataclass(frozen=True)
class SourceAvailability:
    """Which data sources are actually configured for this request."""

    web_search: bool = False
    douban: bool = True
    tmdb: bool = False


# =============================================================================
# Provider results (normalized at the adapter boundary)
# =============================================================================


@dataclass
class SearchHit:
    title: str
    snippet: str
    url: str


@dataclass
class WebSearchResults:
    provider: str
    hits: List[SearchHit] = field(default_factory=list)


@dataclass
class PopularList:
    """Douban recent_hot category listing."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    kind: str = "popular"


@dataclass
class SearchResults:
    """Douban tag/keyword search."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    kind: str = "search"


@dataclass
class CatalogDetail:
    """Douban subject detail by id."""

    data: Dict[str, Any] = field(default_factory=dict)
    kind: str = "detail"


CatalogResult = Union[PopularList, SearchResults, CatalogDetail]


@dataclass
class InternationalDetail:
    """TMDB movie/tv detail with keywords and similar titles."""

    title: Optional[str]
    overview: Optional[str] = None
    vote_average: Optional[float] = None
    genres: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    similar: List[Dict[str, Any]] = field(default_factory=list)


# =============================================================================
# Orchestrator input/output
# =============================================================================


@dataclass(frozen=True)
class DecisionModelConfig:
    provider: str
    api_key: str
    model: str
    base_url: Optional[str] = None


@dataclass(frozen=True)
class OrchestratorConfig:
    """Read-only settings the orchestrator needs. Built once per request."""

    enable_web_search: bool = False
    web_search_provider: Optional[str] = None
    tavily_api_key: Optional[str] = None
    serper_api_key: Optional[str] = None
    serpapi_api_key: Optional[str] = None
    tmdb_api_key: Optional[str] = None
    tmdb_proxy: Optional[str] = None
    tmdb_timeout_s: float = 15.0
    douban_timeout_s: float = 10.0
    web_search_timeout_s: float = 15.0
    enable_decision_model: bool = False
    decision_provider: Optional[str] = None
    decision_api_key: Optional[str] = None
    decision_base_url: Optional[str] = None
    decision_model: Optional[str] = None
    decision_max_tokens: int = 500

    @classmethod
    def from_runtime(cls, cfg) -> "OrchestratorConfig":
        """Snapshot a RuntimeConfig; decision settings fall back to the chat provider's."""
        decision_provider = cfg.decision_provider or cfg.chat_provider or None
        decision_base_url = cfg.decision_base_url or None
        if not decision_base_url and decision_provider != "claude":
            decision_base_url = cfg.custom_base_url or None
        return cls(
            enable_web_search=cfg.enable_web_search,
            web_search_provider=cfg.web_search_provider or None,
            tavily_api_key=cfg.tavily_api_key or None,
            serper_api_key=cfg.serper_api_key or None,
            serpapi_api_key=cfg.serpapi_api_key or None,
            tmdb_api_key=cfg.tmdb_api_key or None,
            tmdb_proxy=cfg.tmdb_proxy or None,
            tmdb_timeout_s=cfg.tmdb_timeout_s,
            douban_timeout_s=cfg.douban_timeout_s,
            web_search_timeout_s=cfg.web_search_timeout_s,
            enable_decision_model=cfg.enable_decision_model,
            decision_provider=decision_provider,
            decision_api_key=cfg.decision_api_key or cfg.custom_api_key or None,
            decision_base_url=decision_base_url,
            decision_model=cfg.decision_model or None,
            decision_max_tokens=cfg.decision_max_tokens,
        )

    def web_search_key(self) -> Optional[str]:
        return {
            "tavily": self.tavily_api_key,
            "serper": self.serper_api_key,
            "serpapi": self.serpapi_api_key,
        }.get(self.web_search_provider or "")

    def availability(self) -> SourceAvailability:
        # Douban is a direct server-side call with no key requirement
        return SourceAvailability(
            web_search=bool(self.enable_web_search and self.web_search_provider and self.web_search_key()),
            douban=True,
            tmdb=bool(self.tmdb_api_key),
        )

    def decision_model_config(self) -> Optional[DecisionModelConfig]:
        """Decision model settings, or None when disabled or incomplete."""
        if not (self.enable_decision_model and self.decision_provider and self.decision_api_key and self.decision_model):
            return None
        return DecisionModelConfig(
            provider=self.decision_provider,
            api_key=self.decision_api_key,
            model=self.decision_model,
            base_url=self.decision_base_url,
        )


@dataclass
class OrchestrationResult:
    """Output of orchestrate(). system_prompt is never empty."""

    system_prompt: str
    web_search_results: Optional[WebSearchResults] = None
    douban_data: Optional[CatalogResult] = None
    tmdb_data: Optional[InternationalDetail] = None
    intent: Optional[IntentAnalysisResult] = None
    decision: Optional[DecisionResult] = None
    sources_called: List[str] = field(default_factory=list)
