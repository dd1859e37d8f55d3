"""
MoonTV Advisor Chat Orchestration - data source selection and fan-out

Components:
- models: Request shapes, intent/decision results, normalized provider data
- intent.classify: Keyword classifier (pure, no I/O)
- decision.decide: LLM decision model, returns None on any failure
- orchestrator.orchestrate: Resolve the plan, fan out to web search / Douban /
  TMDB concurrently, and compose the system prompt

Decision fallback:
    1. Decision model disabled or incomplete -> keyword classifier
    2. Decision model error / unparseable    -> keyword classifier
    3. Decision model flags for unconfigured sources are dropped

The orchestrator module is imported directly (routers.chat_orchestration.orchestrator)
because the provider adapters it calls depend on this package's models.
"""

from .models import (
    ChatMessage,
    ChatRequest,
    DecisionResult,
    IntentAnalysisResult,
    OrchestrationResult,
    OrchestratorConfig,
    SourceAvailability,
    VideoContext,
)
from .intent import classify
from .decision import decide

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "DecisionResult",
    "IntentAnalysisResult",
    "OrchestrationResult",
    "OrchestratorConfig",
    "SourceAvailability",
    "VideoContext",
    "classify",
    "decide",
]
