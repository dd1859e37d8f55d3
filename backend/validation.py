"""
MoonTV Advisor Startup Validation - Configuration Checks

Validates the AI chat configuration at startup so missing keys show up in the
container log instead of as the first user's failed request.

Usage:
    from validation import validate_startup
    result = validate_startup()
    if result.has_critical_issues():
        ...
"""

import importlib.util
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import CHAT_PROVIDERS, WEB_SEARCH_PROVIDERS, RuntimeConfig, get_config

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATION RESULT TYPES
# =============================================================================


@dataclass
class ValidationIssue:
    """A single validation issue."""

    category: str
    severity: str  # "critical" or "warning"
    message: str
    details: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of startup validation."""

    success: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    checks_performed: Dict[str, bool] = field(default_factory=dict)
    duration_ms: float = 0.0

    def add_issue(self, category: str, severity: str, message: str, details: Optional[str] = None) -> None:
        """Add a validation issue."""
        self.issues.append(ValidationIssue(category=category, severity=severity, message=message, details=details))

    def has_critical_issues(self) -> bool:
        """Check if any critical issues exist."""
        return any(i.severity == "critical" for i in self.issues)

    def get_warnings(self) -> List[ValidationIssue]:
        """Get all warning-level issues."""
        return [i for i in self.issues if i.severity == "warning"]

    def get_critical(self) -> List[ValidationIssue]:
        """Get all critical issues."""
        return [i for i in self.issues if i.severity == "critical"]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "duration_ms": round(self.duration_ms, 2),
            "checks_performed": self.checks_performed,
            "critical_count": len(self.get_critical()),
            "warning_count": len(self.get_warnings()),
            "issues": [
                {"category": i.category, "severity": i.severity, "message": i.message, "details": i.details}
                for i in self.issues
            ],
        }


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================


def validate_auth(result: ValidationResult, cfg: RuntimeConfig) -> None:
    """Session tokens cannot be verified without the shared secret."""
    if not cfg.auth_secret:
        result.add_issue(
            "auth",
            "critical",
            "AUTH_SECRET is not set",
            details="Every chat request will be rejected with 401",
        )
    result.checks_performed["auth"] = bool(cfg.auth_secret)


def validate_chat_provider(result: ValidationResult, cfg: RuntimeConfig) -> None:
    """
    Validate the chat provider settings.

    Checks:
    - Provider is one of openai / claude / custom
    - When AI is enabled, the provider has its key (and base URL if OpenAI-compatible)
    """
    ok = True
    if cfg.chat_provider not in CHAT_PROVIDERS:
        result.add_issue(
            "chat_provider",
            "critical",
            f"Unknown chat provider: {cfg.chat_provider!r}",
            details=f"Expected one of {', '.join(CHAT_PROVIDERS)}",
        )
        ok = False
    elif cfg.ai_enabled and not cfg.chat_provider_ready():
        needs = "AI_CUSTOM_API_KEY" if cfg.chat_provider == "claude" else "AI_CUSTOM_API_KEY and AI_CUSTOM_BASE_URL"
        result.add_issue(
            "chat_provider",
            "critical",
            "AI is enabled but the chat provider is not configured",
            details=f"Set {needs}",
        )
        ok = False
    elif not cfg.ai_enabled:
        result.add_issue("chat_provider", "warning", "AI chat is disabled (AI_ENABLED=false)")
    result.checks_performed["chat_provider"] = ok


def validate_decision_model(result: ValidationResult, cfg: RuntimeConfig) -> None:
    ok = True
    if cfg.enable_decision_model:
        if not cfg.decision_model:
            result.add_issue(
                "decision_model",
                "warning",
                "Decision model enabled without a model name",
                details="Falling back to keyword intent classification",
            )
            ok = False
        if cfg.decision_provider and cfg.decision_provider not in CHAT_PROVIDERS:
            result.add_issue(
                "decision_model",
                "critical",
                f"Unknown decision provider: {cfg.decision_provider!r}",
            )
            ok = False
    result.checks_performed["decision_model"] = ok


def validate_data_sources(result: ValidationResult, cfg: RuntimeConfig) -> None:
    """Web search and TMDB are optional; missing keys only disable the source."""
    ok = True
    if cfg.enable_web_search:
        if cfg.web_search_provider not in WEB_SEARCH_PROVIDERS:
            result.add_issue(
                "web_search",
                "critical",
                f"Unknown web search provider: {cfg.web_search_provider!r}",
                details=f"Expected one of {', '.join(WEB_SEARCH_PROVIDERS)}",
            )
            ok = False
        elif not cfg.web_search_api_key():
            result.add_issue(
                "web_search",
                "warning",
                f"Web search enabled but no {cfg.web_search_provider} API key",
                details="Web search will be skipped",
            )
            ok = False

    if not cfg.tmdb_api_key:
        result.add_issue("tmdb", "warning", "TMDB_API_KEY not set", details="TMDB data will be skipped")
        ok = False

    result.checks_performed["data_sources"] = ok


def validate_dependencies(result: ValidationResult) -> None:
    """
    Validate that required dependencies can be imported.

    Uses importlib.util.find_spec for fast checking without importing.
    """
    # List of (module_name, severity, description)
    dependencies = [
        ("fastapi", "critical", "FastAPI web framework"),
        ("httpx", "critical", "HTTP client for data sources and the chat stream"),
        ("openai", "critical", "OpenAI SDK for the decision model"),
        ("anthropic", "warning", "Anthropic SDK for a Claude decision model"),
        ("jwt", "critical", "PyJWT for session tokens"),
    ]

    ok = True
    for module, severity, description in dependencies:
        spec = importlib.util.find_spec(module)
        if spec is None:
            result.add_issue("dependencies", severity, f"Module '{module}' not installed", details=description)
            ok = ok and severity != "critical"

    result.checks_performed["dependencies"] = ok


def validate_startup(config: Optional[RuntimeConfig] = None, strict: bool = False) -> ValidationResult:
    """
    Run all startup validation checks.

    Args:
        config: Config to check (defaults to the runtime singleton)
        strict: Raise on critical issues instead of only logging them

    Returns:
        ValidationResult with every issue found

    Raises:
        RuntimeError: If strict and any critical issues are found
    """
    cfg = config or get_config()
    start_time = time.perf_counter()
    result = ValidationResult(success=True)

    logger.info("Running startup validation...")

    validate_auth(result, cfg)
    validate_chat_provider(result, cfg)
    validate_decision_model(result, cfg)
    validate_data_sources(result, cfg)
    validate_dependencies(result)

    result.duration_ms = (time.perf_counter() - start_time) * 1000

    for w in result.get_warnings():
        logger.warning(f"Validation warning [{w.category}]: {w.message}")
        if w.details:
            logger.warning(f"  Details: {w.details}")

    critical = result.get_critical()
    if critical:
        result.success = False
        for c in critical:
            logger.error(f"Validation CRITICAL [{c.category}]: {c.message}")
            if c.details:
                logger.error(f"  Details: {c.details}")
        if strict:
            raise RuntimeError(
                f"Startup validation failed with {len(critical)} critical issue(s):\n"
                + "\n".join(f"  - [{c.category}] {c.message}" for c in critical)
            )

    checks_passed = sum(1 for v in result.checks_performed.values() if v)
    logger.info(
        f"Startup validation complete: {checks_passed}/{len(result.checks_performed)} checks passed, "
        f"{len(result.get_warnings())} warnings in {result.duration_ms:.1f}ms"
    )
    return result
