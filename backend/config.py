"""
Runtime Configuration for the MoonTV advisor.

Provides a singleton RuntimeConfig class holding the AI chat settings: the
chat provider, the optional decision model, web search keys and TMDB access.
Values come from environment variables, optionally overlaid by the JSON
settings file written by the admin panel.

Usage:
    from config import runtime_config
    if runtime_config.ai_enabled:
        ...
    runtime_config.update(temperature=0.5, enable_web_search=True)
"""

import json
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional
from threading import Lock

logger = logging.getLogger(__name__)

CHAT_PROVIDERS = ("openai", "claude", "custom")
WEB_SEARCH_PROVIDERS = ("tavily", "serper", "serpapi")

# Credential fields: never persisted to the overrides file, masked in to_dict()
SECRET_FIELDS = {
    "auth_secret",
    "custom_api_key",
    "decision_api_key",
    "tavily_api_key",
    "serper_api_key",
    "serpapi_api_key",
    "tmdb_api_key",
}


def _env_bool(key: str, default: str = "false") -> bool:
    return os.environ.get(key, default).strip().lower() == "true"


def _first_env(*keys: str, default: str) -> str:
    """Return the first non-empty environment value from keys, else default."""
    for key in keys:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return default


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for the AI chat advisor.

    All values have defaults from environment variables, but can be
    changed at runtime via the update() method.
    """

    # Feature gate
    ai_enabled: bool = field(default_factory=lambda: _env_bool("AI_ENABLED"))
    ai_allow_regular_users: bool = field(default_factory=lambda: _env_bool("AI_ALLOW_REGULAR_USERS"))

    # Site owner always has access regardless of role
    owner_username: str = field(default_factory=lambda: os.environ.get("USERNAME", "").strip())
    # HS256 secret shared with the login service that issues session tokens
    auth_secret: str = field(default_factory=lambda: os.environ.get("AUTH_SECRET", ""))

    # Chat provider (answers the user)
    chat_provider: str = field(default_factory=lambda: os.environ.get("AI_PROVIDER", "custom").strip().lower() or "custom")
    custom_api_key: str = field(default_factory=lambda: os.environ.get("AI_CUSTOM_API_KEY", ""))
    custom_base_url: str = field(default_factory=lambda: os.environ.get("AI_CUSTOM_BASE_URL", "").strip().rstrip("/"))
    custom_model: str = field(default_factory=lambda: os.environ.get("AI_CUSTOM_MODEL", "gpt-3.5-turbo"))
    temperature: float = field(default_factory=lambda: float(os.environ.get("AI_TEMPERATURE", "0.7")))
    max_tokens: int = field(default_factory=lambda: int(os.environ.get("AI_MAX_TOKENS", "1000")))
    system_prompt: str = field(default_factory=lambda: os.environ.get("AI_SYSTEM_PROMPT", ""))

    # Decision model (chooses data sources); provider/key/base URL fall back to the chat provider
    enable_decision_model: bool = field(default_factory=lambda: _env_bool("AI_ENABLE_DECISION_MODEL"))
    decision_model: str = field(default_factory=lambda: os.environ.get("AI_DECISION_MODEL", ""))
    decision_provider: str = field(default_factory=lambda: os.environ.get("AI_DECISION_PROVIDER", "").strip().lower())
    decision_api_key: str = field(default_factory=lambda: os.environ.get("AI_DECISION_API_KEY", ""))
    decision_base_url: str = field(default_factory=lambda: os.environ.get("AI_DECISION_BASE_URL", "").strip().rstrip("/"))
    decision_max_tokens: int = field(default_factory=lambda: int(os.environ.get("AI_DECISION_MAX_TOKENS", "500")))

    # Web search
    enable_web_search: bool = field(default_factory=lambda: _env_bool("AI_ENABLE_WEB_SEARCH"))
    web_search_provider: str = field(
        default_factory=lambda: os.environ.get("AI_WEB_SEARCH_PROVIDER", "tavily").strip().lower() or "tavily"
    )
    tavily_api_key: str = field(default_factory=lambda: os.environ.get("TAVILY_API_KEY", ""))
    serper_api_key: str = field(default_factory=lambda: os.environ.get("SERPER_API_KEY", ""))
    serpapi_api_key: str = field(default_factory=lambda: _first_env("SERPAPI_API_KEY", "SERP_API_KEY", default=""))

    # TMDB
    tmdb_api_key: str = field(default_factory=lambda: os.environ.get("TMDB_API_KEY", ""))
    tmdb_proxy: str = field(default_factory=lambda: os.environ.get("TMDB_PROXY", "").strip())

    # Timeouts (seconds)
    tmdb_timeout_s: float = field(default_factory=lambda: float(os.environ.get("TMDB_TIMEOUT_S", "15")))
    douban_timeout_s: float = field(default_factory=lambda: float(os.environ.get("DOUBAN_TIMEOUT_S", "10")))
    web_search_timeout_s: float = field(default_factory=lambda: float(os.environ.get("WEB_SEARCH_TIMEOUT_S", "15")))
    llm_timeout_s: float = field(default_factory=lambda: float(os.environ.get("LLM_TIMEOUT_S", "120")))

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "temperature": (0.0, 2.0),
        "max_tokens": (16, 32768),
        "decision_max_tokens": (16, 4096),
        "tmdb_timeout_s": (1.0, 120.0),
        "douban_timeout_s": (1.0, 120.0),
        "web_search_timeout_s": (1.0, 120.0),
        "llm_timeout_s": (5.0, 600.0),
    }, repr=False, compare=False)

    # Settings file written by the admin panel
    _overrides_path: Path = field(
        default_factory=lambda: Path(os.environ.get(
            "CONFIG_OVERRIDES_PATH", "data/config/ai_config.json"
        )),
        repr=False, compare=False,
    )

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update configuration values at runtime.

        Args:
            **kwargs: Key-value pairs to update (e.g., temperature=0.5)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown or rejected keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key.startswith("_") or not hasattr(self, key):
                    ignored.append(key)
                    logger.warning(f"Config ignored unknown key: {key}")
                    continue

                if key in {"custom_base_url", "decision_base_url"} and isinstance(value, str) and value:
                    cleaned = value.strip()
                    if not cleaned.startswith(("http://", "https://")):
                        ignored.append(key)
                        logger.warning(f"Config rejected invalid URL: {key}={value!r}")
                        continue
                    value = cleaned.rstrip("/")

                if key in {"chat_provider", "decision_provider"} and isinstance(value, str):
                    value = value.strip().lower()
                    allowed = CHAT_PROVIDERS if key == "chat_provider" else CHAT_PROVIDERS + ("",)
                    if value not in allowed:
                        ignored.append(key)
                        logger.warning(f"Config rejected unknown provider: {key}={value!r}")
                        continue

                if key == "web_search_provider" and isinstance(value, str):
                    value = value.strip().lower()
                    if value not in WEB_SEARCH_PROVIDERS:
                        ignored.append(key)
                        logger.warning(f"Config rejected unknown search provider: {value!r}")
                        continue

                # Validate numeric ranges
                if key in self._VALIDATION_RANGES:
                    lo, hi = self._VALIDATION_RANGES[key]
                    if not (lo <= value <= hi):
                        ignored.append(key)
                        logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                        continue

                setattr(self, key, value)
                updated.append(key)
                shown = "***" if key in SECRET_FIELDS else value
                logger.info(f"Config updated: {key} = {shown}")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored, "update_count": self._update_count}

    def web_search_api_key(self, provider: Optional[str] = None) -> str:
        """Key for the given (or configured) web search provider."""
        provider = provider or self.web_search_provider
        return {
            "tavily": self.tavily_api_key,
            "serper": self.serper_api_key,
            "serpapi": self.serpapi_api_key,
        }.get(provider, "")

    def chat_provider_ready(self) -> bool:
        """Whether the chat provider has everything needed to stream."""
        if self.chat_provider == "claude":
            return bool(self.custom_api_key)
        return bool(self.custom_api_key and self.custom_base_url)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Export current config as dict (excludes internal fields, masks secrets)."""
        from dataclasses import fields as dataclass_fields

        result = {}
        for field_info in dataclass_fields(self):
            if field_info.name.startswith("_"):
                continue
            value = getattr(self, field_info.name)
            if redact and field_info.name in SECRET_FIELDS:
                value = bool(value)
            result[field_info.name] = value
        return result

    def load_overrides(self) -> Dict[str, Any]:
        """Load overrides from the settings file written by the admin panel.

        File values win over env defaults but never over values already changed
        at runtime through update().
        """
        if not self._overrides_path.exists():
            return {}

        try:
            overrides = json.loads(self._overrides_path.read_text(encoding="utf-8"))
            if not isinstance(overrides, dict):
                return {}

            # Only apply overrides for fields that still have their default value
            # (update() may already have changed them since startup)
            defaults = RuntimeConfig()
            pending = {}

            for key, value in overrides.items():
                if key.startswith("_") or not hasattr(self, key):
                    continue
                current = getattr(self, key)
                default = getattr(defaults, key)
                if current == default and value != default:
                    field_type = type(default)
                    try:
                        if field_type is bool and isinstance(value, str):
                            pending[key] = value.strip().lower() == "true"
                        else:
                            pending[key] = field_type(value)
                    except (ValueError, TypeError):
                        logger.warning(f"Config override type mismatch: {key}={value}")

            # Same range, URL and provider checks as a runtime change
            applied = self.update(**pending)["updated"] if pending else []

            if applied:
                logger.info(f"Config overrides loaded: {', '.join(applied)}")
            return {"applied": applied, "total": len(overrides)}

        except Exception as e:
            logger.error(f"Failed to load config overrides: {e}")
            return {}


# Singleton instance
runtime_config = RuntimeConfig()

# Load persisted overrides on startup
runtime_config.load_overrides()


def get_config() -> RuntimeConfig:
    """Get the singleton config instance."""
    return runtime_config
