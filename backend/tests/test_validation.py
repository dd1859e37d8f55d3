"""
Tests for startup configuration validation.
"""

import pytest

from validation import ValidationResult, validate_startup


def _categories(result, severity):
    return {i.category for i in result.issues if i.severity == severity}


class TestValidateStartup:

    def test_ready_config_has_no_critical_issues(self, advisor_config):
        result = validate_startup(advisor_config)
        assert result.success is True
        assert not result.has_critical_issues()
        # Optional sources left unconfigured only warn
        assert "tmdb" in _categories(result, "warning")

    def test_missing_secret_is_critical(self, advisor_config):
        advisor_config.auth_secret = ""
        result = validate_startup(advisor_config)
        assert result.success is False
        assert "auth" in _categories(result, "critical")

    def test_enabled_without_provider_settings(self, advisor_config):
        advisor_config.custom_base_url = ""
        result = validate_startup(advisor_config)
        assert "chat_provider" in _categories(result, "critical")

    def test_disabled_ai_only_warns(self, advisor_config):
        advisor_config.ai_enabled = False
        advisor_config.custom_api_key = ""
        result = validate_startup(advisor_config)
        assert "chat_provider" in _categories(result, "warning")
        assert "chat_provider" not in _categories(result, "critical")

    def test_web_search_without_key_warns(self, advisor_config):
        advisor_config.enable_web_search = True
        result = validate_startup(advisor_config)
        assert "web_search" in _categories(result, "warning")

    def test_unknown_search_provider_is_critical(self, advisor_config):
        advisor_config.enable_web_search = True
        advisor_config.web_search_provider = "bing"
        assert "web_search" in _categories(validate_startup(advisor_config), "critical")

    def test_decision_model_without_name_warns(self, advisor_config):
        advisor_config.enable_decision_model = True
        result = validate_startup(advisor_config)
        assert "decision_model" in _categories(result, "warning")
        assert result.checks_performed["decision_model"] is False

    def test_strict_raises(self, advisor_config):
        advisor_config.auth_secret = ""
        with pytest.raises(RuntimeError, match="critical issue"):
            validate_startup(advisor_config, strict=True)

    def test_defaults_to_runtime_singleton(self, advisor_config):
        result = validate_startup()
        assert result.checks_performed["auth"] is True


class TestValidationResult:

    def test_to_dict(self):
        result = ValidationResult(success=False)
        result.add_issue("auth", "critical", "AUTH_SECRET is not set")
        result.add_issue("tmdb", "warning", "TMDB_API_KEY not set", details="skipped")
        data = result.to_dict()
        assert data["critical_count"] == 1
        assert data["warning_count"] == 1
        assert data["issues"][1] == {
            "category": "tmdb",
            "severity": "warning",
            "message": "TMDB_API_KEY not set",
            "details": "skipped",
        }
