"""Unit tests for the layered configuration helpers."""
import pytest

from carevibe.core.config import (
    DEFAULT_FALLBACK_MODELS,
    ChatConfig,
    LLMConfig,
    UserConfig,
    _as_bool,
    _as_list,
    _env_or_yaml,
    _get_nested,
    get_config_source,
)


class TestHelpers:
    """Tests for the config helper functions."""

    def test_get_nested(self):
        data = {"llm": {"base_url": "http://x"}}
        assert _get_nested(data, "llm", "base_url") == "http://x"
        assert _get_nested(data, "llm", "missing", default="d") == "d"
        assert _get_nested(data, "llm", "base_url", "deeper", default="d") == "d"

    def test_env_wins_over_yaml(self, monkeypatch):
        monkeypatch.setenv("CAREVIBE_TEST_KEY", "from-env")
        yaml_config = {"section": {"key": "from-yaml"}}
        assert _env_or_yaml("CAREVIBE_TEST_KEY", yaml_config, "section", "key") == "from-env"

    def test_yaml_then_default(self, monkeypatch):
        monkeypatch.delenv("CAREVIBE_TEST_KEY", raising=False)
        yaml_config = {"section": {"key": "from-yaml"}}
        assert _env_or_yaml("CAREVIBE_TEST_KEY", yaml_config, "section", "key") == "from-yaml"
        assert _env_or_yaml("CAREVIBE_TEST_KEY", {}, "section", "key", default="fallback") == "fallback"

    def test_as_list(self):
        assert _as_list("a, b,,c") == ["a", "b", "c"]
        assert _as_list(["a", "b"]) == ["a", "b"]
        assert _as_list(None) == []

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        ("true", True),
        ("1", True),
        ("off", False),
        ("no", False),
    ])
    def test_as_bool(self, value, expected):
        assert _as_bool(value) is expected

    def test_config_source_env(self, monkeypatch):
        monkeypatch.setenv("GROQ_MODEL", "custom")
        assert get_config_source("GROQ_MODEL") == "env"


class TestSections:
    """Tests for the pydantic config sections."""

    def test_candidate_models_preferred_first(self):
        config = LLMConfig(model_name="custom-model", fallback_models=DEFAULT_FALLBACK_MODELS)
        assert config.candidate_models == ["custom-model"] + DEFAULT_FALLBACK_MODELS

    def test_candidate_models_deduplicated(self):
        config = LLMConfig(model_name="llama-3.1-8b-instant", fallback_models=DEFAULT_FALLBACK_MODELS)
        assert config.candidate_models == DEFAULT_FALLBACK_MODELS

    def test_candidate_models_without_preference(self):
        config = LLMConfig(model_name=None, fallback_models=["a", "b"])
        assert config.candidate_models == ["a", "b"]

    def test_chat_defaults(self):
        config = ChatConfig(
            max_history_messages=24,
            context_ttl_seconds=600,
            brief_max_lines=4,
            brief_max_chars=450,
            anonymous_user_id="anonymous",
        )
        assert config.context_ttl_seconds == 600
        assert config.anonymous_user_id == "anonymous"

    def test_user_timezone(self):
        config = UserConfig(timezone_offset_hours=-3)
        assert config.timezone.utcoffset(None).total_seconds() == -3 * 3600
