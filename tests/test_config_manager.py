"""
Unit tests for configuration loading.
"""

import json

import pytest

from procurement_ai.logic import config_manager
from procurement_ai.logic.config_manager import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG,
    ENV_MAPPINGS,
    AnalysisSettings,
    create_config_template,
    get_analysis_settings,
    get_config,
    get_config_paths,
    load_config,
    reset_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate every test from the caller's environment and config files."""
    for env_key in list(ENV_MAPPINGS.values()) + [CONFIG_ENV_VAR]:
        monkeypatch.delenv(env_key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    reset_config()
    yield
    reset_config()


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadConfig:
    """Test merging of defaults, file and environment."""

    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "absent.json")

        assert config["openai_model"] == "gpt-4o-mini"
        assert config["use_llm_analysis"] is False
        assert config["delay_threshold_days"] == 30

    def test_file_values_override_defaults(self, tmp_path):
        path = _write(tmp_path / "config.json", {"openai_model": "gpt-4o", "delay_threshold_days": 45, "_note": "x"})
        config = load_config(path)

        assert config["openai_model"] == "gpt-4o"
        assert config["delay_threshold_days"] == 45
        assert "_note" not in config

    def test_invalid_json_keeps_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        assert load_config(path)["openai_model"] == "gpt-4o-mini"

    def test_environment_wins(self, tmp_path, monkeypatch):
        path = _write(tmp_path / "config.json", {"openai_api_key": "from-file", "use_llm_analysis": False})
        monkeypatch.setenv("OPENAI_API_KEY", "from-env")
        monkeypatch.setenv("PROCUREMENT_AI_USE_LLM", "yes")

        config = load_config(path)

        assert config["openai_api_key"] == "from-env"
        assert config["use_llm_analysis"] is True

    def test_defaults_are_not_mutated(self, tmp_path):
        path = _write(tmp_path / "config.json", {"openai_model": "gpt-4o"})
        load_config(path)
        assert DEFAULT_CONFIG["openai_model"] == "gpt-4o-mini"

    def test_explicit_path_from_environment(self, tmp_path, monkeypatch):
        path = _write(tmp_path / "custom.json", {"currency_symbol": "$"})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert get_config_paths()[0] == path
        assert load_config()["currency_symbol"] == "$"

    def test_cwd_config_is_found(self, tmp_path):
        _write(tmp_path / "config.json", {"log_level": "DEBUG"})
        assert load_config()["log_level"] == "DEBUG"


class TestCoerce:
    """Test environment string coercion."""

    @pytest.mark.parametrize("value,expected", [("true", True), ("1", True), ("YES", True), ("no", False)])
    def test_booleans(self, value, expected):
        assert config_manager._coerce(value, False) is expected

    def test_numbers(self):
        assert config_manager._coerce("2.5", 30.0) == 2.5
        assert config_manager._coerce("abc", 30.0) == 30.0

    def test_strings(self):
        assert config_manager._coerce("gpt-4o", "gpt-4o-mini") == "gpt-4o"


class TestSingleton:
    """Test the cached config."""

    def test_get_config_is_cached(self, tmp_path):
        _write(tmp_path / "config.json", {"openai_model": "first"})
        assert get_config()["openai_model"] == "first"

        _write(tmp_path / "config.json", {"openai_model": "second"})
        assert get_config()["openai_model"] == "first"

        reset_config()
        assert get_config()["openai_model"] == "second"


class TestAnalysisSettings:
    """Test the heuristic settings view."""

    def test_defaults(self):
        settings = AnalysisSettings()

        assert settings.manual_fallback_ratio == 0.75
        assert settings.unconfirmed_receipt_factor == 0.8
        assert settings.default_vendor_churn == 15

    def test_from_config_ignores_unknown_keys(self):
        settings = get_analysis_settings({"delay_threshold_days": 10, "openai_model": "gpt-4o"})

        assert settings.delay_threshold_days == 10
        assert settings.outlier_amount_threshold == 50000

    def test_settings_are_frozen(self):
        with pytest.raises(AttributeError):
            AnalysisSettings().waste_ratio = 0.1


class TestTemplate:
    """Test config template creation."""

    def test_create_template(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        create_config_template(path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["openai_model"] == DEFAULT_CONFIG["openai_model"]
        assert "_comment" in data

    def test_template_round_trips_through_loader(self, tmp_path):
        path = tmp_path / "config.json"
        create_config_template(path)
        assert load_config(path) == load_config(tmp_path / "absent.json")
