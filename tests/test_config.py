"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from llmpr.config import CONFIG_FILE, DEFAULT_MODEL, LLMPRConfig
from llmpr.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)


def test_defaults(tmp_path):
    config = LLMPRConfig.load(tmp_path)
    assert config.model == DEFAULT_MODEL
    assert config.options.style == "standard"
    assert config.options.max_length == 500
    assert config.options.mode == "describe"
    assert config.options.base == "main"
    assert config.max_rounds == 3
    assert config.tree_max_depth == 3
    assert config.output is None
    assert config.config_path is None


def test_file_values_and_overrides(tmp_path):
    (tmp_path / CONFIG_FILE).write_text(
        json.dumps({"model": "gpt-4o", "style": "concise", "max_length": 200}), encoding="utf-8"
    )
    config = LLMPRConfig.load(tmp_path, {"style": "verbose", "base": None, "output": Path("pr.md")})
    assert config.model == "gpt-4o"
    assert config.options.style == "verbose"
    assert config.options.max_length == 200
    assert config.options.base == "main"
    assert config.output == Path("pr.md")
    assert config.config_path == tmp_path / CONFIG_FILE


def test_malformed_file_falls_back_to_defaults(tmp_path, caplog):
    (tmp_path / CONFIG_FILE).write_text("{not json", encoding="utf-8")
    config = LLMPRConfig.load(tmp_path)
    assert config.options.style == "standard"
    assert "Failed to parse" in caplog.text


def test_invalid_values_raise(tmp_path):
    with pytest.raises(ConfigurationError):
        LLMPRConfig.load(tmp_path, {"mode": "poem"})
    with pytest.raises(ConfigurationError):
        LLMPRConfig.load(tmp_path, {"max_length": "many"})
    with pytest.raises(ConfigurationError):
        LLMPRConfig.load(tmp_path, {"max_length": 0})


def test_api_key_from_environment(tmp_path, monkeypatch):
    config = LLMPRConfig.load(tmp_path)
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        config.require_api_key()
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert LLMPRConfig.load(tmp_path).require_api_key() == "sk-test"


def test_review_task_name(tmp_path):
    assert LLMPRConfig.load(tmp_path, {"mode": "review"}).options.task_name == "code review"
    assert LLMPRConfig.load(tmp_path).options.task_name == "PR description"


def test_null_file_values_fall_back_to_defaults(tmp_path):
    (tmp_path / CONFIG_FILE).write_text(
        json.dumps({"model": None, "base": None, "max_length": None}), encoding="utf-8"
    )
    config = LLMPRConfig.load(tmp_path)
    assert config.model == DEFAULT_MODEL
    assert config.options.base == "main"
    assert config.options.max_length == 500


@pytest.mark.parametrize("value", [True, False])
def test_boolean_max_length_is_rejected(tmp_path, value):
    (tmp_path / CONFIG_FILE).write_text(json.dumps({"max_length": value}), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="number of words"):
        LLMPRConfig.load(tmp_path)
