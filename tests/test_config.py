"""Tests for configuration loading."""

import tempfile
from pathlib import Path

import pytest
import yaml

from cueguard.config import PipelineConfig, load_config
from cueguard.llm.client import DEFAULT_MODEL
from cueguard.moderation.models import ConfigError, ViolationCategory


def _write_config(tmpdir: str, data) -> str:
    path = Path(tmpdir) / "cueguard.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return str(path)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "CUEGUARD_REVIEW_THRESHOLD",
        "CUEGUARD_RULES_PATH",
        "CUEGUARD_MODEL",
        "CUEGUARD_TIMEOUT_SECONDS",
        "CUEGUARD_MAX_RETRIES",
        "CUEGUARD_AMBIENT_COOLDOWN_SECONDS",
        "CUEGUARD_AMBIENT_PROBABILITY",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()
    assert config.review_threshold == 0.6
    assert config.auto_reject_categories == set()
    assert config.classifier.model == DEFAULT_MODEL
    assert config.bot.ambient_cooldown_seconds == 300
    assert config.bot.ambient_probability == 0.2
    assert "@thecueroom" in config.bot.aliases


def test_load_from_yaml():
    data = {
        "review_threshold": 0.75,
        "auto_reject_categories": ["contactInfoPhone", "hateSpeech"],
        "context_window": 3,
        "classifier": {"timeout_seconds": 4, "max_retries": 2},
        "bot": {"ambient_probability": 0.1, "aliases": ["@cuebot"]},
    }
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(_write_config(tmpdir, data))

    assert config.review_threshold == 0.75
    assert config.auto_reject_categories == {
        ViolationCategory.CONTACT_INFO_PHONE,
        ViolationCategory.HATE_SPEECH,
    }
    assert config.context_window == 3
    assert config.classifier.timeout_seconds == 4
    assert config.classifier.max_retries == 2
    assert config.classifier.failure_threshold == 5
    assert config.bot.aliases == ["@cuebot"]


def test_env_overrides_file(monkeypatch):
    monkeypatch.setenv("CUEGUARD_REVIEW_THRESHOLD", "0.9")
    monkeypatch.setenv("CUEGUARD_MODEL", "claude-3-5-haiku-20241022")
    monkeypatch.setenv("CUEGUARD_AMBIENT_COOLDOWN_SECONDS", "60")
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(_write_config(tmpdir, {"review_threshold": 0.5}))

    assert config.review_threshold == 0.9
    assert config.classifier.model == "claude-3-5-haiku-20241022"
    assert config.bot.ambient_cooldown_seconds == 60


def test_bad_env_value_is_ignored(monkeypatch):
    monkeypatch.setenv("CUEGUARD_MAX_RETRIES", "lots")
    assert load_config().classifier.max_retries == 1


def test_unknown_section_key_is_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_config(tmpdir, {"classifier": {"temprature": 0.1}})
        with pytest.raises(ConfigError, match="temprature"):
            load_config(path)


def test_unknown_category_is_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_config(tmpdir, {"auto_reject_categories": ["piracy"]})
        with pytest.raises(ConfigError):
            load_config(path)


def test_out_of_range_threshold_is_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_config(tmpdir, {"review_threshold": 1.5})
        with pytest.raises(ConfigError):
            load_config(path)


def test_validate_checks_bot_probability():
    config = PipelineConfig()
    config.bot.ambient_probability = 2.0
    with pytest.raises(ConfigError):
        config.validate()


def test_missing_file_is_config_error():
    with pytest.raises(ConfigError):
        load_config("/nonexistent/cueguard.yaml")
