"""Static pipeline configuration.

Loaded once at process start from an optional YAML file, then adjusted by
``CUEGUARD_*`` environment variables.  The Anthropic API key is read by
:class:`cueguard.llm.client.LLMClient` from ``ANTHROPIC_API_KEY``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from cueguard.llm.client import DEFAULT_MODEL
from cueguard.moderation.models import ConfigError, ViolationCategory

logger = logging.getLogger(__name__)

DEFAULT_BOT_ALIASES = [
    "@thecueroom",
    "thecueroom bot",
    "cueroom bot",
    "thecueroom ai",
]

DEFAULT_HEURISTIC_KEYWORDS = [
    # production
    "production", "producing", "mixing", "mixdown", "mastering", "sidechain",
    "synth", "bassline", "303", "daw", "ableton", "eq", "kick drum",
    "new track", "working on", "finished", "feedback", "advice",
    # events
    "gig", "event", "lineup", "rave", "warehouse party", "set time", "b2b",
]


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------


@dataclass
class ClassifierConfig:
    """Policy classifier and circuit breaker settings."""

    model: str = DEFAULT_MODEL
    timeout_seconds: float = 8.0
    max_retries: int = 1
    retry_backoff_seconds: float = 0.25
    temperature: float = 0.3
    max_tokens: int = 512
    failure_threshold: int = 5
    failure_window_seconds: float = 60.0
    cooldown_seconds: float = 30.0


@dataclass
class BotConfig:
    """Bot engagement settings."""

    bot_name: str = "TheCueRoom Bot"
    aliases: list[str] = field(default_factory=lambda: list(DEFAULT_BOT_ALIASES))
    heuristic_keywords: list[str] = field(
        default_factory=lambda: list(DEFAULT_HEURISTIC_KEYWORDS)
    )
    ambient_cooldown_seconds: float = 300.0
    ambient_probability: float = 0.2
    temperature: float = 0.7
    max_tokens: int = 300


@dataclass
class PipelineConfig:
    """Top-level configuration object handed to the pipeline."""

    review_threshold: float = 0.6
    auto_reject_categories: set[ViolationCategory] = field(default_factory=set)
    skip_classifier_on_high_severity: bool = False
    context_window: int = 5
    rules_path: Optional[str] = None
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    bot: BotConfig = field(default_factory=BotConfig)

    def validate(self) -> None:
        """Raise :class:`ConfigError` on out-of-range values."""
        if not 0.0 <= self.review_threshold <= 1.0:
            raise ConfigError("review_threshold must be within [0, 1]")
        if not 0.0 <= self.bot.ambient_probability <= 1.0:
            raise ConfigError("bot.ambient_probability must be within [0, 1]")
        if self.classifier.timeout_seconds <= 0:
            raise ConfigError("classifier.timeout_seconds must be positive")
        if self.classifier.max_retries < 0:
            raise ConfigError("classifier.max_retries must not be negative")
        if self.classifier.failure_threshold < 1:
            raise ConfigError("classifier.failure_threshold must be at least 1")
        if self.context_window < 0:
            raise ConfigError("context_window must not be negative")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> PipelineConfig:
    """Build a :class:`PipelineConfig` from YAML (if given) and the environment."""
    data: dict[str, Any] = {}
    if path is not None:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

    config = PipelineConfig(
        review_threshold=float(data.get("review_threshold", 0.6)),
        auto_reject_categories={
            _parse_category(c) for c in data.get("auto_reject_categories", []) or []
        },
        skip_classifier_on_high_severity=bool(
            data.get("skip_classifier_on_high_severity", False)
        ),
        context_window=int(data.get("context_window", 5)),
        rules_path=data.get("rules_path"),
        classifier=_build(ClassifierConfig, data.get("classifier") or {}, "classifier"),
        bot=_build(BotConfig, data.get("bot") or {}, "bot"),
    )
    _apply_env(config)
    config.validate()
    return config


def _build(cls, values: dict[str, Any], section: str):
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown keys in [{section}]: {', '.join(sorted(unknown))}")
    return cls(**values)


def _parse_category(value: str) -> ViolationCategory:
    try:
        return ViolationCategory(value)
    except ValueError as exc:
        raise ConfigError(f"Unknown violation category {value!r}") from exc


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default


def _apply_env(config: PipelineConfig) -> None:
    config.review_threshold = _env_float("CUEGUARD_REVIEW_THRESHOLD", config.review_threshold)
    config.rules_path = os.getenv("CUEGUARD_RULES_PATH") or config.rules_path
    config.classifier.model = os.getenv("CUEGUARD_MODEL") or config.classifier.model
    config.classifier.timeout_seconds = _env_float(
        "CUEGUARD_TIMEOUT_SECONDS", config.classifier.timeout_seconds
    )
    config.classifier.max_retries = _env_int(
        "CUEGUARD_MAX_RETRIES", config.classifier.max_retries
    )
    config.bot.ambient_cooldown_seconds = _env_float(
        "CUEGUARD_AMBIENT_COOLDOWN_SECONDS", config.bot.ambient_cooldown_seconds
    )
    config.bot.ambient_probability = _env_float(
        "CUEGUARD_AMBIENT_PROBABILITY", config.bot.ambient_probability
    )
