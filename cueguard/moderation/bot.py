"""Bot engagement: decides whether TheCueRoom Bot replies to a submission.

Triggers are evaluated in order and the first match wins: an explicit mention
of the bot, then community/production keyword heuristics, then a rare
"ambient" message gated by a process-wide cooldown.  Mentions always get a
reply; when the LLM is unavailable a static template is used instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
import threading
import time
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cueguard.config import BotConfig
from cueguard.llm.client import LLMClient
from cueguard.llm.prompts import BOT_PERSONA_PROMPT, BOT_USER_PROMPT, format_recent
from cueguard.moderation.breaker import CircuitBreaker
from cueguard.moderation.models import (
    BotDecision,
    ContentKind,
    ModerationRequest,
    ModerationVerdict,
    TriggerReason,
)
from cueguard.moderation.templates import pick_template

logger = logging.getLogger(__name__)

MENTION_FALLBACK_CONFIDENCE = 0.8
HEURISTIC_FALLBACK_CONFIDENCE = 0.6
AMBIENT_CONFIDENCE = 0.3

# Question patterns that invite the bot in.
_QUESTION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in [
        r"what.*\b(think|opinion|advice)\b",
        r"help.*\b(production|mixing|mastering)\b",
        r"\b(analy[sz]e|feedback|review)\b.*\b(track|mix|set)\b",
        r"recommend.*\b(event|gig|collab(oration)?)\b",
        r"\b(music|techno|house)\b.*\b(question|help)\b",
    ]
]

_MUSIC_TERMS = re.compile(
    r"\b(track|mix|set|techno|house|dj|producer|production|label|release|gig|vinyl)\b",
    re.IGNORECASE,
)

_FILE_TERMS = re.compile(r"\b(file|upload|uploading|\d+\s?mb|too large|attachment)\b", re.IGNORECASE)


class BotReplyPayload(BaseModel):
    """Schema for the service's reply suggestion."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    should_respond: bool = Field(alias="shouldRespond")
    response: Optional[str] = None
    context: str = ""
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class BotGenerationError(Exception):
    """The service did not produce a usable reply."""


# ---------------------------------------------------------------------------
# Ambient throttle
# ---------------------------------------------------------------------------


class AmbientThrottle:
    """Shared cooldown for unprompted bot messages.

    One instance is shared by every engine that should count as "the same
    bot"; the check-and-set in :meth:`try_acquire` is atomic.
    """

    def __init__(
        self,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._last_sent: Optional[float] = None

    @property
    def last_sent_at(self) -> Optional[float]:
        with self._lock:
            return self._last_sent

    def ready(self) -> bool:
        with self._lock:
            return self._ready(self._clock())

    def try_acquire(self, roll: Callable[[], bool] = lambda: True) -> bool:
        """Claim the ambient slot if the cooldown has passed and *roll* succeeds."""
        with self._lock:
            now = self._clock()
            if not self._ready(now):
                return False
            if not roll():
                return False
            self._last_sent = now
            return True

    def _ready(self, now: float) -> bool:
        return self._last_sent is None or now - self._last_sent >= self.cooldown_seconds


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class BotEngagementEngine:
    """Computes a :class:`BotDecision` for an approved submission."""

    def __init__(
        self,
        client: LLMClient,
        config: BotConfig | None = None,
        throttle: AmbientThrottle | None = None,
        rng: random.Random | None = None,
        timeout_seconds: float = 8.0,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._client = client
        self._config = config or BotConfig()
        self.throttle = throttle or AmbientThrottle(self._config.ambient_cooldown_seconds)
        self._rng = rng or random.Random()
        self._timeout = timeout_seconds
        self._breaker = breaker
        self._mention_patterns = [_alias_pattern(a) for a in self._config.aliases]
        self._keyword_patterns = [_phrase_pattern(k) for k in self._config.heuristic_keywords]

    # -- triggers ------------------------------------------------------------

    def is_mention(self, text: str) -> bool:
        return any(p.search(text) for p in self._mention_patterns)

    def matches_heuristics(self, text: str) -> bool:
        if any(p.search(text) for p in self._keyword_patterns):
            return True
        if any(p.search(text) for p in _QUESTION_PATTERNS):
            return True
        return "?" in text and bool(_MUSIC_TERMS.search(text))

    # -- decision ------------------------------------------------------------

    async def decide(
        self,
        request: ModerationRequest,
        verdict: ModerationVerdict,
        budget_seconds: float | None = None,
    ) -> BotDecision:
        """Decide whether and how the bot replies to *request*.

        *budget_seconds* caps the time spent generating a reply; the engine's
        own timeout applies when it is ``None``.  With no budget left a
        template is used without calling the service.
        """
        if not verdict.approved:
            return BotDecision.silent()

        # The bot only ever sees the redacted text.
        text = verdict.display_content(request.content)

        if self.is_mention(text):
            return await self._reply(
                request, text, TriggerReason.EXPLICIT_MENTION, budget_seconds
            )
        if self.matches_heuristics(text):
            return await self._reply(
                request, text, TriggerReason.CONTENT_HEURISTIC, budget_seconds
            )

        probability = self._config.ambient_probability
        if self.throttle.try_acquire(lambda: self._rng.random() < probability):
            logger.info("Releasing ambient bot message")
            return BotDecision(
                should_respond=True,
                response_text=pick_template("monitoring", self._rng),
                trigger_reason=TriggerReason.PERIODIC_AMBIENT,
                confidence=AMBIENT_CONFIDENCE,
            )

        return BotDecision.silent()

    # -- generation ----------------------------------------------------------

    async def _reply(
        self,
        request: ModerationRequest,
        text: str,
        trigger: TriggerReason,
        budget_seconds: float | None = None,
    ) -> BotDecision:
        timeout = self._timeout
        if budget_seconds is not None:
            timeout = min(timeout, budget_seconds)
        if not self._client.configured or timeout <= 0:
            return self._template_decision(request, text, trigger)
        # Generation takes a slot from the shared breaker like a classifier call.
        if self._breaker is not None and not self._breaker.allow_request():
            logger.debug("Circuit not accepting calls; using template")
            return self._template_decision(request, text, trigger)

        try:
            payload = await asyncio.wait_for(
                self._generate(request, text, trigger), timeout=timeout
            )
        except asyncio.CancelledError:
            if self._breaker is not None:
                self._breaker.release()
            raise
        except Exception as exc:
            if self._breaker is not None:
                self._breaker.record_failure()
            logger.warning(
                "Bot reply generation failed (%s: %s); using template",
                type(exc).__name__,
                exc,
            )
            return self._template_decision(request, text, trigger)

        if self._breaker is not None:
            self._breaker.record_success()

        if not payload.should_respond:
            if trigger == TriggerReason.EXPLICIT_MENTION:
                return self._template_decision(request, text, trigger)
            logger.debug("Service declined a %s reply", trigger.value)
            return BotDecision.silent()

        return BotDecision(
            should_respond=True,
            response_text=payload.response.strip(),
            trigger_reason=trigger,
            confidence=payload.confidence,
        )

    async def _generate(
        self, request: ModerationRequest, text: str, trigger: TriggerReason
    ) -> BotReplyPayload:
        prompt = BOT_USER_PROMPT.format(
            trigger=trigger.value,
            author_name=request.author_display_name or "Community member",
            recent_messages=format_recent(request.conversation_context),
            content=text,
        )
        response = await self._client.complete(
            prompt,
            system_prompt=BOT_PERSONA_PROMPT.format(bot_name=self._config.bot_name),
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )
        raw = response.content or ""
        start, end = raw.find("{"), raw.rfind("}")
        if start == -1 or end <= start:
            raise BotGenerationError("No JSON object in bot reply")
        try:
            payload = BotReplyPayload.model_validate(json.loads(raw[start : end + 1]))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise BotGenerationError(f"Unusable bot reply: {exc}") from exc
        if payload.should_respond and not (payload.response or "").strip():
            raise BotGenerationError("Bot reply was empty")
        return payload

    def _template_decision(
        self, request: ModerationRequest, text: str, trigger: TriggerReason
    ) -> BotDecision:
        if request.content_kind == ContentKind.BIO:
            pool = "welcome"
        elif _FILE_TERMS.search(text):
            pool = "file_warning"
        elif trigger == TriggerReason.EXPLICIT_MENTION:
            pool = "mention"
        else:
            pool = "encouragement"

        confidence = (
            MENTION_FALLBACK_CONFIDENCE
            if trigger == TriggerReason.EXPLICIT_MENTION
            else HEURISTIC_FALLBACK_CONFIDENCE
        )
        return BotDecision(
            should_respond=True,
            response_text=pick_template(pool, self._rng, request.author_display_name),
            trigger_reason=trigger,
            confidence=confidence,
        )


def _alias_pattern(alias: str) -> re.Pattern[str]:
    alias = alias.strip()
    if alias.startswith("@"):
        return re.compile(r"(?<![\w.])" + re.escape(alias) + r"\b", re.IGNORECASE)
    return _phrase_pattern(alias)


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    words = [re.escape(w) for w in phrase.split()]
    return re.compile(r"\b" + r"\s+".join(words) + r"\b", re.IGNORECASE)
