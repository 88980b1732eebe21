"""Policy classifier backed by an external LLM.

The model is asked for a JSON verdict which is validated against a strict
schema.  Anything that goes wrong on the way (timeout, SDK error, unparsable
or out-of-range answer, open circuit, missing API key) yields the fallback
verdict: approved, confidence 0.5, no violations, queued for human review.
Only caller cancellation propagates.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cueguard.config import ClassifierConfig
from cueguard.llm.client import LLMClient
from cueguard.llm.prompts import (
    CLASSIFIER_SYSTEM_PROMPT,
    CLASSIFIER_USER_PROMPT,
    format_recent,
)
from cueguard.moderation.breaker import CircuitBreaker
from cueguard.moderation.models import ContentKind, ModerationVerdict, ViolationCategory

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.5


class ClassificationError(Exception):
    """The service answered, but not with a usable verdict."""


class ClassifierPayload(BaseModel):
    """Schema the service's JSON answer must satisfy."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    approved: bool
    confidence: float = Field(ge=0.0, le=1.0)
    violations: list[str] = Field(default_factory=list)
    suggestion: Optional[str] = None
    moderated_content: Optional[str] = Field(default=None, alias="moderatedContent")
    requires_human_review: bool = Field(default=False, alias="requiresHumanReview")

    @field_validator("violations", mode="before")
    @classmethod
    def _coerce_violations(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


# ---------------------------------------------------------------------------
# Category normalization
# ---------------------------------------------------------------------------

_CATEGORY_ALIASES: dict[str, ViolationCategory] = {
    "email": ViolationCategory.CONTACT_INFO_EMAIL,
    "phone": ViolationCategory.CONTACT_INFO_PHONE,
    "phonenumber": ViolationCategory.CONTACT_INFO_PHONE,
    "handle": ViolationCategory.CONTACT_INFO_HANDLE,
    "socialhandle": ViolationCategory.CONTACT_INFO_HANDLE,
    "contactinfo": ViolationCategory.OFF_PLATFORM_SOLICITATION,
    "solicitation": ViolationCategory.OFF_PLATFORM_SOLICITATION,
    "spam": ViolationCategory.SPAM_SELF_PROMOTION,
    "promotion": ViolationCategory.SPAM_SELF_PROMOTION,
    "promotional": ViolationCategory.SPAM_SELF_PROMOTION,
    "selfpromotion": ViolationCategory.SPAM_SELF_PROMOTION,
    "bullying": ViolationCategory.HARASSMENT,
    "abuse": ViolationCategory.HARASSMENT,
    "hate": ViolationCategory.HATE_SPEECH,
    "sexual": ViolationCategory.NSFW,
    "sexualcontent": ViolationCategory.NSFW,
    "adult": ViolationCategory.NSFW,
    "offtopic": ViolationCategory.OFF_TOPIC,
}

_BY_KEY: dict[str, ViolationCategory] = {
    re.sub(r"[^a-z]", "", c.value.lower()): c for c in ViolationCategory
}


def normalize_category(name: str) -> ViolationCategory:
    """Map a free-form category name from the model onto the closed set."""
    key = re.sub(r"[^a-z]", "", str(name).lower())
    return _BY_KEY.get(key) or _CATEGORY_ALIASES.get(key, ViolationCategory.OTHER)


def parse_payload(text: str) -> ClassifierPayload:
    """Extract and validate the JSON verdict from raw model output."""
    clean = (text or "").strip()
    if clean.startswith("```"):
        clean = clean.strip("`")
        if clean.startswith("json"):
            clean = clean[4:]
    start, end = clean.find("{"), clean.rfind("}")
    if start == -1 or end <= start:
        raise ClassificationError("No JSON object in classifier response")
    try:
        data = json.loads(clean[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ClassificationError(f"Unparsable classifier response: {exc}") from exc
    try:
        return ClassifierPayload.model_validate(data)
    except ValidationError as exc:
        raise ClassificationError(
            f"Classifier response failed schema validation ({exc.error_count()} errors)"
        ) from exc


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class PolicyClassifier:
    """Turns an LLM judgement into a :class:`ModerationVerdict`."""

    def __init__(
        self,
        client: LLMClient,
        config: ClassifierConfig | None = None,
        review_threshold: float = 0.6,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._client = client
        self._config = config or ClassifierConfig()
        self.review_threshold = review_threshold
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self._config.failure_threshold,
            window_seconds=self._config.failure_window_seconds,
            cooldown_seconds=self._config.cooldown_seconds,
        )

    @property
    def client(self) -> LLMClient:
        return self._client

    @staticmethod
    def fallback_verdict() -> ModerationVerdict:
        return ModerationVerdict(
            approved=True,
            confidence=FALLBACK_CONFIDENCE,
            violations=set(),
            requires_human_review=True,
        )

    async def classify(
        self,
        content: str,
        content_kind: ContentKind = ContentKind.POST,
        author_context: dict[str, Any] | None = None,
    ) -> ModerationVerdict:
        """Classify *content*; never raises except on cancellation."""
        if not self._client.configured:
            logger.warning("LLM client not configured; using fallback verdict")
            return self.fallback_verdict()

        if not self.breaker.allow_request():
            logger.warning("Circuit %s is open; using fallback verdict", self.breaker.name)
            return self.fallback_verdict()

        prompt = self._build_prompt(content, content_kind, author_context or {})
        try:
            payload = await asyncio.wait_for(
                self._call_with_retries(prompt), timeout=self._config.timeout_seconds
            )
        except asyncio.CancelledError:
            self.breaker.release()
            raise
        except Exception as exc:
            self.breaker.record_failure()
            logger.warning(
                "Classification failed (%s: %s); using fallback verdict",
                type(exc).__name__,
                exc,
            )
            return self.fallback_verdict()

        self.breaker.record_success()
        return self._to_verdict(payload, content)

    # -- internals -----------------------------------------------------------

    def _build_prompt(
        self, content: str, content_kind: ContentKind, author_context: dict[str, Any]
    ) -> str:
        return CLASSIFIER_USER_PROMPT.format(
            content_kind=content_kind.value,
            author_name=author_context.get("authorDisplayName") or "Community member",
            recent_messages=format_recent(author_context.get("recentMessages") or []),
            content=content,
        )

    async def _call_with_retries(self, prompt: str) -> ClassifierPayload:
        attempts = 1 + max(0, self._config.max_retries)
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.complete(
                    prompt,
                    system_prompt=CLASSIFIER_SYSTEM_PROMPT,
                    max_tokens=self._config.max_tokens,
                    temperature=self._config.temperature,
                )
                return parse_payload(response.content)
            except Exception as exc:
                last_exc = exc
                logger.debug("Classifier attempt %d/%d failed: %s", attempt, attempts, exc)
                if attempt < attempts and self._config.retry_backoff_seconds > 0:
                    await asyncio.sleep(self._config.retry_backoff_seconds * attempt)
        raise last_exc  # type: ignore[misc]

    def _to_verdict(self, payload: ClassifierPayload, content: str) -> ModerationVerdict:
        violations = {normalize_category(v) for v in payload.violations if str(v).strip()}
        if not payload.approved and not violations:
            violations = {ViolationCategory.OTHER}

        rewrite = (payload.moderated_content or "").strip()
        masked = payload.moderated_content if rewrite and rewrite != content.strip() else None

        suggestion = (payload.suggestion or "").strip() or None

        return ModerationVerdict(
            approved=payload.approved,
            confidence=payload.confidence,
            violations=violations,
            masked_content=masked,
            suggestion=suggestion,
            requires_human_review=(
                payload.requires_human_review or payload.confidence < self.review_threshold
            ),
        )
