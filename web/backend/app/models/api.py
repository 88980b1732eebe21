"""Pydantic models for API request/response serialization.

These models mirror the cueguard dataclasses and provide camelCase JSON
for the FastAPI endpoints.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from cueguard.moderation.models import (
    BotDecision,
    ContentKind,
    ModerationRequest,
    ModerationVerdict,
)
from cueguard.moderation.prefilter import ScanResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ModerateRequest(_CamelModel):
    """Mirrors cueguard.moderation.models.ModerationRequest."""

    content: str
    content_kind: Literal["post", "comment", "memePrompt", "bio"] = Field(
        default="post", alias="contentKind"
    )
    author_id: str = Field(default="", alias="authorId")
    author_display_name: str = Field(default="", alias="authorDisplayName")
    conversation_context: list[str] = Field(
        default_factory=list, alias="conversationContext"
    )

    def to_request(self) -> ModerationRequest:
        return ModerationRequest(
            content=self.content,
            content_kind=ContentKind(self.content_kind),
            author_id=self.author_id,
            author_display_name=self.author_display_name,
            conversation_context=list(self.conversation_context),
        )


class ScanRequest(BaseModel):
    content: str


class VerificationLinksRequest(BaseModel):
    links: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class VerdictResponse(_CamelModel):
    """Mirrors cueguard.moderation.models.ModerationVerdict."""

    approved: bool
    confidence: float
    violations: list[str] = Field(default_factory=list)
    masked_content: Optional[str] = Field(default=None, alias="maskedContent")
    suggestion: Optional[str] = None
    requires_human_review: bool = Field(default=False, alias="requiresHumanReview")

    @classmethod
    def from_verdict(cls, verdict: ModerationVerdict) -> VerdictResponse:
        return cls.model_validate(verdict.to_dict())


class BotDecisionResponse(_CamelModel):
    """Mirrors cueguard.moderation.models.BotDecision."""

    should_respond: bool = Field(alias="shouldRespond")
    response_text: Optional[str] = Field(default=None, alias="responseText")
    trigger_reason: str = Field(default="none", alias="triggerReason")
    confidence: float = 0.0

    @classmethod
    def from_decision(cls, decision: BotDecision) -> BotDecisionResponse:
        return cls.model_validate(decision.to_dict())


class OutcomeResponse(_CamelModel):
    verdict: VerdictResponse
    bot_decision: BotDecisionResponse = Field(alias="botDecision")


class ScanResponse(_CamelModel):
    """Mirrors cueguard.moderation.prefilter.ScanResult."""

    masked_content: str = Field(alias="maskedContent")
    violations: list[str] = Field(default_factory=list)
    severity: str = "low"
    matched_rules: list[str] = Field(default_factory=list, alias="matchedRules")
    altered: bool = False

    @classmethod
    def from_scan(cls, result: ScanResult) -> ScanResponse:
        return cls(
            masked_content=result.masked_content,
            violations=sorted(v.value for v in result.violations),
            severity=result.severity.value,
            matched_rules=list(result.matched_rules),
            altered=result.altered,
        )


class BreakerResponse(_CamelModel):
    state: str
    consecutive_failures: int = Field(alias="consecutiveFailures")
    opened_at: Optional[float] = Field(default=None, alias="openedAt")
    retry_at: Optional[float] = Field(default=None, alias="retryAt")


class HealthResponse(_CamelModel):
    status: str = "healthy"
    llm_configured: bool = Field(alias="llmConfigured")
    model: str
    breaker: BreakerResponse


class VerificationLinksResponse(_CamelModel):
    valid: bool
    valid_platforms: list[str] = Field(default_factory=list, alias="validPlatforms")
