"""Data models for the content moderation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class InvalidRequestError(ValueError):
    """Raised when a moderation request cannot be processed at all."""


class ConfigError(ValueError):
    """Raised at load time when a config or rule file is malformed."""


class ContentKind(Enum):
    """What kind of user submission is being moderated."""

    POST = "post"
    COMMENT = "comment"
    MEME_PROMPT = "memePrompt"
    BIO = "bio"


class ViolationCategory(Enum):
    """Closed set of reasons content can be masked or rejected."""

    CONTACT_INFO_EMAIL = "contactInfoEmail"
    CONTACT_INFO_PHONE = "contactInfoPhone"
    CONTACT_INFO_HANDLE = "contactInfoHandle"
    OFF_PLATFORM_SOLICITATION = "offPlatformSolicitation"
    SPAM_SELF_PROMOTION = "spamSelfPromotion"
    HARASSMENT = "harassment"
    HATE_SPEECH = "hateSpeech"
    NSFW = "nsfw"
    OFF_TOPIC = "offTopic"
    OTHER = "other"


class Severity(Enum):
    """Pre-filter severity, ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: Severity) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class MaskStrategy(Enum):
    """How a matched span is rewritten."""

    FULL_MASK = "fullMask"  # same-length run of mask characters
    CATEGORY_LABEL_REPLACE = "categoryLabelReplace"  # e.g. "[link removed]"


class TriggerReason(Enum):
    """Why the bot decided to speak (or not)."""

    EXPLICIT_MENTION = "explicitMention"
    CONTENT_HEURISTIC = "contentHeuristic"
    PERIODIC_AMBIENT = "periodicAmbient"
    NONE = "none"


@dataclass
class ModerationRequest:
    """A single piece of user-submitted text awaiting a decision."""

    content: str
    content_kind: ContentKind = ContentKind.POST
    author_id: str = ""
    author_display_name: str = ""
    conversation_context: list[str] = field(default_factory=list)  # most recent last

    def author_context(self) -> dict[str, Any]:
        """Context handed to the classification service alongside the content."""
        return {
            "authorId": self.author_id,
            "authorDisplayName": self.author_display_name,
            "recentMessages": list(self.conversation_context),
        }


@dataclass
class ModerationVerdict:
    """Structured outcome of moderating one piece of content."""

    approved: bool
    confidence: float
    violations: set[ViolationCategory] = field(default_factory=set)
    masked_content: Optional[str] = None
    suggestion: Optional[str] = None
    requires_human_review: bool = False

    def __post_init__(self) -> None:
        self.confidence = clamp_confidence(self.confidence)
        if not self.approved and not self.violations:
            self.violations = {ViolationCategory.OTHER}

    def display_content(self, original: str) -> str:
        """Return the text that may be persisted or shown."""
        return self.masked_content if self.masked_content is not None else original

    def to_dict(self) -> dict[str, Any]:
        return {
            "approved": self.approved,
            "confidence": self.confidence,
            "violations": sorted(v.value for v in self.violations),
            "maskedContent": self.masked_content,
            "suggestion": self.suggestion,
            "requiresHumanReview": self.requires_human_review,
        }


@dataclass
class BotDecision:
    """Whether the community bot should post a reply, and what it says."""

    should_respond: bool
    response_text: Optional[str] = None
    trigger_reason: TriggerReason = TriggerReason.NONE
    confidence: float = 0.0

    def __post_init__(self) -> None:
        self.confidence = clamp_confidence(self.confidence)
        if self.should_respond and not (self.response_text or "").strip():
            raise ValueError("A responding BotDecision needs non-empty response_text")

    @classmethod
    def silent(cls) -> BotDecision:
        return cls(should_respond=False, trigger_reason=TriggerReason.NONE, confidence=0.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shouldRespond": self.should_respond,
            "responseText": self.response_text,
            "triggerReason": self.trigger_reason.value,
            "confidence": self.confidence,
        }


@dataclass
class ModerationOutcome:
    """Merged pipeline result handed back to the submission flow."""

    verdict: ModerationVerdict
    bot_decision: BotDecision

    def to_dict(self) -> dict[str, Any]:
        return {
            "verdict": self.verdict.to_dict(),
            "botDecision": self.bot_decision.to_dict(),
        }


def clamp_confidence(value: float) -> float:
    """Force a confidence score into [0.0, 1.0]."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return min(max(value, 0.0), 1.0)
