"""Content moderation: data models and the pattern pre-filter.

The classifier, bot engine and pipeline live in their own modules
(``cueguard.moderation.pipeline`` and friends) because they depend on
``cueguard.config``.
"""

from cueguard.moderation.models import (
    BotDecision,
    ContentKind,
    InvalidRequestError,
    ModerationOutcome,
    ModerationRequest,
    ModerationVerdict,
    Severity,
    TriggerReason,
    ViolationCategory,
)
from cueguard.moderation.prefilter import PatternPreFilter, ScanResult, scan

__all__ = [
    "BotDecision",
    "ContentKind",
    "InvalidRequestError",
    "ModerationOutcome",
    "ModerationRequest",
    "ModerationVerdict",
    "PatternPreFilter",
    "ScanResult",
    "Severity",
    "TriggerReason",
    "ViolationCategory",
    "scan",
]
