"""Moderation pipeline orchestrator.

One pass per request: validate, scan, classify, engage.  Every stage degrades
instead of raising, so the only error a caller ever sees is
:class:`InvalidRequestError` for blank content.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import replace

from cueguard.config import PipelineConfig
from cueguard.llm.client import LLMClient
from cueguard.moderation.bot import AmbientThrottle, BotEngagementEngine
from cueguard.moderation.classifier import PolicyClassifier
from cueguard.moderation.models import (
    BotDecision,
    InvalidRequestError,
    ModerationOutcome,
    ModerationRequest,
    ModerationVerdict,
    Severity,
)
from cueguard.moderation.prefilter import PatternPreFilter, ScanResult
from cueguard.moderation.rules import load_rules
from cueguard.moderation.templates import PREFILTER_NOTICES, rejection_suggestion

logger = logging.getLogger(__name__)


class ModerationPipeline:
    """Composes pre-filter, classifier and bot engine into one decision."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        client: LLMClient | None = None,
        throttle: AmbientThrottle | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        cfg = self.config

        rule_set = load_rules(cfg.rules_path) if cfg.rules_path else None
        self.prefilter = PatternPreFilter(rule_set)

        client = client or LLMClient(
            model=cfg.classifier.model,
            timeout_seconds=cfg.classifier.timeout_seconds,
        )
        self.classifier = PolicyClassifier(
            client, cfg.classifier, review_threshold=cfg.review_threshold
        )
        # Bot replies go to the same service, so they respect the same circuit.
        self.bot = BotEngagementEngine(
            client,
            cfg.bot,
            throttle=throttle,
            rng=rng,
            timeout_seconds=cfg.classifier.timeout_seconds,
            breaker=self.classifier.breaker,
        )

    # -- public API ----------------------------------------------------------

    def validate(self, request: ModerationRequest) -> ModerationRequest:
        """Reject blank content and trim the conversation context."""
        if not isinstance(request.content, str) or not request.content.strip():
            raise InvalidRequestError("content must be a non-empty string")
        window = self.config.context_window
        context = [str(m) for m in request.conversation_context if m]
        context = context[-window:] if window else []
        return replace(request, conversation_context=context)

    async def process(self, request: ModerationRequest) -> ModerationOutcome:
        """Run *request* through every stage and return the merged outcome.

        Classification and reply generation share one time budget of
        ``classifier.timeout_seconds``.
        """
        request = self.validate(request)
        deadline = time.monotonic() + self.config.classifier.timeout_seconds

        scan = self.prefilter.scan(request.content)
        logger.debug(
            "Pre-filter: kind=%s len=%d severity=%s rules=%s",
            request.content_kind.value,
            len(request.content),
            scan.severity.value,
            ",".join(scan.matched_rules) or "-",
        )

        if scan.severity == Severity.HIGH and self.config.skip_classifier_on_high_severity:
            classifier_verdict = ModerationVerdict(approved=True, confidence=1.0)
        else:
            classifier_verdict = await self.classifier.classify(
                scan.masked_content,
                request.content_kind,
                request.author_context(),
            )

        verdict = self._merge(scan, classifier_verdict)
        logger.debug(
            "Verdict: approved=%s confidence=%.2f review=%s",
            verdict.approved,
            verdict.confidence,
            verdict.requires_human_review,
        )

        if verdict.approved:
            bot_decision = await self.bot.decide(
                request, verdict, budget_seconds=deadline - time.monotonic()
            )
        else:
            bot_decision = BotDecision.silent()

        return ModerationOutcome(verdict=verdict, bot_decision=bot_decision)

    # -- merging -------------------------------------------------------------

    def _prefilter_approved(self, scan: ScanResult) -> bool:
        if scan.severity != Severity.HIGH:
            return True
        return not (scan.violations & self.config.auto_reject_categories)

    def _merge(self, scan: ScanResult, verdict: ModerationVerdict) -> ModerationVerdict:
        approved = self._prefilter_approved(scan) and verdict.approved
        violations = set(scan.violations) | set(verdict.violations)

        if verdict.masked_content is not None:
            masked = verdict.masked_content
        elif scan.altered:
            masked = scan.masked_content
        else:
            masked = None

        suggestion = verdict.suggestion
        if suggestion is None and not approved:
            suggestion = rejection_suggestion(violations)
        if suggestion is None and scan.has_violations:
            suggestion = PREFILTER_NOTICES.get(scan.severity)

        return ModerationVerdict(
            approved=approved,
            confidence=verdict.confidence,
            violations=violations,
            masked_content=masked,
            suggestion=suggestion,
            requires_human_review=(
                verdict.requires_human_review
                or verdict.confidence < self.config.review_threshold
            ),
        )
