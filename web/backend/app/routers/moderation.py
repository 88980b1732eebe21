"""Moderation router -- full pipeline, pre-filter scan, classifier and bot endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from cueguard.config import load_config
from cueguard.moderation.models import InvalidRequestError
from cueguard.moderation.pipeline import ModerationPipeline
from cueguard.moderation.rules import is_verification_link
from web.backend.app.models.api import (
    BotDecisionResponse,
    BreakerResponse,
    HealthResponse,
    ModerateRequest,
    OutcomeResponse,
    ScanRequest,
    ScanResponse,
    VerdictResponse,
    VerificationLinksRequest,
    VerificationLinksResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["moderation"])


# ---------------------------------------------------------------------------
# Pipeline singleton
# ---------------------------------------------------------------------------

_pipeline: ModerationPipeline | None = None


def get_pipeline() -> ModerationPipeline:
    """Return the process-wide pipeline, building it from the environment once."""
    global _pipeline
    if _pipeline is None:
        _pipeline = ModerationPipeline(load_config())
    return _pipeline


def _bad_request(exc: InvalidRequestError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/moderation/process", response_model=OutcomeResponse)
async def process_content(
    req: ModerateRequest, pipeline: ModerationPipeline = Depends(get_pipeline)
):
    """Run a submission through pre-filter, classifier and bot engine."""
    try:
        outcome = await pipeline.process(req.to_request())
    except InvalidRequestError as e:
        raise _bad_request(e)
    return OutcomeResponse(
        verdict=VerdictResponse.from_verdict(outcome.verdict),
        bot_decision=BotDecisionResponse.from_decision(outcome.bot_decision),
    )


@router.post("/moderation/scan", response_model=ScanResponse)
async def scan_content(
    req: ScanRequest, pipeline: ModerationPipeline = Depends(get_pipeline)
):
    """Pre-filter only: mask contact details without calling the LLM."""
    if not req.content.strip():
        raise _bad_request(InvalidRequestError("content must be a non-empty string"))
    return ScanResponse.from_scan(pipeline.prefilter.scan(req.content))


@router.post("/ai/moderate", response_model=VerdictResponse)
async def moderate_content(
    req: ModerateRequest, pipeline: ModerationPipeline = Depends(get_pipeline)
):
    """Classifier verdict for the pre-filtered text, without bot engagement."""
    try:
        request = pipeline.validate(req.to_request())
    except InvalidRequestError as e:
        raise _bad_request(e)
    scan = pipeline.prefilter.scan(request.content)
    verdict = await pipeline.classifier.classify(
        scan.masked_content, request.content_kind, request.author_context()
    )
    return VerdictResponse.from_verdict(verdict)


@router.post("/ai/bot-response", response_model=BotDecisionResponse)
async def bot_response(
    req: ModerateRequest, pipeline: ModerationPipeline = Depends(get_pipeline)
):
    """Bot decision for a message, after it has been moderated."""
    try:
        outcome = await pipeline.process(req.to_request())
    except InvalidRequestError as e:
        raise _bad_request(e)
    return BotDecisionResponse.from_decision(outcome.bot_decision)


@router.post("/moderation/verify-links", response_model=VerificationLinksResponse)
async def verify_links(req: VerificationLinksRequest):
    """Check artist verification links; at least one must be a known platform profile."""
    platforms = sorted(p for p, url in req.links.items() if is_verification_link(p, url))
    return VerificationLinksResponse(valid=bool(platforms), valid_platforms=platforms)


@router.get("/moderation/health", response_model=HealthResponse)
async def moderation_health(pipeline: ModerationPipeline = Depends(get_pipeline)):
    """Classifier circuit state and whether the LLM is configured."""
    snapshot = pipeline.classifier.breaker.snapshot()
    return HealthResponse(
        status="degraded" if snapshot.state.value != "closed" else "healthy",
        llm_configured=pipeline.classifier.client.configured,
        model=pipeline.config.classifier.model,
        breaker=BreakerResponse.model_validate(snapshot.to_dict()),
    )
