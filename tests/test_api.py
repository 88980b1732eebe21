"""Tests for the moderation HTTP endpoints."""

import random

import pytest
from fastapi.testclient import TestClient

from cueguard.config import ClassifierConfig, PipelineConfig
from cueguard.moderation.pipeline import ModerationPipeline
from web.backend.app.main import app
from web.backend.app.routers.moderation import get_pipeline

APPROVE = {"approved": True, "confidence": 0.95, "violations": []}
REPLY = {"shouldRespond": True, "response": "Welcome to the warehouse!", "confidence": 0.9}


class _NoAmbient(random.Random):
    def random(self):
        return 0.99


@pytest.fixture
def api(fake_client):
    llm = fake_client(classify=[APPROVE], reply=[REPLY])
    config = PipelineConfig(
        classifier=ClassifierConfig(timeout_seconds=0.3, max_retries=0, retry_backoff_seconds=0.0)
    )
    pipeline = ModerationPipeline(config, client=llm, rng=_NoAmbient(0))
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_root(api):
    resp = api.get("/")
    assert resp.status_code == 200
    assert resp.json()["name"] == "cueguard API"


def test_process_masks_and_approves(api):
    resp = api.post(
        "/api/moderation/process",
        json={"content": "Hit me up at dj@example.com for bookings", "contentKind": "post"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["verdict"]["approved"] is True
    assert data["verdict"]["violations"] == ["contactInfoEmail"]
    assert "dj@example.com" not in data["verdict"]["maskedContent"]
    assert data["botDecision"]["shouldRespond"] is False


def test_process_blank_content_is_400(api):
    resp = api.post("/api/moderation/process", json={"content": "   "})
    assert resp.status_code == 400


def test_malformed_body_is_400(api):
    resp = api.post("/api/moderation/process", json={"contentKind": "post"})
    assert resp.status_code == 400

    resp = api.post("/api/moderation/process", json={"content": "hi", "contentKind": "story"})
    assert resp.status_code == 400


def test_scan_endpoint(api):
    resp = api.post("/api/moderation/scan", json={"content": "call 9876543210"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["maskedContent"] == "call **********"
    assert data["severity"] == "high"
    assert data["altered"] is True
    assert "phone-ten-digit" in data["matchedRules"]


def test_scan_blank_is_400(api):
    assert api.post("/api/moderation/scan", json={"content": ""}).status_code == 400


def test_ai_moderate_returns_verdict(api):
    resp = api.post("/api/ai/moderate", json={"content": "that closing track though"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["approved"] is True
    assert data["confidence"] == 0.95
    assert data["requiresHumanReview"] is False


def test_bot_response_for_mention(api):
    resp = api.post(
        "/api/ai/bot-response",
        json={"content": "@thecueroom hello from Bangalore", "authorDisplayName": "Nova"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["shouldRespond"] is True
    assert data["triggerReason"] == "explicitMention"
    assert data["responseText"] == "Welcome to the warehouse!"


def test_health(api):
    resp = api.get("/api/moderation/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["llmConfigured"] is True
    assert data["breaker"]["state"] == "closed"
    assert data["breaker"]["consecutiveFailures"] == 0


def test_verify_links(api):
    resp = api.post(
        "/api/moderation/verify-links",
        json={"links": {"beatport": "https://www.beatport.com/artist/djnova", "instagram": "https://evil.tk/x"}},
    )
    assert resp.status_code == 200
    assert resp.json() == {"valid": True, "validPlatforms": ["beatport"]}

    resp = api.post("/api/moderation/verify-links", json={"links": {}})
    assert resp.json() == {"valid": False, "validPlatforms": []}
