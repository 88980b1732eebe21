"""Tests for the LLM policy classifier and its fallbacks."""

import asyncio
import time

import pytest

from cueguard.config import ClassifierConfig
from cueguard.moderation.breaker import CircuitBreaker, CircuitState
from cueguard.moderation.classifier import (
    ClassificationError,
    PolicyClassifier,
    normalize_category,
    parse_payload,
)
from cueguard.moderation.models import ContentKind, ViolationCategory


def _config(**overrides) -> ClassifierConfig:
    values = {"timeout_seconds": 0.5, "max_retries": 0, "retry_backoff_seconds": 0.0}
    values.update(overrides)
    return ClassifierConfig(**values)


def _classify(classifier: PolicyClassifier, content: str = "fresh promo for saturday"):
    return asyncio.run(
        classifier.classify(content, ContentKind.POST, {"authorDisplayName": "Nova"})
    )


def _assert_fallback(verdict):
    assert verdict.approved
    assert verdict.confidence == 0.5
    assert verdict.violations == set()
    assert verdict.requires_human_review


# ── Parsing ──────────────────────────────────────────────────────────


def test_parse_payload_accepts_fenced_json():
    payload = parse_payload('```json\n{"approved": true, "confidence": 0.9}\n```')
    assert payload.approved
    assert payload.violations == []


def test_parse_payload_rejects_out_of_range_confidence():
    with pytest.raises(ClassificationError):
        parse_payload('{"approved": true, "confidence": 1.7}')


def test_parse_payload_rejects_missing_fields():
    with pytest.raises(ClassificationError):
        parse_payload('{"confidence": 0.9}')


def test_parse_payload_rejects_prose():
    with pytest.raises(ClassificationError):
        parse_payload("Looks fine to me!")


def test_normalize_category():
    assert normalize_category("hateSpeech") == ViolationCategory.HATE_SPEECH
    assert normalize_category("hate_speech") == ViolationCategory.HATE_SPEECH
    assert normalize_category("spam") == ViolationCategory.SPAM_SELF_PROMOTION
    assert normalize_category("Sexual Content") == ViolationCategory.NSFW
    assert normalize_category("crypto scam") == ViolationCategory.OTHER


# ── Classification ───────────────────────────────────────────────────


def test_approved_verdict(fake_client):
    client = fake_client(classify=[{"approved": True, "confidence": 0.92, "violations": []}])
    verdict = _classify(PolicyClassifier(client, _config()))

    assert verdict.approved
    assert verdict.confidence == 0.92
    assert verdict.violations == set()
    assert not verdict.requires_human_review
    assert verdict.masked_content is None


def test_rejected_verdict_maps_categories(fake_client):
    client = fake_client(
        classify=[
            {
                "approved": False,
                "confidence": 0.88,
                "violations": ["harassment", "spam"],
                "suggestion": "Keep it respectful.",
            }
        ]
    )
    verdict = _classify(PolicyClassifier(client, _config()))

    assert not verdict.approved
    assert verdict.violations == {
        ViolationCategory.HARASSMENT,
        ViolationCategory.SPAM_SELF_PROMOTION,
    }
    assert verdict.suggestion == "Keep it respectful."


def test_rejection_without_categories_becomes_other(fake_client):
    client = fake_client(classify=[{"approved": False, "confidence": 0.9, "violations": []}])
    verdict = _classify(PolicyClassifier(client, _config()))
    assert verdict.violations == {ViolationCategory.OTHER}


def test_low_confidence_requires_review(fake_client):
    client = fake_client(classify=[{"approved": True, "confidence": 0.4}])
    verdict = _classify(PolicyClassifier(client, _config(), review_threshold=0.6))
    assert verdict.requires_human_review


def test_rewrite_becomes_masked_content(fake_client):
    client = fake_client(
        classify=[
            {
                "approved": True,
                "confidence": 0.8,
                "violations": ["offTopic"],
                "moderatedContent": "fresh tracks for saturday",
            }
        ]
    )
    verdict = _classify(PolicyClassifier(client, _config()))
    assert verdict.masked_content == "fresh tracks for saturday"


def test_prompt_carries_kind_and_author(fake_client):
    client = fake_client(classify=[{"approved": True, "confidence": 0.9}])
    _classify(PolicyClassifier(client, _config()), "what a set")

    kind, prompt = client.calls[0]
    assert kind == "classify"
    assert "Content kind: post" in prompt
    assert "Author: Nova" in prompt
    assert "what a set" in prompt


# ── Fallbacks ────────────────────────────────────────────────────────


def test_unconfigured_client_falls_back(fake_client):
    client = fake_client(configured=False)
    verdict = _classify(PolicyClassifier(client, _config()))
    _assert_fallback(verdict)
    assert client.calls == []


def test_timeout_falls_back_within_deadline(fake_client):
    client = fake_client(classify=[{"approved": True, "confidence": 0.9}], delay=5.0)
    classifier = PolicyClassifier(client, _config(timeout_seconds=0.1))

    start = time.monotonic()
    verdict = _classify(classifier)
    elapsed = time.monotonic() - start

    _assert_fallback(verdict)
    assert elapsed < 2.0


def test_malformed_response_falls_back(fake_client):
    client = fake_client(classify=["I think this is fine."])
    _assert_fallback(_classify(PolicyClassifier(client, _config())))


def test_out_of_range_confidence_falls_back(fake_client):
    client = fake_client(classify=[{"approved": True, "confidence": 3}])
    _assert_fallback(_classify(PolicyClassifier(client, _config())))


def test_sdk_error_falls_back(fake_client):
    client = fake_client(classify=[ConnectionError("boom")])
    _assert_fallback(_classify(PolicyClassifier(client, _config())))


def test_retry_recovers_from_one_failure(fake_client):
    client = fake_client(
        classify=[ConnectionError("blip"), {"approved": True, "confidence": 0.9}]
    )
    verdict = _classify(PolicyClassifier(client, _config(max_retries=1)))

    assert verdict.confidence == 0.9
    assert client.count("classify") == 2


def test_open_circuit_skips_the_service(fake_client, clock):
    client = fake_client(classify=[ConnectionError("down")])
    breaker = CircuitBreaker(failure_threshold=2, cooldown_seconds=30, clock=clock)
    classifier = PolicyClassifier(client, _config(), breaker=breaker)

    _classify(classifier)
    _classify(classifier)
    assert classifier.breaker.state == CircuitState.OPEN

    calls_before = len(client.calls)
    _assert_fallback(_classify(classifier))
    assert len(client.calls) == calls_before


def test_cancellation_propagates(fake_client):
    client = fake_client(classify=[{"approved": True, "confidence": 0.9}], delay=5.0)
    classifier = PolicyClassifier(client, _config(timeout_seconds=10))

    async def run():
        task = asyncio.create_task(classifier.classify("hello"))
        await asyncio.sleep(0.05)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(run())
    assert classifier.breaker.state == CircuitState.CLOSED
