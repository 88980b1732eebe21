"""Tests for pattern rules and YAML rule loading."""

import tempfile
from pathlib import Path

import pytest
import yaml

from cueguard.moderation.models import ConfigError, MaskStrategy, Severity, ViolationCategory
from cueguard.moderation.prefilter import PatternPreFilter
from cueguard.moderation.rules import (
    PatternRule,
    default_rule_set,
    is_verification_link,
    load_rules,
    validate_verification_links,
)


def _write_rules(tmpdir: str, data) -> str:
    path = Path(tmpdir) / "rules.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return str(path)


PROMO_CODE_RULE = {
    "id": "promo-code",
    "category": "spamSelfPromotion",
    "pattern": r"CUE\d{3}",
    "mask_strategy": "categoryLabelReplace",
    "label": "[code removed]",
    "severity": "low",
}


def test_default_rule_set_covers_contact_details():
    ids = {rule.id for rule in default_rule_set().rules}
    assert {"email", "phone-ten-digit", "social-handle", "off-platform-link"} <= ids


def test_rule_defaults_label_from_category():
    rule = PatternRule(
        id="x",
        category=ViolationCategory.CONTACT_INFO_EMAIL,
        pattern=r"foo",
        mask_strategy=MaskStrategy.CATEGORY_LABEL_REPLACE,
    )
    assert rule.label == "[email removed]"


def test_invalid_pattern_raises_config_error():
    with pytest.raises(ConfigError):
        PatternRule(id="bad", category=ViolationCategory.OTHER, pattern="(unclosed")


def test_load_rules_replaces_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        rule_set = load_rules(_write_rules(tmpdir, {"rules": [PROMO_CODE_RULE]}))

    assert [r.id for r in rule_set.rules] == ["promo-code"]
    assert rule_set.flagged_phrases == {}

    result = PatternPreFilter(rule_set).scan("use CUE123 at checkout, mail dj@example.com")
    assert result.masked_content == "use [code removed] at checkout, mail dj@example.com"
    assert result.violations == {ViolationCategory.SPAM_SELF_PROMOTION}
    assert result.severity == Severity.LOW


def test_load_rules_extends_defaults():
    data = {
        "extend_defaults": True,
        "rules": [PROMO_CODE_RULE],
        "flagged_phrases": {"offTopic": ["crypto giveaway"]},
        "promotion_keywords": ["pre-save"],
    }
    with tempfile.TemporaryDirectory() as tmpdir:
        rule_set = load_rules(_write_rules(tmpdir, data))

    assert len(rule_set.rules) == len(default_rule_set().rules) + 1
    assert "crypto giveaway" in rule_set.flagged_phrases[ViolationCategory.OFF_TOPIC]
    assert "pre-save" in rule_set.promotion_keywords

    result = PatternPreFilter(rule_set).scan("CUE123 and dj@example.com, crypto giveaway")
    assert {
        ViolationCategory.SPAM_SELF_PROMOTION,
        ViolationCategory.CONTACT_INFO_EMAIL,
        ViolationCategory.OFF_TOPIC,
    } <= result.violations
    assert result.severity == Severity.HIGH


def test_unknown_category_is_rejected():
    bad = dict(PROMO_CODE_RULE, category="piracy")
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError, match="Unknown category"):
            load_rules(_write_rules(tmpdir, {"rules": [bad]}))


def test_rule_without_pattern_is_rejected():
    bad = {"id": "nope", "category": "other"}
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            load_rules(_write_rules(tmpdir, {"rules": [bad]}))


def test_non_mapping_file_is_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            load_rules(_write_rules(tmpdir, ["just", "a", "list"]))


def test_missing_file_is_config_error():
    with pytest.raises(ConfigError):
        load_rules("/nonexistent/rules.yaml")


def test_exempt_matches_are_skipped():
    rule = PatternRule(
        id="handle",
        category=ViolationCategory.CONTACT_INFO_HANDLE,
        pattern=r"@\w+",
        exempt=("@TheCueRoom",),
    )
    assert list(rule.spans("@thecueroom hi @dj")) == [(15, 18)]


# ── Verification links ───────────────────────────────────────────────


def test_verification_needs_one_known_profile_link():
    assert validate_verification_links({"soundcloud": "https://soundcloud.com/djnova"})
    assert validate_verification_links(
        {"instagram": "not a url", "bandcamp": "https://djnova.bandcamp.com/album/x"}
    )
    assert not validate_verification_links({})
    assert not validate_verification_links(None)


def test_verification_link_must_match_its_platform():
    assert is_verification_link("YouTube", "https://youtu.be/abc123")
    assert not is_verification_link("youtube", "https://soundcloud.com/djnova")
    assert not is_verification_link("soundcloud", "https://soundcloud.com.evil.tk/djnova")
    assert not is_verification_link("myspace", "https://myspace.com/djnova")
    assert not is_verification_link("beatport", "ftp://beatport.com/artist")
    assert not is_verification_link("beatport", "beatport.com/artist/djnova")
