"""Pattern rules for the pre-filter.

The rule set is configuration data: the defaults below cover contact details,
off-platform links and solicitation phrases seen on TheCueRoom, and can be
replaced or extended from a YAML file with :func:`load_rules`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator
from urllib.parse import urlsplit

import yaml

from cueguard.moderation.models import (
    ConfigError,
    MaskStrategy,
    Severity,
    ViolationCategory,
)

BOT_HANDLE = "@thecueroom"

CATEGORY_LABELS: dict[ViolationCategory, str] = {
    ViolationCategory.CONTACT_INFO_EMAIL: "[email removed]",
    ViolationCategory.CONTACT_INFO_PHONE: "[phone removed]",
    ViolationCategory.CONTACT_INFO_HANDLE: "[handle removed]",
    ViolationCategory.OFF_PLATFORM_SOLICITATION: "[link removed]",
    ViolationCategory.OTHER: "[link removed]",
}


# ---------------------------------------------------------------------------
# Rule type
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternRule:
    """A single regex rule. Compiled once, immutable afterwards."""

    id: str
    category: ViolationCategory
    pattern: str
    mask_strategy: MaskStrategy = MaskStrategy.FULL_MASK
    severity: Severity = Severity.MEDIUM
    label: str = ""
    exempt: tuple[str, ...] = ()  # lowercase literal matches that are left alone
    compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        try:
            compiled = re.compile(self.pattern, re.IGNORECASE)
        except re.error as exc:
            raise ConfigError(f"Rule {self.id!r} has an invalid pattern: {exc}") from exc
        object.__setattr__(self, "compiled", compiled)
        object.__setattr__(self, "exempt", tuple(e.lower() for e in self.exempt))
        if not self.label:
            object.__setattr__(
                self, "label", CATEGORY_LABELS.get(self.category, "[removed]")
            )

    def spans(self, text: str) -> Iterator[tuple[int, int]]:
        """Yield ``(start, end)`` for every non-exempt, non-empty match."""
        for match in self.compiled.finditer(text):
            start, end = match.span()
            if start == end:
                continue
            if match.group(0).lower() in self.exempt:
                continue
            yield start, end


@dataclass(frozen=True)
class RuleSet:
    """Everything the pre-filter needs: regex rules plus phrase lists."""

    rules: tuple[PatternRule, ...] = ()
    flagged_phrases: dict[ViolationCategory, tuple[str, ...]] = field(default_factory=dict)
    promotion_keywords: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

# Music platforms accepted for artist verification; links to these stay visible.
_ALLOWED_LINK_HOSTS = (
    r"soundcloud\.com|[\w-]+\.bandcamp\.com|bandcamp\.com|beatport\.com|"
    r"youtube\.com|youtu\.be|instagram\.com|open\.spotify\.com|spotify\.com|"
    r"mixcloud\.com|thecueroom\.\w+"
)

_URL_TAIL = r"[^\s<>()\[\]]*[^\s<>()\[\].,!?;:'\"]"

DEFAULT_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        id="email",
        category=ViolationCategory.CONTACT_INFO_EMAIL,
        pattern=r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
        severity=Severity.HIGH,
    ),
    PatternRule(
        id="phone-in-mobile",
        category=ViolationCategory.CONTACT_INFO_PHONE,
        pattern=r"(?<![\d+])(?:\+?91[\s-]?)?[6-9]\d{4}[\s-]?\d{5}(?!\d)",
        severity=Severity.HIGH,
    ),
    PatternRule(
        id="phone-ten-digit",
        category=ViolationCategory.CONTACT_INFO_PHONE,
        pattern=r"(?<!\d)\d{10}(?!\d)",
        severity=Severity.HIGH,
    ),
    PatternRule(
        id="phone-international",
        category=ViolationCategory.CONTACT_INFO_PHONE,
        pattern=r"\+[1-9]\d{0,2}[\s-]?\(?\d{1,4}\)?[\s-]?\d{3,4}[\s-]?\d{3,4}(?!\d)",
        severity=Severity.HIGH,
    ),
    PatternRule(
        id="phone-grouped",
        category=ViolationCategory.CONTACT_INFO_PHONE,
        pattern=r"(?<![\d+])\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}(?!\d)",
        severity=Severity.HIGH,
    ),
    PatternRule(
        id="messenger-link",
        category=ViolationCategory.OFF_PLATFORM_SOLICITATION,
        pattern=(
            r"(?:https?://)?(?:www\.)?"
            r"(?:wa\.me|chat\.whatsapp\.com|t\.me|discord\.gg|discord\.com/invite)"
            r"/[\w\-/+]*"
        ),
        severity=Severity.HIGH,
    ),
    PatternRule(
        id="social-handle",
        category=ViolationCategory.CONTACT_INFO_HANDLE,
        pattern=r"(?<![@*])@[A-Za-z0-9_](?:[A-Za-z0-9_.]*[A-Za-z0-9_])?",
        severity=Severity.MEDIUM,
        exempt=(BOT_HANDLE,),
    ),
    PatternRule(
        id="url-shortener",
        category=ViolationCategory.OTHER,
        pattern=r"\b(?:https?://)?(?:bit\.ly|tinyurl\.com|t\.co|short\.link|goo\.gl|is\.gd)/" + _URL_TAIL,
        mask_strategy=MaskStrategy.CATEGORY_LABEL_REPLACE,
        severity=Severity.MEDIUM,
    ),
    PatternRule(
        id="suspicious-tld",
        category=ViolationCategory.OTHER,
        pattern=r"\b(?:https?://)?(?:[\w-]+\.)+(?:tk|ml|ga|cf|gq)\b(?:/" + _URL_TAIL + r")?",
        mask_strategy=MaskStrategy.CATEGORY_LABEL_REPLACE,
        severity=Severity.MEDIUM,
    ),
    PatternRule(
        id="off-platform-link",
        category=ViolationCategory.OFF_PLATFORM_SOLICITATION,
        pattern=(
            r"\b(?:https?://|www\.)(?!(?:www\.)?(?:" + _ALLOWED_LINK_HOSTS + r")\b)"
            + _URL_TAIL
        ),
        mask_strategy=MaskStrategy.CATEGORY_LABEL_REPLACE,
        severity=Severity.MEDIUM,
    ),
)

DEFAULT_FLAGGED_PHRASES: dict[ViolationCategory, tuple[str, ...]] = {
    ViolationCategory.OFF_PLATFORM_SOLICITATION: (
        "contact me", "dm me", "call me", "text me", "email me", "mail me",
        "whatsapp me", "ping me on", "reach out", "my number", "my email",
        "my ig", "my insta", "book me", "hire me", "collaboration outside",
        "meet offline", "personal chat", "private message", "whatsapp",
        "telegram",
    ),
    ViolationCategory.SPAM_SELF_PROMOTION: (
        "buy now", "limited offer", "promo code",
    ),
    ViolationCategory.OTHER: (
        "free download", "cracked plugin", "cracked vst", "torrent", "pirated",
    ),
}

DEFAULT_PROMOTION_KEYWORDS: tuple[str, ...] = (
    "buy", "purchase", "sale", "discount", "promo", "check out my",
    "listen to my", "my new track", "stream now", "available on",
    "link in bio", "follow me", "subscribe", "like and share",
)


# Hosts accepted as proof of an artist profile, per platform.  Subdomains
# count (``djnova.bandcamp.com``).
VERIFICATION_DOMAINS: dict[str, tuple[str, ...]] = {
    "soundcloud": ("soundcloud.com",),
    "bandcamp": ("bandcamp.com",),
    "beatport": ("beatport.com",),
    "instagram": ("instagram.com",),
    "youtube": ("youtube.com", "youtu.be"),
    "spotify": ("spotify.com",),
    "mixcloud": ("mixcloud.com",),
}


def is_verification_link(platform: str, url: str) -> bool:
    """True if *url* is an http(s) link on one of *platform*'s hosts."""
    domains = VERIFICATION_DOMAINS.get(platform.strip().lower())
    if not domains or not url:
        return False
    try:
        parts = urlsplit(url.strip())
        host = (parts.hostname or "").lower()
    except ValueError:
        return False
    if parts.scheme not in ("http", "https") or not host:
        return False
    return any(host == d or host.endswith("." + d) for d in domains)


def validate_verification_links(links: dict[str, str] | None) -> bool:
    """True if at least one of *links* (platform -> URL) is a valid profile link."""
    if not links:
        return False
    return any(is_verification_link(platform, url) for platform, url in links.items())


def default_rule_set() -> RuleSet:
    """Return the built-in rule set."""
    return RuleSet(
        rules=DEFAULT_RULES,
        flagged_phrases=dict(DEFAULT_FLAGGED_PHRASES),
        promotion_keywords=DEFAULT_PROMOTION_KEYWORDS,
    )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


def load_rules(path: str | Path) -> RuleSet:
    """Load a rule set from a YAML file.

    With ``extend_defaults: true`` the file's rules and phrases are added on
    top of the built-in ones; otherwise they replace them.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read rule file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Rule file {path} must contain a mapping")

    base = default_rule_set() if data.get("extend_defaults", False) else RuleSet()

    rules = list(base.rules)
    for rule_data in data.get("rules", []) or []:
        rules.append(_parse_rule(rule_data))

    phrases = {cat: list(items) for cat, items in base.flagged_phrases.items()}
    for cat_name, items in (data.get("flagged_phrases") or {}).items():
        category = _parse_enum(ViolationCategory, cat_name, "category")
        phrases.setdefault(category, []).extend(str(p).lower() for p in items or [])

    keywords = list(base.promotion_keywords)
    keywords.extend(str(k).lower() for k in data.get("promotion_keywords", []) or [])

    return RuleSet(
        rules=tuple(rules),
        flagged_phrases={cat: tuple(items) for cat, items in phrases.items()},
        promotion_keywords=tuple(keywords),
    )


def _parse_rule(rule_data: dict) -> PatternRule:
    try:
        return PatternRule(
            id=rule_data["id"],
            category=_parse_enum(ViolationCategory, rule_data["category"], "category"),
            pattern=rule_data["pattern"],
            mask_strategy=_parse_enum(
                MaskStrategy, rule_data.get("mask_strategy", "fullMask"), "mask_strategy"
            ),
            severity=_parse_enum(Severity, rule_data.get("severity", "medium"), "severity"),
            label=rule_data.get("label", ""),
            exempt=tuple(rule_data.get("exempt", [])),
        )
    except (KeyError, TypeError) as exc:
        raise ConfigError(f"Malformed rule entry {rule_data!r}: {exc}") from exc


def _parse_enum(enum_cls, value, what: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"Unknown {what} {value!r} (expected one of: {allowed})") from exc
