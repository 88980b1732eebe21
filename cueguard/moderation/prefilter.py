"""Deterministic pattern pre-filter.

Scans text for contact details, off-platform links and solicitation phrases.
Contact data is masked in place with ``*`` so the text keeps its length and
layout; links to off-platform or suspicious sites are swapped for a short
label.  The filter is a pure function of its input and rule set: no I/O, no
state, no exceptions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from cueguard.moderation.models import MaskStrategy, Severity, ViolationCategory
from cueguard.moderation.rules import BOT_HANDLE, RuleSet, default_rule_set

MASK_CHAR = "*"

_URL_OR_HANDLE = re.compile(
    r"https?://|www\.|(?<![\w.])@(?!" + re.escape(BOT_HANDLE[1:]) + r"\b)\w", re.IGNORECASE
)


@dataclass(frozen=True)
class ScanResult:
    """Output of a pre-filter pass."""

    original_content: str
    masked_content: str
    violations: frozenset[ViolationCategory] = field(default_factory=frozenset)
    severity: Severity = Severity.LOW
    matched_rules: tuple[str, ...] = ()

    @property
    def altered(self) -> bool:
        return self.masked_content != self.original_content

    @property
    def has_violations(self) -> bool:
        return bool(self.violations)


class PatternPreFilter:
    """Applies a :class:`RuleSet` to text."""

    def __init__(self, rule_set: RuleSet | None = None) -> None:
        self._rules = rule_set or default_rule_set()
        self._phrase_patterns: list[tuple[ViolationCategory, str, re.Pattern[str]]] = [
            (category, phrase, _phrase_pattern(phrase))
            for category, phrases in self._rules.flagged_phrases.items()
            for phrase in phrases
        ]
        self._promo_patterns: list[re.Pattern[str]] = [
            _phrase_pattern(k) for k in self._rules.promotion_keywords
        ]

    @property
    def rule_set(self) -> RuleSet:
        return self._rules

    # -- public API ----------------------------------------------------------

    def scan(self, content: str) -> ScanResult:
        """Scan *content* and return the masked text, categories and severity."""
        text = content or ""
        violations: set[ViolationCategory] = set()
        severity = Severity.LOW
        matched: list[str] = []

        mask_spans: list[tuple[int, int]] = []
        label_spans: list[tuple[int, int, str]] = []

        hits = [(rule, list(rule.spans(text))) for rule in self._rules.rules]
        masked_by = [
            (start, end, rule.category)
            for rule, spans in hits
            if rule.mask_strategy == MaskStrategy.FULL_MASK
            for start, end in spans
        ]

        for rule, spans in hits:
            hit = False
            for start, end in spans:
                # The "@example.com" inside an address is part of the email.
                if _inside_other(start, end, rule.category, masked_by):
                    continue
                hit = True
                if rule.mask_strategy == MaskStrategy.FULL_MASK:
                    mask_spans.append((start, end))
                else:
                    label_spans.append((start, end, rule.label))
            if hit:
                violations.add(rule.category)
                severity = max(severity, rule.severity)
                matched.append(rule.id)

        for category, phrase, pattern in self._phrase_patterns:
            if pattern.search(text):
                violations.add(category)
                severity = max(severity, Severity.MEDIUM)
                matched.append(f"phrase:{phrase}")

        if self._is_promotion(text):
            violations.add(ViolationCategory.SPAM_SELF_PROMOTION)
            severity = max(severity, Severity.MEDIUM)
            matched.append("promotion")

        return ScanResult(
            original_content=text,
            masked_content=_apply_spans(text, mask_spans, label_spans),
            violations=frozenset(violations),
            severity=severity,
            matched_rules=tuple(matched),
        )

    # -- checks --------------------------------------------------------------

    def _is_promotion(self, text: str) -> bool:
        # Promotional wording only counts when it points somewhere.
        if not _URL_OR_HANDLE.search(text):
            return False
        return any(p.search(text) for p in self._promo_patterns)


_default_filter: PatternPreFilter | None = None


def scan(content: str) -> ScanResult:
    """Scan *content* with the built-in rule set."""
    global _default_filter
    if _default_filter is None:
        _default_filter = PatternPreFilter()
    return _default_filter.scan(content)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    words = [re.escape(w) for w in phrase.split()]
    return re.compile(r"\b" + r"\s+".join(words) + r"\b", re.IGNORECASE)


def _inside_other(
    start: int,
    end: int,
    category: ViolationCategory,
    masked_by: list[tuple[int, int, ViolationCategory]],
) -> bool:
    """True if a larger masked span of another category covers ``[start, end)``."""
    return any(
        m_start <= start and end <= m_end and m_end - m_start > end - start
        for m_start, m_end, m_category in masked_by
        if m_category != category
    )


def _merge(spans: list[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _apply_spans(
    text: str,
    mask_spans: list[tuple[int, int]],
    label_spans: list[tuple[int, int, str]],
) -> str:
    """Rewrite *text* in one pass from spans found on the original.

    A label span that overlaps masked characters is masked in full instead of
    labelled, so a second pass finds nothing left to rewrite.
    """
    masks = _merge(mask_spans)

    labels: list[tuple[int, int, str]] = []
    for start, end, label in sorted(label_spans):
        if labels and start < labels[-1][1]:
            prev_start, prev_end, prev_label = labels[-1]
            labels[-1] = (prev_start, max(prev_end, end), prev_label)
        else:
            labels.append((start, end, label))

    changed = True
    while changed:
        changed = False
        kept: list[tuple[int, int, str]] = []
        for start, end, label in labels:
            if any(start < m_end and m_start < end for m_start, m_end in masks):
                masks = _merge(masks + [(start, end)])
                changed = True
            else:
                kept.append((start, end, label))
        labels = kept

    replacements: list[tuple[int, int, str]] = [
        (start, end, MASK_CHAR * (end - start)) for start, end in masks
    ]
    replacements.extend(labels)
    replacements.sort()

    out: list[str] = []
    cursor = 0
    for start, end, replacement in replacements:
        out.append(text[cursor:start])
        out.append(replacement)
        cursor = end
    out.append(text[cursor:])
    return "".join(out)
