"""Static text used when the bot cannot (or must not) call the LLM."""

from __future__ import annotations

import random

from cueguard.moderation.models import Severity, ViolationCategory

TEMPLATE_POOLS: dict[str, tuple[str, ...]] = {
    "welcome": (
        "Welcome to the underground, {name}! 🎧 Keep the vibe authentic and the beats heavy.",
        "Another soul enters the warehouse... Good to have you here, {name}.",
        "The bass is calling, {name}. Share what you're working on and say hi to the crew!",
    ),
    "file_warning": (
        "Hold up, {name}! Uploads are capped at 5MB to keep the flow. Compress it and try again.",
        "We keep it tight in the underground: 5MB max, images and audio only.",
        "Big files kill the vibe... Bounce it down under 5MB and share again, {name}.",
    ),
    "encouragement": (
        "Great to see you engaging with the community, {name}! 🎧",
        "Love the underground vibes, {name}! Keep the techno spirit alive 🔥",
        "This is what TheCueRoom is all about: authentic music discussion! 🎵",
        "The underground scene needs more voices like yours, {name}! 💫",
        "Your contribution to the scene is appreciated, {name}! 🙌",
    ),
    "mention": (
        "Thanks for the shout, {name}! I'm here for music advice and community support. 🎧",
        "Heard you, {name}! Drop more details and the crew (and I) will chime in.",
    ),
    "monitoring": (
        "TheCueRoom AI Bot is monitoring... Keeping the underground safe and authentic.",
        "Scanning for authentic electronic music content... All systems green.",
        "Underground guardian active... Protecting the culture, one post at a time.",
    ),
}

PREFILTER_NOTICES: dict[Severity, str] = {
    Severity.HIGH: (
        "Contact information has been automatically masked to protect privacy. "
        "Please use TheCueRoom's messaging system for connections."
    ),
    Severity.MEDIUM: (
        "Reminder: keep all communications within TheCueRoom. "
        "Let's keep the community safe and focused on music!"
    ),
}

REJECTION_SUGGESTIONS: dict[ViolationCategory, str] = {
    ViolationCategory.CONTACT_INFO_EMAIL: "Remove email addresses and use TheCueRoom messages instead.",
    ViolationCategory.CONTACT_INFO_PHONE: "Remove phone numbers and use TheCueRoom messages instead.",
    ViolationCategory.CONTACT_INFO_HANDLE: "Remove social handles; connect through TheCueRoom profiles.",
    ViolationCategory.OFF_PLATFORM_SOLICITATION: "Keep bookings and collabs on the platform.",
    ViolationCategory.SPAM_SELF_PROMOTION: "No spam or promotional content without permission.",
    ViolationCategory.HARASSMENT: "Respect fellow artists and community members.",
    ViolationCategory.HATE_SPEECH: "Hate speech has no place in the underground.",
    ViolationCategory.NSFW: "Keep content safe for the whole community.",
    ViolationCategory.OFF_TOPIC: "Keep discussions focused on underground techno and house music.",
    ViolationCategory.OTHER: "Please review the community guidelines and edit your post.",
}

# Most serious first.
_CATEGORY_ORDER = [
    ViolationCategory.HATE_SPEECH,
    ViolationCategory.HARASSMENT,
    ViolationCategory.NSFW,
    ViolationCategory.SPAM_SELF_PROMOTION,
    ViolationCategory.OFF_PLATFORM_SOLICITATION,
    ViolationCategory.CONTACT_INFO_EMAIL,
    ViolationCategory.CONTACT_INFO_PHONE,
    ViolationCategory.CONTACT_INFO_HANDLE,
    ViolationCategory.OFF_TOPIC,
    ViolationCategory.OTHER,
]


def pick_template(pool: str, rng: random.Random, name: str = "") -> str:
    """Choose a template from *pool* and fill in the author's name."""
    options = TEMPLATE_POOLS.get(pool) or TEMPLATE_POOLS["encouragement"]
    return rng.choice(options).format(name=name or "artist")


def rejection_suggestion(violations: set[ViolationCategory]) -> str:
    """Default remediation hint for a rejected submission."""
    for category in _CATEGORY_ORDER:
        if category in violations:
            return REJECTION_SUGGESTIONS[category]
    return REJECTION_SUGGESTIONS[ViolationCategory.OTHER]
