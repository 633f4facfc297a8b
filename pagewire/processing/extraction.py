"""
Opportunistic profile extraction from free-form message text.

Pure functions, no side effects. Each extractor returns None when the text
does not contain a confident match.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass

# Explicit introductions; the name may be typed in lower case
NAME_PATTERN = re.compile(
    r"\b(?:my name is|my name's|call me)\s+"
    r"([a-z][a-z'\-]+(?:\s+[a-z][a-z'\-]+){0,2})",
    re.IGNORECASE,
)

# Looser introductions only count with a capitalized name ("I'm good" is not one)
LOOSE_NAME_PATTERN = re.compile(
    r"\b(?i:i am|i'm|this is)\s+"
    r"([A-Z][a-zA-Z'\-]+(?:\s+[A-Z][a-zA-Z'\-]+){0,2})"
)

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}\b")

# Optional leading +, then 7-15 digits with common separators
PHONE_PATTERN = re.compile(r"(?<![\w+])(\+?\d[\d\s().\-]{6,}\d)(?!\w)")

LOCATION_PATTERN = re.compile(
    r"\b(?i:i live in|i'm based in|i am based in|i'm located in|i am located in|"
    r"i'm from|i am from|located in|based in)\s+"
    r"([A-Z][a-zA-Z.\-]+(?:[ ,]+[A-Z][a-zA-Z.\-]+){0,3})"
)

# Words that end a name match, or rule it out when they come first
# ("I am Interested ...", "call me back", "jane and I")
_NAME_STOPWORDS = frozenset(
    {
        "interested",
        "looking",
        "here",
        "not",
        "just",
        "very",
        "so",
        "the",
        "a",
        "an",
        "in",
        "from",
        "and",
        "or",
        "but",
        "at",
        "on",
        "for",
        "to",
        "with",
        "back",
        "please",
        "thanks",
        "i",
    }
)


@dataclass(frozen=True)
class ExtractedProfile:
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    location: str | None = None

    def to_fields(self) -> dict[str, str | None]:
        return asdict(self)

    @property
    def is_empty(self) -> bool:
        return not any(self.to_fields().values())


def extract_name(text: str) -> str | None:
    match = NAME_PATTERN.search(text) or LOOSE_NAME_PATTERN.search(text)
    if not match:
        return None
    words = []
    for word in match.group(1).split():
        if word.lower() in _NAME_STOPWORDS:
            break
        words.append(word[0].upper() + word[1:])
    return " ".join(words) or None


def extract_email(text: str) -> str | None:
    match = EMAIL_PATTERN.search(text)
    return match.group(0).lower() if match else None


def extract_phone(text: str) -> str | None:
    for match in PHONE_PATTERN.finditer(text):
        candidate = match.group(1)
        digits = re.sub(r"\D", "", candidate)
        if 7 <= len(digits) <= 15:
            prefix = "+" if candidate.startswith("+") else ""
            return f"{prefix}{digits}"
    return None


def extract_location(text: str) -> str | None:
    match = LOCATION_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).strip(" ,.")


def extract_profile(text: str | None) -> ExtractedProfile:
    """Run every extractor over ``text``."""
    if not text:
        return ExtractedProfile()
    return ExtractedProfile(
        name=extract_name(text),
        phone=extract_phone(text),
        email=extract_email(text),
        location=extract_location(text),
    )
