"""
String helpers for deriving labels and URI keys from class names.

Pluralization only inflects the last word ("BlogPost" -> "blog-posts") and
covers the regular English rules plus a short irregular table.
"""

import re
from typing import Dict

_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "tooth": "teeth",
    "foot": "feet",
    "mouse": "mice",
    "goose": "geese",
    "datum": "data",
    "index": "indices",
    "status": "statuses",
}

_UNCOUNTABLE = {
    "equipment", "information", "rice", "money", "species", "series",
    "fish", "sheep", "news", "metadata", "feedback", "audio", "media",
}

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def split_words(value: str) -> list[str]:
    """Split a StudlyCase, camelCase, snake_case or kebab-case string into lowercase words."""
    spaced = _WORD_BOUNDARY.sub(" ", value)
    return [word.lower() for word in re.split(r"[\s_\-]+", spaced) if word]


def snake(value: str, delimiter: str = "_") -> str:
    return delimiter.join(split_words(value))


def kebab(value: str) -> str:
    return snake(value, "-")


def title(value: str) -> str:
    return " ".join(word.capitalize() for word in split_words(value))


def strip_suffix(value: str, suffix: str) -> str:
    """Remove a trailing suffix ("PostResource" -> "Post"), leaving bare suffixes alone."""
    if value.endswith(suffix) and value != suffix:
        return value[: -len(suffix)]
    return value


def _match_case(source: str, inflected: str) -> str:
    if source.isupper() and len(source) > 1:
        return inflected.upper()
    if source[:1].isupper():
        return inflected[:1].upper() + inflected[1:]
    return inflected


def plural_word(word: str) -> str:
    """Pluralize a single English word."""
    lower = word.lower()
    if not lower or lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR_PLURALS:
        return _match_case(word, _IRREGULAR_PLURALS[lower])
    if lower in _IRREGULAR_PLURALS.values():
        return word
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return word + "es"
    if re.search(r"[^aeiou]y$", lower):
        return word[:-1] + "ies"
    if re.search(r"(?:[^f]fe|[lr]f)$", lower):
        stem = word[:-2] if lower.endswith("fe") else word[:-1]
        return stem + "ves"
    return word + "s"


def plural(value: str) -> str:
    """Pluralize the last word of a phrase, keeping its delimiter."""
    match = re.search(r"([A-Za-z]+)$", value)
    if not match:
        return value
    return value[: match.start()] + plural_word(match.group(1))
