"""Name handling shared by the adapters, the walker and the deduplicator."""

import re
from functools import lru_cache
from typing import List

_PUBLISHER_PREFIXES = re.compile(r"^(?:microsoft\.|ea\.|ubisoft\s+)", re.IGNORECASE)
_GENERIC_WORDS = re.compile(r"\b(?:game|launcher)\b", re.IGNORECASE)
_EXE_SUFFIX = re.compile(r"\.exe$", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z0-9])")
_WORD_SEPARATORS = re.compile(r"[_\-.]")
_WHITESPACE = re.compile(r"\s+")
_TRADEMARKS = re.compile(r"[™®©]")

# Franchise spellings that camel-case splitting alone gets wrong
_FRANCHISE_FIXES = (
    (re.compile(r"ResidentEvil", re.IGNORECASE), "Resident Evil"),
    (re.compile(r"\bRE(\d+)\b"), r"Resident Evil \1"),
    (re.compile(r"AssassinsCreed", re.IGNORECASE), "Assassin's Creed"),
    (re.compile(r"\bCod(\d+)\b", re.IGNORECASE), r"Call of Duty \1"),
    (re.compile(r"\bGta(\d+)\b", re.IGNORECASE), r"Grand Theft Auto \1"),
)

# Version tokens: v2, v1.0, 1.0.3 (a bare "2" is part of the title)
_VERSION_TOKEN = re.compile(r"\bv\d+(?:\.\d+)*\b|\b\d+(?:\.\d+)+\b", re.IGNORECASE)

_EDITION_WORDS = re.compile(
    r"\b(?:edition|remastered|complete|gold|ultimate|original|classic|definitive|goty)\b",
    re.IGNORECASE,
)
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9\s]")


def clean_game_name(raw: str) -> str:
    """
    Turn an executable, folder or package name into a display title.

    "Microsoft.HaloInfinite" -> "Halo Infinite", "RE4.exe" -> "Resident Evil 4"
    """
    if not raw or not raw.strip():
        return "Unknown Game"

    cleaned = _PUBLISHER_PREFIXES.sub("", raw.strip())
    cleaned = _EXE_SUFFIX.sub("", cleaned)
    for pattern, replacement in _FRANCHISE_FIXES:
        cleaned = pattern.sub(replacement, cleaned)
    cleaned = _GENERIC_WORDS.sub("", cleaned)
    cleaned = _CAMEL_BOUNDARY.sub(r"\1 \2", cleaned)
    cleaned = _WORD_SEPARATORS.sub(" ", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned or raw.strip()


@lru_cache(maxsize=4096)
def normalize_for_dedup(name: str) -> str:
    """
    Grouping key for the deduplicator.

    Removes trademark symbols, version tokens and whitespace, then lower-cases,
    so "Portal 2" and "Portal 2 v1.0" share a key but "Portal 2" and
    "Portal" do not.
    """
    normalized = _TRADEMARKS.sub("", name)
    normalized = _VERSION_TOKEN.sub("", normalized)
    normalized = _WHITESPACE.sub("", normalized)
    return normalized.lower()


def folder_id(value: str) -> str:
    """Id fragment for folder-derived ids: "Far Cry 6" -> "far_cry_6"."""
    return _WHITESPACE.sub("_", value.lower()) or "unnamed"


def name_variations(name: str) -> List[str]:
    """
    Ordered, de-duplicated lookup variants of a title.

    Exact name, then alphanumeric-only, then with edition suffixes stripped.
    """
    candidates = [
        name.strip(),
        _WHITESPACE.sub(" ", _NON_ALNUM.sub("", name)).strip(),
        _WHITESPACE.sub(" ", _EDITION_WORDS.sub("", name)).strip(" -:"),
    ]
    variations = []
    for variant in candidates:
        if variant and variant not in variations:
            variations.append(variant)
    return variations
