"""
Name/Path Classifier
Decides whether an executable found on disk is a real game or application
rather than an installer, redistributable or system tool.

There is no reliable positive signal for "this is a game", so candidates are
selected by exclusion: the first matching rule wins, in this order:

 1. system path          8. whitelist (accepts)
 2. framework path       9. trusted launcher folder (relaxes 11 and 12)
 3. utility folder      10. minimum length
 4. name blacklist      11. alphabetic ratio
 5. opaque identifier   12. digit / special-character density
 6. generic name        13. accept
 7. known tool
"""

import re
from functools import lru_cache
from typing import Iterable, Sequence, Tuple

from .config import ScanTuning
from .exclusion_rules import (
    ExclusionRule,
    FIRST_PARTY_PUBLISHER_MARKERS,
    GENERIC_STEMS,
    GUID_SEGMENT,
    NAME_BLACKLIST,
    OPAQUE_NAME_RULES,
    OPAQUE_SEGMENT,
    SYSTEM_PATH_FRAGMENTS,
    TOOL_KEYWORDS,
    TRUSTED_CONTENT_FRAGMENTS,
    UTILITY_FOLDER_RULES,
    WHITELIST_EXACT,
    WHITELIST_KEYWORDS,
)
from .models import Verdict
from .platform_utils import get_system_root

_EXECUTABLE_SUFFIXES = (".exe", ".lnk", ".bat")
_SEPARATORS = frozenset(" -_.")
_MULTI_SLASH = re.compile(r"/{2,}")


@lru_cache(maxsize=4096)
def normalize_directory(path: str) -> str:
    """Lower-case, forward slashes, wrapped in "/" for segment matching."""
    normalized = path.strip().lower().replace("\\", "/")
    return _MULTI_SLASH.sub("/", f"/{normalized}/")


def strip_executable_suffix(file_name: str) -> str:
    lowered = file_name.lower()
    for suffix in _EXECUTABLE_SUFFIXES:
        if lowered.endswith(suffix):
            return file_name[: -len(suffix)]
    return file_name


def compile_exclusions(patterns: Iterable[str]) -> Tuple[ExclusionRule, ...]:
    """Compile user-supplied name patterns; invalid regexes match literally."""
    rules = []
    for pattern in patterns:
        try:
            compiled = re.compile(pattern, re.IGNORECASE)
        except re.error:
            compiled = re.compile(re.escape(pattern), re.IGNORECASE)
        rules.append(ExclusionRule(compiled, f"user exclusion '{pattern}'"))
    return tuple(rules)


def _system_fragments() -> Tuple[str, ...]:
    system_root = normalize_directory(get_system_root())
    return SYSTEM_PATH_FRAGMENTS + (system_root,)


def is_system_path(directory: str) -> bool:
    """True when the directory lies in an OS-owned location."""
    normalized = normalize_directory(directory)
    return any(fragment in normalized for fragment in _system_fragments())


def is_trusted_content_path(directory: str) -> bool:
    normalized = normalize_directory(directory)
    return any(fragment in normalized for fragment in TRUSTED_CONTENT_FRAGMENTS)


def _first_match(rules: Sequence[ExclusionRule], text: str):
    for rule in rules:
        if rule.pattern.search(text):
            return rule
    return None


def _is_whitelisted(stem: str) -> bool:
    return stem in WHITELIST_EXACT or any(keyword in stem for keyword in WHITELIST_KEYWORDS)


def classify(
    file_name: str,
    containing_directory: str,
    extra_rules: Sequence[ExclusionRule] = (),
) -> Verdict:
    """
    Classify an executable by file name and containing directory.

    Args:
        file_name: Executable file name, with or without its extension
        containing_directory: Directory holding the file (any slash style)
        extra_rules: Additional name rules, checked with the blacklist

    Returns:
        Verdict with the deciding rule and a human-readable reason
    """
    directory = normalize_directory(containing_directory)

    for fragment in _system_fragments():
        if fragment in directory:
            return Verdict(False, "system_path", f"inside system location '{fragment.strip('/')}'")

    if GUID_SEGMENT.search(directory):
        return Verdict(False, "framework_path", "GUID-named folder")
    if OPAQUE_SEGMENT.search(directory) and any(
        marker in directory for marker in FIRST_PARTY_PUBLISHER_MARKERS
    ):
        return Verdict(False, "framework_path", "first-party package folder")

    rule = _first_match(UTILITY_FOLDER_RULES, directory)
    if rule:
        return Verdict(False, "utility_folder", rule.reason)

    stem = strip_executable_suffix(file_name).strip().lower()

    rule = _first_match(NAME_BLACKLIST, stem) or _first_match(extra_rules, stem)
    if rule:
        return Verdict(False, "name_blacklist", rule.reason)

    rule = _first_match(OPAQUE_NAME_RULES, stem)
    if rule:
        return Verdict(False, "opaque_name", rule.reason)

    if stem in GENERIC_STEMS:
        return Verdict(False, "generic_name", f"'{stem}' is too generic")

    rule = _first_match(TOOL_KEYWORDS, stem)
    if rule:
        return Verdict(False, "known_tool", rule.reason)

    if _is_whitelisted(stem):
        return Verdict(True, "whitelist", "known application")

    trusted = any(fragment in directory for fragment in TRUSTED_CONTENT_FRAGMENTS)

    if len(stem) < ScanTuning.MIN_NAME_LENGTH:
        return Verdict(False, "too_short", f"shorter than {ScanTuning.MIN_NAME_LENGTH} characters")

    if trusted:
        return Verdict(True, "trusted_folder", "launcher-managed game folder")

    alpha = sum(1 for c in stem if c.isalpha())
    if alpha / len(stem) < ScanTuning.MIN_ALPHA_RATIO:
        return Verdict(False, "alpha_ratio", f"only {alpha} of {len(stem)} characters are letters")

    digits = sum(1 for c in stem if c.isdigit())
    special = sum(1 for c in stem if not c.isalnum() and c not in _SEPARATORS)
    if digits > ScanTuning.MAX_DIGITS or special > ScanTuning.MAX_SPECIAL_CHARS:
        return Verdict(False, "noise_density", f"{digits} digits, {special} special characters")

    return Verdict(True, "accepted", "")


def is_valid_candidate(
    file_name: str,
    containing_directory: str,
    extra_rules: Sequence[ExclusionRule] = (),
) -> bool:
    return classify(file_name, containing_directory, extra_rules).accepted
