"""
Deduplicator
Collapses candidates that refer to the same title found through several
sources (cross-buys, subscription libraries, a folder scan of a launcher's
install directory).
"""

from typing import Dict, Iterable, List, Tuple

from .constants import LAUNCHER_RANK
from .logger import setup_logger
from .models import CandidateEntry
from .utils import normalize_for_dedup

logger = setup_logger()


def dedup_key(candidate: CandidateEntry) -> str:
    # A name made only of version tokens would otherwise group unrelated entries
    return normalize_for_dedup(candidate.name) or f"id:{candidate.id}"


def _preference(candidate: CandidateEntry) -> Tuple:
    """
    Sort key, lowest wins: launcher priority, then an entry with an executable
    path, then the shortest path, then the smallest id.
    """
    path = candidate.executable_path or ""
    return (
        LAUNCHER_RANK.get(candidate.launcher, len(LAUNCHER_RANK)),
        0 if path else 1,
        len(path),
        path.lower(),
        candidate.id,
    )


def deduplicate(candidates: Iterable[CandidateEntry]) -> List[CandidateEntry]:
    """
    Keep one candidate per normalized name.

    The result does not depend on input order: the winner of each group is
    chosen by a total ordering and groups are returned sorted by key.
    """
    groups: Dict[str, CandidateEntry] = {}
    total = 0
    for candidate in candidates:
        total += 1
        key = dedup_key(candidate)
        current = groups.get(key)
        if current is None or _preference(candidate) < _preference(current):
            groups[key] = candidate

    result = [groups[key] for key in sorted(groups)]
    if total != len(result):
        logger.info(f"Deduplicated {total} candidates into {len(result)}")
    return result
