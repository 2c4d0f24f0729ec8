"""
Metadata Enrichment Coordinator
Fills in missing artwork through an ArtworkLookup, in fixed-size batches.

A returned match is only accepted when its title is close enough to the
queried title (normalized Levenshtein similarity), so a similarly named but
different game never lends its artwork. Lookup failures leave the artwork
unset; nothing is guessed.
"""

import asyncio
import re
from typing import List, Optional

import msgspec
from rapidfuzz.distance import Levenshtein

from .artwork import ArtworkLookup
from .config import Concurrency, ScanTuning
from .constants import FILESYSTEM_LAUNCHERS, ItemType
from .exceptions import LookupFailedError, ScanCancelledError
from .logger import setup_logger
from .models import ArtworkMatch, CandidateEntry
from .utils import name_variations

logger = setup_logger()

_TRADEMARKS = re.compile(r"[™®©]")
_WHITESPACE = re.compile(r"\s+")


def _normalize_title(title: str) -> str:
    return _WHITESPACE.sub(" ", _TRADEMARKS.sub("", title)).strip().lower()


def title_similarity(queried: str, returned: str) -> float:
    """Normalized edit-distance similarity in [0, 1], case-insensitive."""
    return Levenshtein.normalized_similarity(_normalize_title(queried), _normalize_title(returned))


def needs_artwork(candidate: CandidateEntry) -> bool:
    """Games without a cover. Apps and filesystem finds have no box art."""
    if candidate.cover_image:
        return False
    if candidate.item_type == ItemType.APP or candidate.launcher in FILESYSTEM_LAUNCHERS:
        return False
    return True


class EnrichmentCoordinator:
    """
    Batches artwork lookups for the candidates that need them.

    Args:
        lookup: The title/artwork lookup capability
        batch_size: Concurrent lookups per batch
        similarity_threshold: Minimum title similarity to accept a match
        timeout: Seconds allowed for a single lookup attempt
        attempts: Attempts per name variation before moving on
        backoff: Base delay between attempts (multiplied by the attempt number)
        cancel_event: Checked between batches
    """

    def __init__(
        self,
        lookup: ArtworkLookup,
        batch_size: int = Concurrency.ENRICHMENT_BATCH,
        similarity_threshold: float = ScanTuning.SIMILARITY_THRESHOLD,
        timeout: float = ScanTuning.LOOKUP_TIMEOUT_SECONDS,
        attempts: int = ScanTuning.LOOKUP_ATTEMPTS,
        backoff: float = ScanTuning.LOOKUP_BACKOFF_SECONDS,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.lookup = lookup
        self.batch_size = batch_size
        self.similarity_threshold = similarity_threshold
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.backoff = backoff
        self.cancel_event = cancel_event
        self.enriched_count = 0

    async def _lookup_with_retry(self, variant: str) -> Optional[ArtworkMatch]:
        for attempt in range(1, self.attempts + 1):
            try:
                return await asyncio.wait_for(self.lookup.lookup(variant), self.timeout)
            except (LookupFailedError, asyncio.TimeoutError) as e:
                logger.debug(f"Lookup attempt {attempt}/{self.attempts} for '{variant}' failed: {e}")
                if attempt < self.attempts:
                    await asyncio.sleep(self.backoff * attempt)
        return None

    async def find_artwork(self, name: str) -> Optional[ArtworkMatch]:
        for variant in name_variations(name):
            match = await self._lookup_with_retry(variant)
            if match is None:
                continue
            score = title_similarity(variant, match.title)
            if score >= self.similarity_threshold:
                logger.debug(f"Matched '{variant}' to '{match.title}' ({score:.2f})")
                return match
            logger.debug(f"Rejected '{match.title}' for '{variant}' ({score:.2f})")
        return None

    async def enrich_one(self, candidate: CandidateEntry) -> CandidateEntry:
        match = await self.find_artwork(candidate.name)
        if match is None or not (match.cover_uri or match.background_uri):
            return candidate
        self.enriched_count += 1
        return msgspec.structs.replace(
            candidate,
            cover_image=candidate.cover_image or match.cover_uri,
            background_image=candidate.background_image or match.background_uri,
        )

    async def enrich(self, candidates: List[CandidateEntry]) -> List[CandidateEntry]:
        """
        Return candidates with artwork filled in where a match was found.

        Order is preserved. One candidate's failure never affects the others
        in its batch.
        """
        result = list(candidates)
        pending = [i for i, c in enumerate(result) if needs_artwork(c)]
        if not pending:
            return result

        logger.info(f"Looking up artwork for {len(pending)} of {len(result)} candidates")

        for start in range(0, len(pending), self.batch_size):
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise ScanCancelledError("Scan cancelled during artwork enrichment")

            batch = pending[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *[self.enrich_one(result[i]) for i in batch],
                return_exceptions=True,
            )
            for index, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning(f"Artwork lookup failed for {result[index].name}: {outcome}")
                    continue
                result[index] = outcome

        logger.info(f"Artwork found for {self.enriched_count} candidates")
        return result
