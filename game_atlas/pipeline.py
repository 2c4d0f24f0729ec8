"""
Scan pipeline
Runs launcher adapters and the deep scan, deduplicates, enriches and merges
the result into the catalog.

A ScanSession owns all per-scan state; nothing here is process-global, so
tests and callers can run isolated sessions side by side.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

from .artwork import ArtworkLookup
from .catalog import merge
from .classifier import classify as classify_candidate
from .classifier import compile_exclusions
from .config import ScanTuning, config_manager
from .dedup import deduplicate
from .database import CatalogStore
from .enrichment import EnrichmentCoordinator
from .exceptions import ScanCancelledError, ScanInProgressError
from .launchers import LauncherAdapter, default_adapters
from .logger import setup_logger
from .models import (
    CandidateEntry,
    CatalogRecord,
    ScanReport,
    SourceResult,
    SourceStatus,
    Verdict,
    utc_now,
)
from .scanner import deep_scan, scan_folder

logger = setup_logger()

ProgressCallback = Callable[[int, int, str], Awaitable[None]]
DEEP_SCAN_SOURCE = "Deep scan"


class ScanSession:
    """
    Args:
        store: The persisted catalog
        adapters: Launcher adapters (defaults to one per supported launcher)
        lookup: Artwork lookup; enrichment is skipped when None
        deep_scan: Whether a full scan includes the deep filesystem scan
            (defaults to the config setting)
        deep_scan_roots: Drive roots for the deep scan (defaults to detected drives)
        adapter_timeout: Seconds each source may take before it is abandoned
        cancel_event: When set, the scan stops at the next phase boundary;
            cleared once a scan has stopped on it
        extra_exclusions: Additional classifier name patterns (defaults to config)
        progress_callback: Awaited with (current, total, message) between phases
    """

    def __init__(
        self,
        store: CatalogStore,
        adapters: Optional[Sequence[LauncherAdapter]] = None,
        lookup: Optional[ArtworkLookup] = None,
        deep_scan: Optional[bool] = None,
        deep_scan_roots: Optional[Sequence] = None,
        adapter_timeout: float = ScanTuning.ADAPTER_TIMEOUT_SECONDS,
        cancel_event: Optional[asyncio.Event] = None,
        extra_exclusions: Optional[Sequence[str]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.store = store
        self.adapters = list(adapters) if adapters is not None else default_adapters()
        self.lookup = lookup
        self.deep_scan_enabled = config_manager.is_deep_scan_enabled() if deep_scan is None else deep_scan
        self.deep_scan_roots = deep_scan_roots
        self.adapter_timeout = adapter_timeout
        self.cancel_event = cancel_event or asyncio.Event()
        if extra_exclusions is None:
            extra_exclusions = config_manager.get_extra_exclusions()
        self.extra_rules = compile_exclusions(extra_exclusions)
        self.progress_callback = progress_callback
        self.last_report: Optional[ScanReport] = None
        self._scan_lock = asyncio.Lock()

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    def cancel(self):
        self.cancel_event.set()

    def _check_cancelled(self, phase: str):
        if self.cancel_event.is_set():
            logger.info(f"Scan cancelled {phase}")
            raise ScanCancelledError(f"Scan cancelled {phase}")

    async def _progress(self, current: int, message: str):
        if self.progress_callback:
            await self.progress_callback(current, 100, message)

    async def _run_source(self, name: str, factory, report: ScanReport) -> List[CandidateEntry]:
        """Run one source in isolation; its failure or timeout only costs its own results."""
        if self.cancel_event.is_set():
            report.sources.append(SourceResult(source=name, status=SourceStatus.CANCELLED))
            return []

        try:
            candidates = await asyncio.wait_for(factory(), timeout=self.adapter_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{name} did not finish within {self.adapter_timeout:.0f}s, skipping")
            report.sources.append(
                SourceResult(source=name, status=SourceStatus.TIMEOUT, error="timed out")
            )
            return []
        except Exception as e:
            logger.error(f"Error scanning {name}: {e}", exc_info=True)
            report.sources.append(SourceResult(source=name, status=SourceStatus.FAILED, error=str(e)))
            return []

        report.sources.append(
            SourceResult(source=name, status=SourceStatus.OK, candidate_count=len(candidates))
        )
        return candidates

    def _deep_scan_factory(self):
        max_depth = config_manager.get_deep_scan_max_depth()
        return lambda: deep_scan(self.deep_scan_roots, max_depth, self.extra_rules)

    async def discover(self, report: ScanReport) -> List[CandidateEntry]:
        """Every source's candidates, concatenated in source order."""
        for adapter in self.adapters:
            adapter.extra_rules = self.extra_rules
        sources = [(adapter.display_name, adapter.scan) for adapter in self.adapters]
        if self.deep_scan_enabled:
            sources.append((DEEP_SCAN_SOURCE, self._deep_scan_factory()))

        results = await asyncio.gather(
            *[self._run_source(name, factory, report) for name, factory in sources]
        )
        candidates = [candidate for result in results for candidate in result]
        logger.info(f"Discovery: {len(candidates)} candidates, {report.summary()}")
        return candidates

    async def run_full_scan(self) -> List[CatalogRecord]:
        """
        Discover, deduplicate, enrich and merge into the catalog.

        Returns the updated catalog. Source failures are recorded in
        last_report; only a catalog store failure is raised.
        """
        if self._scan_lock.locked():
            raise ScanInProgressError("A scan is already running")

        async with self._scan_lock:
            report = ScanReport()
            self.last_report = report
            try:
                return await self._full_scan(report)
            except ScanCancelledError:
                # A cancel request applies to one scan only
                self.cancel_event.clear()
                raise

    async def _full_scan(self, report: ScanReport) -> List[CatalogRecord]:
        await self._progress(0, "Scanning launchers and game folders...")
        candidates = await self.discover(report)
        report.discovered = len(candidates)
        self._check_cancelled("after discovery")

        await self._progress(50, "Removing duplicates...")
        candidates = deduplicate(candidates)
        report.after_dedup = len(candidates)

        if self.lookup is not None:
            await self._progress(60, "Fetching artwork...")
            coordinator = EnrichmentCoordinator(self.lookup, cancel_event=self.cancel_event)
            candidates = await coordinator.enrich(candidates)
            report.enriched = coordinator.enriched_count
        self._check_cancelled("before saving")

        await self._progress(90, "Updating catalog...")
        async with self.store.transaction() as txn:
            before = {record.id: record for record in txn.records}
            txn.set_records(merge(candidates, txn.records))
            records = txn.records

        report.inserted = sum(1 for r in records if r.id not in before)
        report.updated = sum(1 for r in records if r.id in before and before[r.id] != r)
        report.finished_at = utc_now()

        await self._progress(100, f"Scan complete: {report.summary()}")
        logger.info(
            f"Scan complete: {report.summary()}, {report.inserted} new, "
            f"{report.updated} updated, {len(records)} in catalog"
        )
        return records

    async def run_folder_scan(self, root, max_depth: Optional[int] = None) -> List[CandidateEntry]:
        """Walk one folder and classify what is found; the caller decides whether to merge."""
        if max_depth is None:
            max_depth = config_manager.get_folder_scan_max_depth()
        return await scan_folder(root, 0, max_depth, self.extra_rules)

    async def add_candidates(self, candidates: List[CandidateEntry], enrich: bool = False) -> List[CatalogRecord]:
        """Merge caller-approved candidates (e.g. from run_folder_scan) into the catalog."""
        if enrich and self.lookup is not None:
            candidates = await EnrichmentCoordinator(self.lookup).enrich(candidates)
        async with self.store.transaction() as txn:
            txn.set_records(merge(deduplicate(candidates), txn.records))
            return txn.records

    def classify(self, file_name: str, directory: str) -> bool:
        return self.explain(file_name, directory).accepted

    def explain(self, file_name: str, directory: str) -> Verdict:
        """Classifier verdict with the deciding rule, for "why was this excluded"."""
        return classify_candidate(file_name, directory, self.extra_rules)
