from .version import __version__
from .logger import setup_logger
from .config import config_manager
from .classifier import classify, is_valid_candidate
from .catalog import merge
from .dedup import deduplicate
from .database import CatalogStore
from .enrichment import EnrichmentCoordinator
from .models import CandidateEntry, CatalogRecord
from .pipeline import ScanSession
from .scanner import deep_scan, scan_folder

__all__ = [
    "__version__",
    "setup_logger",
    "config_manager",
    "classify",
    "is_valid_candidate",
    "merge",
    "deduplicate",
    "CatalogStore",
    "EnrichmentCoordinator",
    "CandidateEntry",
    "CatalogRecord",
    "ScanSession",
    "deep_scan",
    "scan_folder",
]
