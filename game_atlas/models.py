"""
msgspec-based data models for discovery results and the persisted catalog.

This module provides:
- Custom datetime encoder/decoder hooks for msgspec
- The candidate / catalog record shapes shared by every pipeline stage
- Scan diagnostics (per-source outcome, classifier verdicts)
- Convenience functions for JSON encoding/decoding

Persisted JSON uses camelCase keys (executablePath, itemType, isFavorite, ...)
while Python code uses snake_case attribute names.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import List, Optional

import msgspec

from .constants import ItemType, Launcher, StatsProvenance


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Custom Encoder/Decoder Hooks
# =============================================================================

def datetime_enc_hook(obj):
    """
    Custom encoder hook for datetime objects.
    Converts datetime to ISO 8601 string format.
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise NotImplementedError(f"Cannot encode {type(obj)}")


def datetime_dec_hook(type, obj):
    """
    Custom decoder hook for datetime objects.
    Converts ISO 8601 string back to datetime.
    """
    if type is datetime:
        return datetime.fromisoformat(obj)
    raise NotImplementedError(f"Cannot decode {type}")


# =============================================================================
# Global Encoders/Decoders
# =============================================================================

json_encoder = msgspec.json.Encoder(enc_hook=datetime_enc_hook)
json_decoder = msgspec.json.Decoder(dec_hook=datetime_dec_hook)


def encode_json(obj) -> bytes:
    """
    Encode object to JSON bytes using msgspec.

    Args:
        obj: Any msgspec.Struct or serializable object

    Returns:
        JSON as bytes
    """
    return json_encoder.encode(obj)


def decode_json(data: bytes, type=None):
    """
    Decode JSON bytes to object using msgspec.

    Args:
        data: JSON as bytes
        type: Optional msgspec.Struct type for validation

    Returns:
        Decoded object (validated if type provided)
    """
    if type:
        decoder = msgspec.json.Decoder(type, dec_hook=datetime_dec_hook)
        return decoder.decode(data)
    return json_decoder.decode(data)


def format_json(data: bytes, indent: int = 2) -> bytes:
    """Format JSON with indentation for pretty-printing."""
    return msgspec.json.format(data, indent=indent)


# =============================================================================
# Discovery
# =============================================================================

class CandidateEntry(msgspec.Struct, rename="camel", kw_only=True):
    """
    A transient discovery result, produced by a launcher adapter or the
    filesystem walker and discarded after the catalog merge.

    Launcher-sourced ids are derived from the launcher's own identifier
    (steam_<appid>, epic_<catalog id>, ...). Folder-scan ids are random.
    """
    id: str
    name: str
    launcher: Launcher
    item_type: ItemType
    executable_path: Optional[str] = None
    install_path: Optional[str] = None

    # Launcher-native ids, needed for protocol launches and stats lookups
    steam_app_id: Optional[str] = None
    epic_app_name: Optional[str] = None
    package_family_name: Optional[str] = None
    ea_id: Optional[str] = None
    uplay_id: Optional[str] = None

    cover_image: Optional[str] = None
    background_image: Optional[str] = None


class PackageInfo(msgspec.Struct, kw_only=True):
    """One row of the OS application-package inventory (Xbox / Microsoft Store)."""
    name: str
    package_family_name: str
    install_location: Optional[str] = None


class ArtworkMatch(msgspec.Struct, frozen=True):
    """Result of a title lookup: the matched title and its artwork URIs."""
    title: str
    cover_uri: Optional[str] = None
    background_uri: Optional[str] = None


# =============================================================================
# Catalog
# =============================================================================

class PlaySession(msgspec.Struct, rename="camel"):
    date: datetime
    duration: int  # minutes


class PlayTime(msgspec.Struct, rename="camel"):
    total_minutes: int = 0
    sessions: List[PlaySession] = msgspec.field(default_factory=list)

    def __post_init__(self):
        if self.total_minutes < 0:
            raise ValueError(f"totalMinutes must be >= 0, got {self.total_minutes}")


class Achievement(msgspec.Struct, rename="camel", kw_only=True):
    name: str
    description: Optional[str] = None
    unlocked: bool = False
    unlock_time: Optional[datetime] = None


class Achievements(msgspec.Struct, rename="camel"):
    unlocked: int = 0
    total: int = 0
    items: List[Achievement] = msgspec.field(default_factory=list, name="list")
    last_updated: Optional[datetime] = None


class StatsSource(msgspec.Struct, rename="camel"):
    """Where each statistic came from. Never claims a source it did not use."""
    playtime_source: StatsProvenance = StatsProvenance.UNKNOWN
    last_played_source: StatsProvenance = StatsProvenance.UNKNOWN
    achievements_source: StatsProvenance = StatsProvenance.UNKNOWN


class CatalogRecord(CandidateEntry, rename="camel", kw_only=True):
    """
    A persisted catalog row: every candidate field plus the user-owned state.

    User-owned fields (is_favorite, categories, play_time, achievements,
    last_played and the artwork/item_type once set) are carried forward by
    the reconciler and only filled in when absent.
    """
    is_favorite: bool = False
    categories: Optional[List[str]] = None
    play_time: Optional[PlayTime] = None
    achievements: Optional[Achievements] = None
    last_played: Optional[datetime] = None
    stats_source: Optional[StatsSource] = None
    added_at: Optional[datetime] = None
    # Set when the user reassigns the launcher; rescans then keep their choice
    manual_launcher_override: bool = False


class StatsResult(msgspec.Struct, kw_only=True):
    """Authoritative stats returned by a launcher's stats provider."""
    playtime_minutes: Optional[int] = None
    last_played: Optional[datetime] = None
    achievements: Optional[Achievements] = None


# =============================================================================
# Scan diagnostics
# =============================================================================

class SourceStatus(StrEnum):
    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class SourceResult(msgspec.Struct, kw_only=True):
    source: str
    status: SourceStatus
    candidate_count: int = 0
    error: Optional[str] = None


class ScanReport(msgspec.Struct, kw_only=True):
    """Outcome of one full scan, for partial-success reporting."""
    started_at: datetime = msgspec.field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    sources: List[SourceResult] = msgspec.field(default_factory=list)
    discovered: int = 0
    after_dedup: int = 0
    enriched: int = 0
    inserted: int = 0
    updated: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for s in self.sources if s.status == SourceStatus.OK)

    def summary(self) -> str:
        return f"{self.succeeded} of {len(self.sources)} sources scanned successfully"


class Verdict(msgspec.Struct, frozen=True):
    """Classifier decision with the rule that produced it."""
    accepted: bool
    rule: str
    reason: str = ""
