"""
Catalog Store for Game Atlas
JSON-file persistence for the catalog, with a single-writer lock.

- Saves are atomic: the catalog is written to a temporary file next to the
  target and moved into place with os.replace
- Every read-modify-write (scan merge, playtime, user edits) runs inside
  transaction(), which holds the store's asyncio.Lock
- Older catalogs are migrated on load (itemType, statsSource)
- Rotating backups, newest five kept by default
"""

import asyncio
import os
import shutil
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import aiofiles
import msgspec

from .config import ScanTuning
from .constants import (
    ItemType,
    Launcher,
    StatsProvenance,
    default_item_type,
)
from .exceptions import CatalogStoreError, RecordNotFoundError
from .logger import setup_logger
from .models import (
    Achievements,
    CatalogRecord,
    PlaySession,
    PlayTime,
    StatsResult,
    StatsSource,
    encode_json,
    format_json,
    utc_now,
)
from .platform_utils import APP_DATA_DIR

logger = setup_logger()

CATALOG_FILE_NAME = "games.json"
BACKUP_PREFIX = "games-backup-"


def default_catalog_path() -> Path:
    return APP_DATA_DIR / CATALOG_FILE_NAME


def migrate_entry(entry: Dict[str, Any]) -> bool:
    """
    Bring one raw catalog entry up to the current shape, in place.

    Returns True when anything was changed.
    """
    changed = False
    launcher = entry.get("launcher")

    if not entry.get("itemType"):
        try:
            entry["itemType"] = default_item_type(Launcher(launcher)).value
        except ValueError:
            entry["itemType"] = ItemType.APP.value
        changed = True

    if not isinstance(entry.get("statsSource"), dict):
        play_time = entry.get("playTime") or {}
        tracked = bool(play_time.get("totalMinutes")) if isinstance(play_time, dict) else False
        source = StatsProvenance.ATLAS.value if tracked else StatsProvenance.UNKNOWN.value
        entry["statsSource"] = {
            "playtimeSource": source,
            "lastPlayedSource": source if entry.get("lastPlayed") else StatsProvenance.UNKNOWN.value,
            "achievementsSource": StatsProvenance.UNKNOWN.value,
        }
        changed = True

    return changed


class CatalogTransaction:
    """Mutable view of the catalog inside CatalogStore.transaction()."""

    def __init__(self, records: List[CatalogRecord]):
        self.records = records
        self.dirty = False

    def index_of(self, record_id: str) -> int:
        for i, record in enumerate(self.records):
            if record.id == record_id:
                return i
        raise RecordNotFoundError(record_id)

    def get(self, record_id: str) -> CatalogRecord:
        return self.records[self.index_of(record_id)]

    def replace(self, record_id: str, **changes) -> CatalogRecord:
        index = self.index_of(record_id)
        updated = msgspec.structs.replace(self.records[index], **changes)
        self.records[index] = updated
        self.dirty = True
        return updated

    def set_records(self, records: List[CatalogRecord]):
        self.records = list(records)
        self.dirty = True


class CatalogStore:
    """
    The persisted catalog.

    Args:
        path: Catalog file (defaults to games.json in the app data dir)
        backup_dir: Where backups go (defaults to a "backups" dir next to it)
        max_backups: Number of backups kept by create_backup()
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        backup_dir: Optional[Path] = None,
        max_backups: int = ScanTuning.MAX_BACKUPS,
    ):
        self.path = Path(path) if path else default_catalog_path()
        self.backup_dir = Path(backup_dir) if backup_dir else self.path.parent / "backups"
        self.max_backups = max_backups
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # load / save
    # ------------------------------------------------------------------

    async def _read_records(self, path: Path) -> List[CatalogRecord]:
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise CatalogStoreError(f"Cannot read catalog {path}: {e}") from e

        if not data.strip():
            return []

        try:
            raw = msgspec.json.decode(data)
            if not isinstance(raw, list):
                raise CatalogStoreError(f"Catalog {path} is not a list of records")
            migrated = sum(1 for entry in raw if isinstance(entry, dict) and migrate_entry(entry))
            records = msgspec.convert(raw, List[CatalogRecord])
        except (msgspec.DecodeError, msgspec.ValidationError) as e:
            raise CatalogStoreError(f"Catalog {path} is corrupt: {e}") from e

        if migrated:
            logger.info(f"Migrated {migrated} catalog records to the current format")
        return records

    async def load(self) -> List[CatalogRecord]:
        """Every record in the catalog; an absent catalog is empty."""
        return await self._read_records(self.path)

    def _write_atomic(self, data: bytes):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            with open(temp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError:
            with suppress(OSError):
                temp_path.unlink(missing_ok=True)
            raise

    async def save(self, records: List[CatalogRecord]):
        """Replace the whole catalog. Raises CatalogStoreError on I/O failure."""
        data = format_json(encode_json(list(records)))
        try:
            await asyncio.to_thread(self._write_atomic, data)
        except OSError as e:
            logger.error(f"Failed to save catalog to {self.path}: {e}")
            raise CatalogStoreError(f"Cannot write catalog {self.path}: {e}") from e
        logger.debug(f"Saved {len(records)} records to {self.path}")

    @asynccontextmanager
    async def transaction(self):
        """
        Serialized read-modify-write.

        Usage:
            async with store.transaction() as txn:
                txn.set_records(merge(candidates, txn.records))

        The catalog is saved on exit when the transaction changed it.
        """
        async with self._lock:
            txn = CatalogTransaction(await self.load())
            yield txn
            if txn.dirty:
                await self.save(txn.records)

    async def update(self, mutate: Callable[[List[CatalogRecord]], List[CatalogRecord]]) -> List[CatalogRecord]:
        async with self.transaction() as txn:
            txn.set_records(mutate(txn.records))
            return txn.records

    async def get(self, record_id: str) -> CatalogRecord:
        for record in await self.load():
            if record.id == record_id:
                return record
        raise RecordNotFoundError(record_id)

    # ------------------------------------------------------------------
    # user edits
    # ------------------------------------------------------------------

    async def toggle_favorite(self, record_id: str) -> bool:
        async with self.transaction() as txn:
            record = txn.get(record_id)
            return txn.replace(record_id, is_favorite=not record.is_favorite).is_favorite

    async def set_cover_image(self, record_id: str, uri: Optional[str]) -> CatalogRecord:
        async with self.transaction() as txn:
            return txn.replace(record_id, cover_image=uri)

    async def set_background_image(self, record_id: str, uri: Optional[str]) -> CatalogRecord:
        async with self.transaction() as txn:
            return txn.replace(record_id, background_image=uri)

    async def set_item_type(self, record_id: str, item_type: ItemType) -> CatalogRecord:
        async with self.transaction() as txn:
            return txn.replace(record_id, item_type=ItemType(item_type))

    async def set_categories(self, record_id: str, categories: List[str]) -> CatalogRecord:
        unique = list(dict.fromkeys(c.strip() for c in categories if c.strip()))
        async with self.transaction() as txn:
            return txn.replace(record_id, categories=unique)

    async def set_launcher(self, record_id: str, launcher: Launcher) -> CatalogRecord:
        """Reassign the launcher; later scans keep the user's choice."""
        async with self.transaction() as txn:
            return txn.replace(record_id, launcher=Launcher(launcher), manual_launcher_override=True)

    async def rename_category(self, old_name: str, new_name: str) -> int:
        """Rename a category on every record. Returns the number of records changed."""
        changed = 0
        async with self.transaction() as txn:
            for record in list(txn.records):
                if record.categories and old_name in record.categories:
                    renamed = [new_name if c == old_name else c for c in record.categories]
                    txn.replace(record.id, categories=list(dict.fromkeys(renamed)))
                    changed += 1
        return changed

    async def remove_category(self, name: str) -> int:
        changed = 0
        async with self.transaction() as txn:
            for record in list(txn.records):
                if record.categories and name in record.categories:
                    txn.replace(record.id, categories=[c for c in record.categories if c != name])
                    changed += 1
        return changed

    async def delete(self, record_id: str) -> bool:
        async with self.transaction() as txn:
            try:
                index = txn.index_of(record_id)
            except RecordNotFoundError:
                return False
            records = list(txn.records)
            del records[index]
            txn.set_records(records)
            return True

    async def clear(self):
        async with self.transaction() as txn:
            txn.set_records([])
        logger.info("Catalog cleared")

    # ------------------------------------------------------------------
    # activity and stats
    # ------------------------------------------------------------------

    async def record_play_session(
        self, record_id: str, minutes: int, ended_at: Optional[datetime] = None
    ) -> CatalogRecord:
        """
        Add a locally observed play session.

        The session is always logged. The running total only grows when no
        launcher reports playtime for the record, so an authoritative total
        is never double counted.
        """
        if minutes < 0:
            raise ValueError("minutes must be >= 0")
        ended_at = ended_at or utc_now()

        async with self.transaction() as txn:
            record = txn.get(record_id)
            play_time = record.play_time or PlayTime()
            stats_source = record.stats_source or StatsSource()
            launcher_owned = stats_source.playtime_source == StatsProvenance.LAUNCHER

            sessions = play_time.sessions + [PlaySession(date=ended_at, duration=minutes)]
            total = play_time.total_minutes if launcher_owned else play_time.total_minutes + minutes
            return txn.replace(
                record_id,
                play_time=PlayTime(total_minutes=total, sessions=sessions),
                last_played=ended_at,
                stats_source=msgspec.structs.replace(
                    stats_source,
                    playtime_source=StatsProvenance.LAUNCHER if launcher_owned else StatsProvenance.ATLAS,
                    last_played_source=StatsProvenance.ATLAS,
                ),
            )

    async def update_achievements(
        self,
        record_id: str,
        achievements: Achievements,
        source: StatsProvenance = StatsProvenance.LAUNCHER,
    ) -> CatalogRecord:
        async with self.transaction() as txn:
            record = txn.get(record_id)
            stats_source = record.stats_source or StatsSource()
            stamped = msgspec.structs.replace(achievements, last_updated=achievements.last_updated or utc_now())
            return txn.replace(
                record_id,
                achievements=stamped,
                stats_source=msgspec.structs.replace(stats_source, achievements_source=source),
            )

    async def apply_stats(self, record_id: str, stats: StatsResult) -> CatalogRecord:
        """Store launcher-reported stats, labelled with launcher provenance."""
        async with self.transaction() as txn:
            record = txn.get(record_id)
            stats_source = record.stats_source or StatsSource()
            changes = {}

            if stats.playtime_minutes is not None:
                sessions = record.play_time.sessions if record.play_time else []
                changes["play_time"] = PlayTime(total_minutes=stats.playtime_minutes, sessions=sessions)
                stats_source = msgspec.structs.replace(stats_source, playtime_source=StatsProvenance.LAUNCHER)
            if stats.last_played is not None:
                changes["last_played"] = stats.last_played
                stats_source = msgspec.structs.replace(stats_source, last_played_source=StatsProvenance.LAUNCHER)
            if stats.achievements is not None:
                changes["achievements"] = msgspec.structs.replace(
                    stats.achievements, last_updated=stats.achievements.last_updated or utc_now()
                )
                stats_source = msgspec.structs.replace(stats_source, achievements_source=StatsProvenance.LAUNCHER)

            if not changes:
                return record
            return txn.replace(record_id, stats_source=stats_source, **changes)

    # ------------------------------------------------------------------
    # backups
    # ------------------------------------------------------------------

    def list_backups(self) -> List[Path]:
        """Backup files, newest first."""
        if not self.backup_dir.is_dir():
            return []
        backups = [p for p in self.backup_dir.glob(f"{BACKUP_PREFIX}*.json") if p.is_file()]
        return sorted(backups, key=lambda p: p.name, reverse=True)

    def _copy_to_backup(self) -> Optional[Path]:
        if not self.path.is_file():
            return None
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = utc_now().strftime("%Y%m%d-%H%M%S-%f")
        backup_path = self.backup_dir / f"{BACKUP_PREFIX}{stamp}.json"
        shutil.copy2(self.path, backup_path)

        for stale in self.list_backups()[self.max_backups:]:
            try:
                stale.unlink()
            except OSError as e:
                logger.warning(f"Could not remove old backup {stale}: {e}")
        return backup_path

    async def create_backup(self) -> Optional[Path]:
        """Copy the current catalog into the backup dir; None when there is no catalog."""
        async with self._lock:
            try:
                backup_path = await asyncio.to_thread(self._copy_to_backup)
            except OSError as e:
                raise CatalogStoreError(f"Cannot back up catalog: {e}") from e
        if backup_path:
            logger.info(f"Catalog backed up to {backup_path}")
        return backup_path

    async def restore_backup(self, backup_path: Path) -> List[CatalogRecord]:
        """
        Replace the catalog with a backup. The current catalog is backed up
        first, and a backup that does not decode is refused.
        """
        records = await self._read_records(Path(backup_path))
        async with self._lock:
            try:
                await asyncio.to_thread(self._copy_to_backup)
            except OSError as e:
                raise CatalogStoreError(f"Cannot back up catalog before restore: {e}") from e
            await self.save(records)
        logger.info(f"Restored {len(records)} records from {backup_path}")
        return records

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    async def find_by_launcher(self, launcher: Launcher) -> List[CatalogRecord]:
        return [r for r in await self.load() if r.launcher == launcher]
