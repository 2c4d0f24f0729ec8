"""
Catalog Reconciler
Merges freshly discovered candidates into the persisted catalog.

Discoverable fields (name, paths, launcher-native ids) follow the latest
scan. User-owned fields (favorite, categories, artwork and item type once
set, playtime, achievements, last played) are carried forward and only
filled in when absent. Records are never removed by a merge.
"""

import os
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import msgspec

from .constants import FILESYSTEM_LAUNCHERS, LAUNCHER_CATEGORY_MAP, default_item_type
from .logger import setup_logger
from .models import (
    Achievements,
    CandidateEntry,
    CatalogRecord,
    PlayTime,
    StatsSource,
    utc_now,
)

logger = setup_logger()


def _path_key(path: str) -> str:
    return os.path.normcase(os.path.normpath(path)).lower()


def new_record(candidate: CandidateEntry, now: datetime) -> CatalogRecord:
    """CatalogRecord for a never-seen candidate, with default user-owned state."""
    fields = msgspec.structs.asdict(candidate)
    fields["item_type"] = candidate.item_type or default_item_type(candidate.launcher)
    category = LAUNCHER_CATEGORY_MAP.get(candidate.launcher)
    return CatalogRecord(
        **fields,
        is_favorite=False,
        categories=[category] if category else [],
        play_time=PlayTime(),
        achievements=Achievements(),
        stats_source=StatsSource(),
        added_at=now,
    )


def _fresh(new_value, old_value):
    return new_value if new_value is not None else old_value


def refresh_record(existing: CatalogRecord, candidate: CandidateEntry, now: datetime) -> CatalogRecord:
    """Apply a re-discovery of an existing record."""
    launcher = existing.launcher if existing.manual_launcher_override else candidate.launcher
    return msgspec.structs.replace(
        existing,
        # discoverable: latest scan wins
        name=candidate.name or existing.name,
        launcher=launcher,
        executable_path=_fresh(candidate.executable_path, existing.executable_path),
        install_path=_fresh(candidate.install_path, existing.install_path),
        steam_app_id=_fresh(candidate.steam_app_id, existing.steam_app_id),
        epic_app_name=_fresh(candidate.epic_app_name, existing.epic_app_name),
        package_family_name=_fresh(candidate.package_family_name, existing.package_family_name),
        ea_id=_fresh(candidate.ea_id, existing.ea_id),
        uplay_id=_fresh(candidate.uplay_id, existing.uplay_id),
        # user-owned: existing wins, fresh value only fills a gap
        cover_image=existing.cover_image or candidate.cover_image,
        background_image=existing.background_image or candidate.background_image,
        item_type=existing.item_type or candidate.item_type or default_item_type(launcher),
        categories=existing.categories if existing.categories is not None else (
            [LAUNCHER_CATEGORY_MAP[launcher]] if launcher in LAUNCHER_CATEGORY_MAP else []
        ),
        play_time=existing.play_time or PlayTime(),
        achievements=existing.achievements or Achievements(),
        stats_source=existing.stats_source or StatsSource(),
        added_at=existing.added_at or now,
    )


def merge(
    candidates: Iterable[CandidateEntry],
    existing: Iterable[CatalogRecord],
    now: Optional[datetime] = None,
) -> List[CatalogRecord]:
    """
    Merge candidates into the existing catalog and return the new catalog.

    Existing records keep their position and new records are appended in
    candidate order. Running the merge again with the same candidates
    changes nothing.

    A filesystem-sourced candidate whose id is unknown but whose executable
    path matches an existing filesystem record is merged into that record,
    since folder-scan ids are random per scan.
    """
    now = now or utc_now()
    records = list(existing)
    positions: Dict[str, int] = {record.id: i for i, record in enumerate(records)}
    by_path: Dict[str, str] = {
        _path_key(record.executable_path): record.id
        for record in records
        if record.launcher in FILESYSTEM_LAUNCHERS and record.executable_path
    }

    inserted = updated = 0
    for candidate in candidates:
        target_id = candidate.id
        if (
            target_id not in positions
            and candidate.launcher in FILESYSTEM_LAUNCHERS
            and candidate.executable_path
        ):
            target_id = by_path.get(_path_key(candidate.executable_path), target_id)

        if target_id in positions:
            index = positions[target_id]
            refreshed = refresh_record(records[index], candidate, now)
            if refreshed != records[index]:
                updated += 1
            records[index] = refreshed
        else:
            record = new_record(candidate, now)
            positions[record.id] = len(records)
            records.append(record)
            inserted += 1
            if record.launcher in FILESYSTEM_LAUNCHERS and record.executable_path:
                by_path[_path_key(record.executable_path)] = record.id

    logger.info(f"Catalog merge: {inserted} new, {updated} updated, {len(records)} total")
    return records
