"""
Tests for the JSON catalog store
"""

import asyncio
import os
from datetime import datetime, timezone

import msgspec
import pytest

from game_atlas.catalog import merge
from game_atlas.constants import ItemType, Launcher, StatsProvenance
from game_atlas.database import CatalogStore, migrate_entry
from game_atlas.exceptions import CatalogStoreError, RecordNotFoundError
from game_atlas.models import Achievement, Achievements, StatsResult

from conftest import make_candidate

T0 = datetime(2025, 3, 1, 20, 0, tzinfo=timezone.utc)


async def seed(store, *candidates):
    await store.update(lambda records: merge(candidates, records, T0))


class TestLoadSave:
    @pytest.mark.asyncio
    async def test_missing_file_is_empty_catalog(self, store):
        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_empty_file_is_empty_catalog(self, store):
        store.path.write_text("  \n")
        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_round_trip_uses_camel_case(self, store):
        await seed(store, make_candidate("steam_620", "Portal 2", steam_app_id="620", install_path="/s/Portal 2"))

        raw = msgspec.json.decode(store.path.read_bytes())
        assert raw[0]["id"] == "steam_620"
        assert raw[0]["steamAppId"] == "620"
        assert raw[0]["isFavorite"] is False
        assert raw[0]["itemType"] == "game"
        assert raw[0]["playTime"] == {"totalMinutes": 0, "sessions": []}

        [record] = await store.load()
        assert record.install_path == "/s/Portal 2"
        assert record.added_at == T0

    @pytest.mark.asyncio
    async def test_save_leaves_no_temp_file(self, store):
        await seed(store, make_candidate("steam_620", "Portal 2"))
        assert sorted(p.name for p in store.path.parent.iterdir()) == ["games.json"]

    @pytest.mark.asyncio
    async def test_failed_save_removes_temp_file(self, store, monkeypatch):
        await seed(store, make_candidate("steam_620", "Portal 2"))
        before = store.path.read_bytes()

        def refuse(src, dst):
            raise PermissionError("catalog is locked")

        monkeypatch.setattr(os, "replace", refuse)
        with pytest.raises(CatalogStoreError):
            await store.toggle_favorite("steam_620")

        assert sorted(p.name for p in store.path.parent.iterdir()) == ["games.json"]
        assert store.path.read_bytes() == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [b"{not json", b'{"id": "x"}', b'[{"id": 5}]'])
    async def test_corrupt_catalog_raises(self, store, content):
        store.path.write_bytes(content)
        with pytest.raises(CatalogStoreError):
            await store.load()

    @pytest.mark.asyncio
    async def test_corrupt_catalog_is_not_overwritten(self, store):
        store.path.write_bytes(b"{not json")
        with pytest.raises(CatalogStoreError):
            await store.toggle_favorite("steam_620")
        assert store.path.read_bytes() == b"{not json"

    @pytest.mark.asyncio
    async def test_get_unknown_record(self, store):
        await seed(store, make_candidate("steam_620", "Portal 2"))
        with pytest.raises(RecordNotFoundError):
            await store.get("steam_1")

    @pytest.mark.asyncio
    async def test_concurrent_writers_do_not_lose_updates(self, store):
        await seed(store, *[make_candidate(f"steam_{i}", f"Game {i}") for i in range(5)])
        await asyncio.gather(*(store.toggle_favorite(f"steam_{i}") for i in range(5)))
        assert all(r.is_favorite for r in await store.load())


class TestMigration:
    def test_missing_item_type_filled_from_launcher(self):
        entry = {"id": "steam_1", "name": "X", "launcher": "steam"}
        assert migrate_entry(entry)
        assert entry["itemType"] == "game"

        entry = {"id": "custom_1", "name": "X", "launcher": "desktop"}
        migrate_entry(entry)
        assert entry["itemType"] == "app"

    def test_unknown_launcher_becomes_app(self):
        entry = {"id": "x", "name": "X", "launcher": "itch"}
        migrate_entry(entry)
        assert entry["itemType"] == "app"

    def test_stats_source_from_tracked_playtime(self):
        entry = {
            "id": "steam_1",
            "name": "X",
            "launcher": "steam",
            "itemType": "game",
            "playTime": {"totalMinutes": 42, "sessions": []},
            "lastPlayed": "2024-05-01T10:00:00+00:00",
        }
        assert migrate_entry(entry)
        assert entry["statsSource"] == {
            "playtimeSource": "atlas",
            "lastPlayedSource": "atlas",
            "achievementsSource": "unknown",
        }

    def test_stats_source_unknown_without_tracking(self):
        entry = {"id": "steam_1", "name": "X", "launcher": "steam", "itemType": "game"}
        migrate_entry(entry)
        assert entry["statsSource"]["playtimeSource"] == "unknown"
        assert entry["statsSource"]["lastPlayedSource"] == "unknown"

    def test_current_entry_untouched(self):
        entry = {
            "id": "steam_1",
            "name": "X",
            "launcher": "steam",
            "itemType": "app",
            "statsSource": {"playtimeSource": "launcher"},
        }
        assert not migrate_entry(entry)
        assert entry["itemType"] == "app"

    @pytest.mark.asyncio
    async def test_old_catalog_loads(self, store):
        store.path.write_bytes(msgspec.json.encode([
            {"id": "steam_620", "name": "Portal 2", "launcher": "steam", "isFavorite": True},
        ]))
        [record] = await store.load()
        assert record.item_type == ItemType.GAME
        assert record.is_favorite is True
        assert record.stats_source.playtime_source == StatsProvenance.UNKNOWN


class TestUserEdits:
    @pytest.fixture
    async def seeded(self, store):
        await seed(
            store,
            make_candidate("steam_620", "Portal 2"),
            make_candidate("epic_h", "Hades", Launcher.EPIC),
        )
        return store

    @pytest.mark.asyncio
    async def test_toggle_favorite(self, seeded):
        assert await seeded.toggle_favorite("steam_620") is True
        assert (await seeded.get("steam_620")).is_favorite is True
        assert await seeded.toggle_favorite("steam_620") is False

    @pytest.mark.asyncio
    async def test_unknown_record_raises(self, seeded):
        with pytest.raises(RecordNotFoundError):
            await seeded.toggle_favorite("nope")

    @pytest.mark.asyncio
    async def test_artwork_and_item_type(self, seeded):
        await seeded.set_cover_image("epic_h", "file:///covers/hades.png")
        await seeded.set_background_image("epic_h", "file:///covers/hades-bg.png")
        await seeded.set_item_type("epic_h", ItemType.APP)

        record = await seeded.get("epic_h")
        assert record.cover_image == "file:///covers/hades.png"
        assert record.background_image == "file:///covers/hades-bg.png"
        assert record.item_type == ItemType.APP

    @pytest.mark.asyncio
    async def test_set_categories_deduplicates(self, seeded):
        record = await seeded.set_categories("steam_620", ["Co-op", " Puzzle ", "Co-op", ""])
        assert record.categories == ["Co-op", "Puzzle"]

    @pytest.mark.asyncio
    async def test_set_launcher_survives_rescan(self, seeded):
        await seeded.set_launcher("epic_h", Launcher.GOG)
        await seed(seeded, make_candidate("epic_h", "Hades", Launcher.EPIC))

        record = await seeded.get("epic_h")
        assert record.launcher == Launcher.GOG
        assert record.manual_launcher_override is True

    @pytest.mark.asyncio
    async def test_rename_and_remove_category(self, seeded):
        await seeded.set_categories("epic_h", ["Roguelike", "Steam"])

        assert await seeded.rename_category("Steam", "Valve") == 2
        assert (await seeded.get("steam_620")).categories == ["Valve"]
        assert (await seeded.get("epic_h")).categories == ["Roguelike", "Valve"]

        assert await seeded.remove_category("Valve") == 2
        assert (await seeded.get("epic_h")).categories == ["Roguelike"]
        assert await seeded.remove_category("Valve") == 0

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, seeded):
        assert await seeded.delete("steam_620") is True
        assert await seeded.delete("steam_620") is False
        assert [r.id for r in await seeded.load()] == ["epic_h"]

        await seeded.clear()
        assert await seeded.load() == []

    @pytest.mark.asyncio
    async def test_find_by_launcher(self, seeded):
        assert [r.id for r in await seeded.find_by_launcher(Launcher.EPIC)] == ["epic_h"]


class TestStats:
    @pytest.fixture
    async def seeded(self, store):
        await seed(store, make_candidate("steam_620", "Portal 2"), make_candidate("gog_1", "Celeste", Launcher.GOG))
        return store

    @pytest.mark.asyncio
    async def test_play_session_accumulates(self, seeded):
        await seeded.record_play_session("gog_1", 30, ended_at=T0)
        record = await seeded.record_play_session("gog_1", 15)

        assert record.play_time.total_minutes == 45
        assert [s.duration for s in record.play_time.sessions] == [30, 15]
        assert record.last_played > T0
        assert record.stats_source.playtime_source == StatsProvenance.ATLAS
        assert record.stats_source.last_played_source == StatsProvenance.ATLAS

    @pytest.mark.asyncio
    async def test_negative_session_rejected(self, seeded):
        with pytest.raises(ValueError):
            await seeded.record_play_session("gog_1", -1)

    @pytest.mark.asyncio
    async def test_launcher_total_not_double_counted(self, seeded):
        await seeded.apply_stats("steam_620", StatsResult(playtime_minutes=600))
        record = await seeded.record_play_session("steam_620", 20, ended_at=T0)

        assert record.play_time.total_minutes == 600
        assert len(record.play_time.sessions) == 1
        assert record.stats_source.playtime_source == StatsProvenance.LAUNCHER
        assert record.stats_source.last_played_source == StatsProvenance.ATLAS

    @pytest.mark.asyncio
    async def test_apply_stats_labels_provenance(self, seeded):
        achievements = Achievements(
            unlocked=1,
            total=2,
            items=[Achievement(name="Wake Up", unlocked=True), Achievement(name="Lab Rat")],
        )
        record = await seeded.apply_stats(
            "steam_620", StatsResult(playtime_minutes=120, last_played=T0, achievements=achievements),
        )

        assert record.play_time.total_minutes == 120
        assert record.last_played == T0
        assert record.achievements.unlocked == 1
        assert record.achievements.last_updated is not None
        assert record.stats_source.playtime_source == StatsProvenance.LAUNCHER
        assert record.stats_source.last_played_source == StatsProvenance.LAUNCHER
        assert record.stats_source.achievements_source == StatsProvenance.LAUNCHER

        raw = msgspec.json.decode(seeded.path.read_bytes())
        assert raw[0]["achievements"]["list"][0]["name"] == "Wake Up"

    @pytest.mark.asyncio
    async def test_empty_stats_change_nothing(self, seeded):
        before = await seeded.get("steam_620")
        assert await seeded.apply_stats("steam_620", StatsResult()) == before

    @pytest.mark.asyncio
    async def test_update_achievements(self, seeded):
        record = await seeded.update_achievements(
            "gog_1", Achievements(unlocked=3, total=10), source=StatsProvenance.ATLAS
        )
        assert record.achievements.total == 10
        assert record.stats_source.achievements_source == StatsProvenance.ATLAS
        assert record.stats_source.playtime_source == StatsProvenance.UNKNOWN


class TestBackups:
    @pytest.mark.asyncio
    async def test_no_catalog_no_backup(self, store):
        assert await store.create_backup() is None
        assert store.list_backups() == []

    @pytest.mark.asyncio
    async def test_backups_pruned_to_limit(self, tmp_path):
        store = CatalogStore(tmp_path / "games.json", max_backups=3)
        await seed(store, make_candidate("steam_620", "Portal 2"))

        created = [await store.create_backup() for _ in range(5)]
        backups = store.list_backups()

        assert len(backups) == 3
        assert backups == sorted(created, key=lambda p: p.name, reverse=True)[:3]
        assert all(p.parent == tmp_path / "backups" for p in backups)

    @pytest.mark.asyncio
    async def test_restore_backup(self, store):
        await seed(store, make_candidate("steam_620", "Portal 2"))
        backup = await store.create_backup()
        await store.clear()

        restored = await store.restore_backup(backup)

        assert [r.id for r in restored] == ["steam_620"]
        assert [r.id for r in await store.load()] == ["steam_620"]
        # the cleared catalog was backed up before being replaced
        assert len(store.list_backups()) == 2

    @pytest.mark.asyncio
    async def test_corrupt_backup_refused(self, store, tmp_path):
        await seed(store, make_candidate("steam_620", "Portal 2"))
        bad = tmp_path / "bad.json"
        bad.write_bytes(b"[{")

        with pytest.raises(CatalogStoreError):
            await store.restore_backup(bad)
        assert [r.id for r in await store.load()] == ["steam_620"]
