"""
Tests for the deduplicator and the name helpers it relies on
"""

import itertools

import pytest

from game_atlas.constants import Launcher
from game_atlas.dedup import dedup_key, deduplicate
from game_atlas.utils import clean_game_name, folder_id, name_variations, normalize_for_dedup

from conftest import make_candidate


class TestNormalization:
    @pytest.mark.parametrize("a,b", [
        ("Portal 2", "portal 2"),
        ("Portal 2", "Portal  2"),
        ("Cyberpunk 2077™", "Cyberpunk 2077"),
        ("DOOM Eternal®", "doom eternal"),
        ("Portal 2", "Portal 2 v1.0"),
        ("Hades", "Hades 1.0.3"),
    ])
    def test_same_key(self, a, b):
        assert normalize_for_dedup(a) == normalize_for_dedup(b)

    @pytest.mark.parametrize("a,b", [
        ("Portal 2", "Portal"),
        ("Half-Life 2", "Half-Life"),
        ("Dark Souls III", "Dark Souls II"),
    ])
    def test_different_key(self, a, b):
        assert normalize_for_dedup(a) != normalize_for_dedup(b)

    def test_version_only_name_falls_back_to_id(self):
        candidate = make_candidate("steam_1", "v1.0")
        assert dedup_key(candidate) == "id:steam_1"


class TestDeduplicate:
    def test_one_entry_per_title(self):
        candidates = [
            make_candidate("steam_620", "Portal 2"),
            make_candidate("epic_abc", "Portal 2", Launcher.EPIC),
            make_candidate("deep_portal_2", "portal 2", Launcher.MANUAL, executable_path=r"D:\Games\Portal 2\portal2.exe"),
            make_candidate("steam_400", "Portal"),
        ]
        result = deduplicate(candidates)
        assert sorted(c.id for c in result) == ["steam_400", "steam_620"]

    def test_launcher_priority_wins(self):
        candidates = [
            make_candidate("gog_1", "Witcher 3", Launcher.GOG),
            make_candidate("epic_1", "Witcher 3", Launcher.EPIC),
            make_candidate("custom_1", "Witcher 3", Launcher.DESKTOP),
        ]
        assert deduplicate(candidates)[0].id == "epic_1"

    def test_executable_path_breaks_launcher_tie(self):
        candidates = [
            make_candidate("custom_a", "Celeste", Launcher.DESKTOP),
            make_candidate("custom_b", "Celeste", Launcher.DESKTOP, executable_path=r"D:\Celeste\Celeste.exe"),
        ]
        assert deduplicate(candidates)[0].id == "custom_b"

    def test_shorter_path_breaks_tie(self):
        candidates = [
            make_candidate("custom_a", "Celeste", Launcher.DESKTOP, executable_path=r"D:\Games\Celeste\bin\Celeste.exe"),
            make_candidate("custom_b", "Celeste", Launcher.DESKTOP, executable_path=r"D:\Celeste\Celeste.exe"),
        ]
        assert deduplicate(candidates)[0].id == "custom_b"

    def test_id_is_the_final_tie_break(self):
        candidates = [
            make_candidate("custom_b", "Celeste", Launcher.DESKTOP),
            make_candidate("custom_a", "Celeste", Launcher.DESKTOP),
        ]
        assert deduplicate(candidates)[0].id == "custom_a"

    def test_result_independent_of_input_order(self):
        candidates = [
            make_candidate("steam_620", "Portal 2"),
            make_candidate("epic_p2", "Portal 2", Launcher.EPIC),
            make_candidate("xbox_Valve.Portal2", "portal 2", Launcher.XBOX),
            make_candidate("gog_1", "Hades", Launcher.GOG),
            make_candidate("epic_h", "Hades", Launcher.EPIC),
            make_candidate("custom_c", "Celeste", Launcher.DESKTOP, executable_path=r"C:\C\Celeste.exe"),
        ]
        expected = deduplicate(candidates)
        for permutation in itertools.permutations(candidates):
            assert deduplicate(permutation) == expected

    def test_keys_are_unique_in_output(self):
        candidates = [make_candidate(f"steam_{i}", name) for i, name in enumerate(
            ["Hades", "HADES", "Hades™", "Hades II", "Celeste", "celeste"]
        )]
        result = deduplicate(candidates)
        keys = [dedup_key(c) for c in result]
        assert len(keys) == len(set(keys)) == 3

    def test_empty_input(self):
        assert deduplicate([]) == []


class TestNameHelpers:
    @pytest.mark.parametrize("raw,expected", [
        ("Microsoft.HaloInfinite", "Halo Infinite"),
        ("RE4.exe", "Resident Evil 4"),
        ("AssassinsCreedValhalla", "Assassin's Creed Valhalla"),
        ("hollow_knight", "hollow knight"),
        ("StardewValley.exe", "Stardew Valley"),
        ("", "Unknown Game"),
    ])
    def test_clean_game_name(self, raw, expected):
        assert clean_game_name(raw) == expected

    def test_folder_id(self):
        assert folder_id("Far Cry 6") == "far_cry_6"
        assert folder_id("Assassin's Creed  Valhalla") == "assassin's_creed_valhalla"
        assert folder_id("Hades") == "hades"

    def test_name_variations_are_ordered_and_unique(self):
        assert name_variations("Portal 2") == ["Portal 2"]
        assert name_variations("DOOM: Eternal Deluxe Edition") == [
            "DOOM: Eternal Deluxe Edition",
            "DOOM Eternal Deluxe Edition",
            "DOOM: Eternal Deluxe",
        ]
