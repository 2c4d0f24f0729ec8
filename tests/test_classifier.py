"""
Tests for the name/path classifier
"""

import pytest

from game_atlas.classifier import (
    classify,
    compile_exclusions,
    is_system_path,
    is_valid_candidate,
    normalize_directory,
    strip_executable_suffix,
)

GAME_DIR = r"D:\Games\Hollow Knight"


class TestSystemPaths:
    """Anything under an OS-owned location is rejected regardless of name"""

    @pytest.mark.parametrize("directory", [
        r"C:\Windows",
        r"C:\Windows\System32",
        r"C:\Windows\SysWOW64\downlevel",
        r"C:\Windows\WinSxS\amd64_microsoft-windows-foo",
        r"C:\$Recycle.Bin\S-1-5-21",
        r"C:\Program Files\WindowsApps\SomePublisher.Game_1.0.0.0_x64",
        r"C:\ProgramData\Microsoft\Windows\Start Menu",
        r"C:\Users\me\AppData\Local\Temp\bundle",
        r"D:\System Volume Information",
        r"C:\Windows\System32\DriverStore\FileRepository",
    ])
    def test_system_locations_rejected(self, directory):
        verdict = classify("Elden Ring.exe", directory)
        assert not verdict.accepted
        assert verdict.rule == "system_path"

    def test_forward_slashes_and_case_are_normalized(self):
        assert is_system_path("c:/WINDOWS/system32")
        assert not is_system_path("D:/Games/Celeste")

    def test_system_rule_wins_over_whitelist(self):
        assert not is_valid_candidate("discord.exe", r"C:\Windows\System32")


class TestFrameworkPaths:
    def test_guid_folder_rejected(self):
        verdict = classify("Portal.exe", r"C:\Packages\{3F2504E0-4F89-11D3-9A0C-0305E82C3301}\bin")
        assert verdict.rule == "framework_path"

    def test_opaque_first_party_folder_rejected(self):
        verdict = classify("Solitaire.exe", r"D:\Apps\Microsoft\8wekyb3d8bbwe1a2b\payload")
        assert verdict.rule == "framework_path"

    def test_opaque_folder_from_other_publisher_allowed(self):
        assert is_valid_candidate("Solitaire.exe", r"D:\Apps\Indie\8wekyb3d8bbwe1a2b")


class TestUtilityFolders:
    @pytest.mark.parametrize("directory", [
        r"D:\Games\Witcher\_CommonRedist\vcredist",
        r"D:\Games\Witcher\Redist",
        r"D:\Games\Witcher\DirectX",
        r"D:\Games\Witcher\Support",
        r"D:\Games\Witcher\Tools",
        r"D:\Games\Witcher\EasyAntiCheat",
        r"D:\Games\Witcher\Installers",
    ])
    def test_non_content_folders_rejected(self, directory):
        verdict = classify("Witcher.exe", directory)
        assert not verdict.accepted
        assert verdict.rule == "utility_folder"

    @pytest.mark.parametrize("directory", [
        r"D:\Tools\Games\Witcher",
        r"E:\Support\Library\Celeste",
        r"D:\Drivers\Backup\Games\Hades",
        r"D:\Installers\Portable\Celeste",
    ])
    def test_generic_ancestor_folders_allowed(self, directory):
        verdict = classify("Witcher.exe", directory)
        assert verdict.accepted
        assert verdict.rule == "accepted"

    def test_redist_ancestor_still_rejected(self):
        verdict = classify("Witcher.exe", r"D:\Games\Witcher\_CommonRedist\vcredist\2019")
        assert verdict.rule == "utility_folder"


class TestNameBlacklist:
    @pytest.mark.parametrize("file_name", [
        "unins000.exe",
        "Uninstall.exe",
        "setup.exe",
        "vc_redist.x64.exe",
        "DXSETUP.exe",
        "UnityCrashHandler64.exe",
        "CrashReporter.exe",
        "GameUpdater.exe",
        "EpicWebHelper.exe",
        "EasyAntiCheat_Setup.exe",
        "BEService.exe",
        "SteamService.exe",
        "NvTelemetryContainer.exe",
        "GameConfig.exe",
        "UE4PrereqSetup_x64.exe",
        "EULA.exe",
    ])
    def test_blacklisted_names_rejected(self, file_name):
        verdict = classify(file_name, GAME_DIR)
        assert not verdict.accepted

    @pytest.mark.parametrize("file_name", [
        "SteamSetup.exe",
        "MSTeamsSetup.exe",
        "DiscordSetup.exe",
        "GameSetup_x64.exe",
    ])
    def test_trailing_setup_rejected_before_whitelist(self, file_name):
        verdict = classify(file_name, r"C:\Users\me\Downloads")
        assert not verdict.accepted
        assert verdict.rule == "name_blacklist"
        assert verdict.reason == "installer or uninstaller"

    def test_blacklist_reason_is_reported(self):
        verdict = classify("unins000.exe", GAME_DIR)
        assert verdict.rule == "name_blacklist"
        assert verdict.reason == "installer or uninstaller"

    def test_blacklist_wins_over_trusted_folder(self):
        directory = r"C:\Program Files (x86)\Steam\steamapps\common\Portal 2"
        assert not is_valid_candidate("CrashReporter.exe", directory)


class TestNameHeuristics:
    def test_guid_name_rejected(self):
        verdict = classify("3F2504E0-4F89-11D3-9A0C-0305E82C3301.exe", GAME_DIR)
        assert verdict.rule == "opaque_name"

    def test_hex_hash_name_rejected(self):
        assert classify("a3f9c2d18b.exe", GAME_DIR).rule == "opaque_name"

    @pytest.mark.parametrize("file_name", ["app.exe", "main.exe", "launcher.exe", "Game.exe"])
    def test_generic_names_rejected(self, file_name):
        assert classify(file_name, GAME_DIR).rule == "generic_name"

    @pytest.mark.parametrize("file_name", ["7zFM.exe", "python.exe", "notepad++.exe", "powershell.exe"])
    def test_known_tools_rejected(self, file_name):
        assert classify(file_name, GAME_DIR).rule == "known_tool"

    def test_short_name_rejected(self):
        assert classify("abc.exe", GAME_DIR).rule == "too_short"

    def test_low_alpha_ratio_rejected(self):
        assert classify("x1_2_3_4.exe", GAME_DIR).rule == "alpha_ratio"

    def test_digit_density_rejected(self):
        assert classify("supergamesquad202401.exe", GAME_DIR).rule == "noise_density"

    def test_special_character_density_rejected(self):
        assert classify("gamesquad!@#$.exe", GAME_DIR).rule == "noise_density"


class TestAcceptance:
    @pytest.mark.parametrize("file_name", [
        "HollowKnight.exe",
        "Celeste.exe",
        "Stardew Valley.exe",
        "witcher3.exe",
        "eldenring.exe",
    ])
    def test_ordinary_game_names_accepted(self, file_name):
        verdict = classify(file_name, GAME_DIR)
        assert verdict.accepted
        assert verdict.rule == "accepted"

    @pytest.mark.parametrize("file_name", ["Discord.exe", "Spotify.exe", "obs64.exe", "Code.exe"])
    def test_whitelisted_apps_accepted(self, file_name):
        verdict = classify(file_name, r"C:\Users\me\AppData\Local\Programs\App")
        assert verdict.accepted
        assert verdict.rule == "whitelist"

    def test_trusted_folder_relaxes_density_checks(self):
        directory = r"D:\SteamLibrary\steamapps\common\Wolfenstein"
        verdict = classify("NMS2016.exe", directory)
        assert verdict.accepted
        assert verdict.rule == "trusted_folder"

    def test_trusted_folder_does_not_relax_minimum_length(self):
        directory = r"D:\SteamLibrary\steamapps\common\Dishonored"
        assert classify("dh.exe", directory).rule == "too_short"

    def test_suffix_is_optional(self):
        assert classify("Celeste", GAME_DIR).accepted == classify("Celeste.exe", GAME_DIR).accepted


class TestExtraExclusions:
    def test_user_pattern_rejects(self):
        rules = compile_exclusions(["^celeste$"])
        verdict = classify("Celeste.exe", GAME_DIR, rules)
        assert not verdict.accepted
        assert verdict.rule == "name_blacklist"
        assert "celeste" in verdict.reason

    def test_invalid_pattern_matches_literally(self):
        rules = compile_exclusions(["foo[bar"])
        assert not is_valid_candidate("foo[bar.exe", GAME_DIR, rules)
        assert is_valid_candidate("foobar.exe", GAME_DIR, rules)


class TestHelpers:
    def test_normalize_directory_wraps_and_lowercases(self):
        assert normalize_directory(r"D:\Games\\Celeste") == "/d:/games/celeste/"

    @pytest.mark.parametrize("file_name,expected", [
        ("Game.EXE", "Game"),
        ("shortcut.lnk", "shortcut"),
        ("run.bat", "run"),
        ("readme.txt", "readme.txt"),
    ])
    def test_strip_executable_suffix(self, file_name, expected):
        assert strip_executable_suffix(file_name) == expected

    def test_classification_is_deterministic(self):
        first = classify("Celeste.exe", GAME_DIR)
        for _ in range(5):
            assert classify("Celeste.exe", GAME_DIR) == first
