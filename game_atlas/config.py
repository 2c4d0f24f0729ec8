import os
import threading
import configparser
from enum import StrEnum
from pathlib import Path
from typing import List

from .logger import setup_logger
from .platform_utils import APP_DATA_DIR

logger = setup_logger()

PATH_SEPARATOR = "|"
PATTERN_SEPARATOR = ";"


def get_config_path() -> Path:
    """Get the path for storing configuration files"""
    return APP_DATA_DIR / "config.ini"


class Concurrency:
    """Concurrency limits scaled to the host."""
    CPU_COUNT = os.cpu_count() or 4
    # Blocking filesystem walks handed to worker threads
    IO_HEAVY = min(CPU_COUNT * 4, 32)
    # Manifest files parsed concurrently per launcher
    MANIFEST_PARSE = 20
    # Concurrent artwork lookups (one enrichment batch)
    ENRICHMENT_BATCH = 10


class ScanTuning:
    """
    Empirical thresholds used by discovery and enrichment.

    None of these are derived values; they are kept here so they can be tuned
    without touching the algorithms that read them.
    """
    MIN_NAME_LENGTH = 4
    MIN_ALPHA_RATIO = 0.6
    MAX_DIGITS = 5
    MAX_SPECIAL_CHARS = 3
    MIN_EXECUTABLE_BYTES = 512 * 1024
    FOLDER_SCAN_MAX_DEPTH = 3
    DEEP_SCAN_MAX_DEPTH = 1
    SIMILARITY_THRESHOLD = 0.6
    LOOKUP_TIMEOUT_SECONDS = 15.0
    LOOKUP_ATTEMPTS = 3
    LOOKUP_BACKOFF_SECONDS = 0.5
    ADAPTER_TIMEOUT_SECONDS = 60.0
    MAX_BACKUPS = 5


class LauncherPathName(StrEnum):
    STEAM = "SteamPath"
    EA = "EAPath"
    EPIC = "EpicPath"
    GOG = "GOGPath"
    UBISOFT = "UbisoftPath"
    XBOX = "XboxPath"
    CUSTOM1 = "CustomPath1"
    CUSTOM2 = "CustomPath2"
    CUSTOM3 = "CustomPath3"
    CUSTOM4 = "CustomPath4"


class ConfigManager(configparser.ConfigParser):
    _instance = None
    _instance_lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, "initialized"):
            super().__init__()
            # Keys are case sensitive so StrEnum values round-trip unchanged
            self.optionxform = str
            self.logger = setup_logger()
            self.config_path = get_config_path()
            self.read(self.config_path, encoding="utf-8")

            if not self.has_section("LauncherPaths"):
                self.add_section("LauncherPaths")
                self["LauncherPaths"].update({name.value: "" for name in LauncherPathName})
                self.save()

            if not self.has_section("Scan"):
                self.add_section("Scan")
                self["Scan"].update(
                    {
                        "DeepScan": "true",
                        "FolderScanMaxDepth": str(ScanTuning.FOLDER_SCAN_MAX_DEPTH),
                        "DeepScanMaxDepth": str(ScanTuning.DEEP_SCAN_MAX_DEPTH),
                        "EnrichArtwork": "true",
                    }
                )
                self.save()

            if not self.has_section("Exclusions"):
                self.add_section("Exclusions")
                self["Exclusions"]["NamePatterns"] = ""
                self.save()

            if not self.has_section("SteamApi"):
                self.add_section("SteamApi")
                self["SteamApi"].update({"ApiKey": "", "SteamId": ""})
                self.save()

            self.initialized = True

    def save(self):
        try:
            with open(self.config_path, "w", encoding="utf-8") as configfile:
                self.write(configfile)
        except OSError as e:
            self.logger.error(f"Failed to save config to {self.config_path}: {e}")

    def update_launcher_path(
        self, path_to_update: LauncherPathName, new_launcher_path: str
    ):
        self.logger.debug(f"Attempting to update path for {path_to_update}.")
        self["LauncherPaths"][path_to_update] = new_launcher_path
        self.save()
        self.logger.debug(f"Updated path for {path_to_update}.")

    def check_path_value(self, path_to_check: LauncherPathName) -> str:
        return self["LauncherPaths"].get(path_to_check, "")

    def get_launcher_paths(self, launcher: LauncherPathName) -> List[str]:
        """All configured roots for a launcher, in the order they were added."""
        raw = self.check_path_value(launcher)
        return [p.strip() for p in raw.split(PATH_SEPARATOR) if p.strip()]

    def add_launcher_path(self, launcher: LauncherPathName, new_path: str) -> bool:
        paths = self.get_launcher_paths(launcher)
        normalized = os.path.normcase(os.path.normpath(new_path))
        if any(os.path.normcase(os.path.normpath(p)) == normalized for p in paths):
            self.logger.debug(f"{new_path} already configured for {launcher}")
            return False
        paths.append(new_path)
        self.update_launcher_path(launcher, PATH_SEPARATOR.join(paths))
        return True

    def reset_launcher_path(self, path_to_reset: LauncherPathName):
        self.logger.debug(f"Resetting path for {path_to_reset}.")
        self["LauncherPaths"][path_to_reset] = ""
        self.save()
        self.logger.debug(f"Reset path for {path_to_reset}.")

    def get_custom_paths(self) -> List[str]:
        custom = (
            LauncherPathName.CUSTOM1,
            LauncherPathName.CUSTOM2,
            LauncherPathName.CUSTOM3,
            LauncherPathName.CUSTOM4,
        )
        return [p for name in custom for p in self.get_launcher_paths(name)]

    def is_deep_scan_enabled(self) -> bool:
        return self.getboolean("Scan", "DeepScan", fallback=True)

    def is_artwork_enrichment_enabled(self) -> bool:
        return self.getboolean("Scan", "EnrichArtwork", fallback=True)

    def get_folder_scan_max_depth(self) -> int:
        return self.getint("Scan", "FolderScanMaxDepth", fallback=ScanTuning.FOLDER_SCAN_MAX_DEPTH)

    def get_deep_scan_max_depth(self) -> int:
        return self.getint("Scan", "DeepScanMaxDepth", fallback=ScanTuning.DEEP_SCAN_MAX_DEPTH)

    def get_extra_exclusions(self) -> List[str]:
        raw = self.get("Exclusions", "NamePatterns", fallback="")
        return [p.strip() for p in raw.split(PATTERN_SEPARATOR) if p.strip()]

    def set_extra_exclusions(self, patterns: List[str]):
        self["Exclusions"]["NamePatterns"] = PATTERN_SEPARATOR.join(patterns)
        self.save()

    def get_steam_api_credentials(self):
        """Returns (api_key, steam_id) or (None, None) when not configured."""
        api_key = self.get("SteamApi", "ApiKey", fallback="").strip()
        steam_id = self.get("SteamApi", "SteamId", fallback="").strip()
        if not api_key or not steam_id:
            return None, None
        return api_key, steam_id

    def set_steam_api_credentials(self, api_key: str, steam_id: str):
        self["SteamApi"]["ApiKey"] = api_key
        self["SteamApi"]["SteamId"] = steam_id
        self.save()


config_manager = ConfigManager()
