import asyncio
import os
from pathlib import Path
from typing import Dict, List

from ..config import Concurrency, LauncherPathName
from ..constants import Launcher
from ..logger import setup_logger
from ..models import CandidateEntry
from ..platform_utils import IS_WINDOWS
from ..registry_utils import get_steam_install_path
from ..vdf_parser import VDFParser
from .base import LauncherAdapter

logger = setup_logger()

STEAM_CDN = "https://steamcdn-a.akamaihd.net/steam/apps"

# Redistributable bundles and compatibility runtimes that Steam installs as apps
NON_GAME_APP_IDS = frozenset({
    "228980",   # Steamworks Common Redistributables
    "1070560",  # Steam Linux Runtime 1.0 (scout)
    "1391110",  # Steam Linux Runtime 2.0 (soldier)
    "1628350",  # Steam Linux Runtime 3.0 (sniper)
})
NON_GAME_NAME_PREFIXES = (
    "steamworks common redistributables",
    "steam linux runtime",
    "proton",
    "steamvr",
)


def steam_cover_uri(app_id: str) -> str:
    return f"{STEAM_CDN}/{app_id}/library_600x900_2x.jpg"


def steam_background_uri(app_id: str) -> str:
    return f"{STEAM_CDN}/{app_id}/library_hero.jpg"


def is_non_game_app(app_id: str, name: str) -> bool:
    return app_id in NON_GAME_APP_IDS or name.lower().startswith(NON_GAME_NAME_PREFIXES)


class SteamAdapter(LauncherAdapter):
    """
    Steam installs, read from appmanifest_*.acf files in every library.

    Roots may be a Steam installation or a bare library folder; both carry a
    steamapps directory. Secondary libraries come from libraryfolders.vdf.
    """

    launcher = Launcher.STEAM
    config_key = LauncherPathName.STEAM

    async def default_roots(self) -> List:
        roots = []
        registry_path = await get_steam_install_path()
        if registry_path:
            roots.append(registry_path)
        if IS_WINDOWS:
            roots.extend([
                r"C:\Program Files (x86)\Steam",
                r"C:\Program Files\Steam",
                r"D:\Steam",
                r"D:\SteamLibrary",
            ])
        else:
            home = Path.home()
            roots.extend([
                home / ".steam" / "steam",
                home / ".local" / "share" / "Steam",
                home / ".var" / "app" / "com.valvesoftware.Steam" / ".local" / "share" / "Steam",
            ])
        return roots

    async def library_dirs(self) -> List[Path]:
        """All steamapps directories reachable from the resolved roots."""
        libraries: Dict[str, Path] = {}

        for root in await self.resolve_roots():
            steamapps = root / "steamapps"
            if not steamapps.is_dir():
                continue
            libraries.setdefault(os.path.normcase(str(steamapps.resolve())), steamapps)

            library_vdf = steamapps / "libraryfolders.vdf"
            if library_vdf.is_file():
                for extra in await VDFParser.parse_library_folders(library_vdf):
                    libraries.setdefault(os.path.normcase(str(extra.resolve())), extra)

        return list(libraries.values())

    async def scan(self) -> List[CandidateEntry]:
        libraries = await self.library_dirs()
        if not libraries:
            logger.info("Steam not found, skipping")
            return []

        manifest_files = []
        for steamapps in libraries:
            try:
                manifest_files.extend(sorted(steamapps.glob("appmanifest_*.acf")))
            except OSError as e:
                logger.error(f"Cannot list Steam library {steamapps}: {e}")

        semaphore = asyncio.Semaphore(Concurrency.MANIFEST_PARSE)

        async def parse_with_limit(manifest_path: Path):
            async with semaphore:
                return manifest_path, await VDFParser.parse_appmanifest(manifest_path)

        results = await asyncio.gather(
            *[parse_with_limit(m) for m in manifest_files],
            return_exceptions=True,
        )

        candidates = []
        seen_app_ids = set()
        for result in results:
            if isinstance(result, Exception):
                logger.debug(f"Steam manifest parse failed: {result}")
                continue

            manifest_path, app = result
            if app is None:
                continue

            app_id = str(app["appid"])
            name = app["name"]
            if not VDFParser.is_fully_installed(app["state_flags"]):
                logger.debug(f"Skipping {name} ({app_id}): not fully installed")
                continue
            if is_non_game_app(app_id, name):
                continue
            if app_id in seen_app_ids:
                continue
            seen_app_ids.add(app_id)

            install_path = manifest_path.parent / "common" / app["installdir"]
            candidates.append(
                self.make_candidate(
                    app_id,
                    name,
                    install_path=str(install_path),
                    steam_app_id=app_id,
                    cover_image=steam_cover_uri(app_id),
                    background_image=steam_background_uri(app_id),
                )
            )

        logger.info(f"Steam: {len(candidates)} installed games in {len(libraries)} libraries")
        return candidates
