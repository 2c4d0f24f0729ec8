import asyncio
from pathlib import Path
from typing import List, Optional

import aiofiles
import msgspec

from ..config import Concurrency, LauncherPathName
from ..constants import Launcher
from ..logger import setup_logger
from ..models import CandidateEntry, decode_json
from ..platform_utils import get_program_data_dir
from .base import LauncherAdapter

logger = setup_logger()


class EpicManifest(msgspec.Struct):
    """The fields of an Epic *.item manifest that discovery needs."""
    app_name: str = msgspec.field(name="AppName")
    display_name: str = msgspec.field(default="", name="DisplayName")
    catalog_item_id: Optional[str] = msgspec.field(default=None, name="CatalogItemId")
    install_location: Optional[str] = msgspec.field(default=None, name="InstallLocation")
    launch_executable: Optional[str] = msgspec.field(default=None, name="LaunchExecutable")
    main_game_app_name: Optional[str] = msgspec.field(default=None, name="MainGameAppName")
    incomplete_install: bool = msgspec.field(default=False, name="bIsIncompleteInstall")


class EpicAdapter(LauncherAdapter):
    """Epic Games Launcher installs, from the launcher's per-item manifests."""

    launcher = Launcher.EPIC
    config_key = LauncherPathName.EPIC

    async def default_roots(self) -> List:
        return [get_program_data_dir() / "Epic" / "EpicGamesLauncher" / "Data" / "Manifests"]

    def configured_roots(self) -> List[str]:
        # Users configure the launcher install dir; manifests live in ProgramData
        return []

    async def read_manifest(self, manifest_path: Path) -> Optional[EpicManifest]:
        try:
            async with aiofiles.open(manifest_path, "rb") as f:
                data = await f.read()
            return decode_json(data, type=EpicManifest)
        except (OSError, msgspec.DecodeError) as e:
            logger.debug(f"Skipping unreadable Epic manifest {manifest_path}: {e}")
            return None

    def manifest_to_candidate(self, manifest: EpicManifest) -> Optional[CandidateEntry]:
        if manifest.incomplete_install:
            logger.debug(f"Skipping incomplete Epic install {manifest.app_name}")
            return None
        # Add-ons ship their own manifest pointing at the base game
        if manifest.main_game_app_name and manifest.main_game_app_name != manifest.app_name:
            return None

        executable_path = None
        if manifest.install_location and manifest.launch_executable:
            executable_path = str(Path(manifest.install_location) / manifest.launch_executable)

        return self.make_candidate(
            manifest.catalog_item_id or manifest.app_name,
            manifest.display_name or manifest.app_name,
            executable_path=executable_path,
            install_path=manifest.install_location,
            epic_app_name=manifest.app_name,
        )

    async def scan(self) -> List[CandidateEntry]:
        manifest_files = []
        for manifests_dir in await self.resolve_roots():
            try:
                manifest_files.extend(sorted(manifests_dir.glob("*.item")))
            except OSError as e:
                logger.error(f"Cannot list Epic manifests in {manifests_dir}: {e}")

        if not manifest_files:
            logger.info("Epic Games Launcher not found, skipping")
            return []

        semaphore = asyncio.Semaphore(Concurrency.MANIFEST_PARSE)

        async def read_with_limit(path: Path):
            async with semaphore:
                return await self.read_manifest(path)

        manifests = await asyncio.gather(*[read_with_limit(p) for p in manifest_files])

        candidates = []
        seen = set()
        for manifest in manifests:
            if manifest is None:
                continue
            candidate = self.manifest_to_candidate(manifest)
            if candidate is None or candidate.id in seen:
                continue
            seen.add(candidate.id)
            candidates.append(candidate)

        logger.info(f"Epic: {len(candidates)} installed games")
        return candidates
