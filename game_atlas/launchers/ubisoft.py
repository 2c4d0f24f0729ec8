import os
from pathlib import Path
from typing import Dict, List, Optional

import msgspec

from ..config import LauncherPathName
from ..constants import Launcher
from ..logger import setup_logger
from ..models import CandidateEntry
from ..platform_utils import IS_WINDOWS
from ..registry_utils import (
    HKEY_LOCAL_MACHINE,
    UBISOFT_INSTALLS_PATH,
    UBISOFT_REGISTRY_PATH,
    list_registry_subkeys,
    read_registry_value,
)
from .base import LauncherAdapter

logger = setup_logger()


def _path_key(path: str) -> str:
    return os.path.normcase(os.path.normpath(path))


class UbisoftAdapter(LauncherAdapter):
    """
    Ubisoft Connect installs.

    Ubisoft keeps no readable per-game manifest, so every folder under the
    launcher's games directory is a title. The numeric launch id comes from
    the launcher's Installs registry key when it is present.
    """

    launcher = Launcher.UBISOFT
    config_key = LauncherPathName.UBISOFT

    def __init__(self, roots=None, install_ids: Optional[Dict[str, str]] = None):
        super().__init__(roots)
        self._install_ids = install_ids

    async def default_roots(self) -> List:
        roots = []
        launcher_dir = await read_registry_value(HKEY_LOCAL_MACHINE, UBISOFT_REGISTRY_PATH, "InstallDir")
        if launcher_dir:
            roots.append(Path(launcher_dir) / "games")
        if IS_WINDOWS:
            roots.extend([
                r"C:\Program Files (x86)\Ubisoft\Ubisoft Game Launcher\games",
                r"D:\Games\Ubisoft",
                r"E:\Games\Ubisoft",
            ])
        return roots

    async def install_ids(self) -> Dict[str, str]:
        """Install folder -> Ubisoft launch id."""
        if self._install_ids is not None:
            return {_path_key(path): uplay_id for path, uplay_id in self._install_ids.items()}

        mapping = {}
        for uplay_id in await list_registry_subkeys(HKEY_LOCAL_MACHINE, UBISOFT_INSTALLS_PATH):
            install_dir = await read_registry_value(
                HKEY_LOCAL_MACHINE, f"{UBISOFT_INSTALLS_PATH}\\{uplay_id}", "InstallDir"
            )
            if install_dir:
                mapping[_path_key(install_dir)] = uplay_id
        return mapping

    async def scan(self) -> List[CandidateEntry]:
        games_dirs = await self.resolve_roots()
        if not games_dirs:
            logger.info("Ubisoft Connect not found, skipping")
            return []

        ids = await self.install_ids()
        candidates = []
        seen = set()
        for games_dir in games_dirs:
            for candidate in await self.scan_game_folders(games_dir):
                if candidate.id in seen:
                    continue
                seen.add(candidate.id)
                uplay_id = ids.get(_path_key(candidate.install_path))
                if uplay_id:
                    candidate = msgspec.structs.replace(candidate, uplay_id=uplay_id)
                candidates.append(candidate)

        logger.info(f"Ubisoft: {len(candidates)} installed games")
        return candidates
