import asyncio
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from urllib.parse import parse_qs

import aiofiles

from ..config import LauncherPathName
from ..constants import Launcher
from ..logger import setup_logger
from ..models import CandidateEntry
from ..platform_utils import IS_WINDOWS, get_program_data_dir
from ..scanner import find_representative_executable
from ..utils import clean_game_name
from .base import LauncherAdapter, existing_dirs

logger = setup_logger()


def parse_mfst(content: str) -> Dict[str, str]:
    """EA/Origin .mfst files are a URL query string (?id=...&installpath=...)."""
    params = parse_qs(content.strip().lstrip("?"), keep_blank_values=False)
    return {key.lower(): values[0] for key, values in params.items() if values}


class EAAdapter(LauncherAdapter):
    """
    EA app (and legacy Origin) installs.

    Primary source is the .mfst manifests under ProgramData; configured EA
    game folders are scanned by folder convention for titles without one.
    """

    launcher = Launcher.EA
    config_key = LauncherPathName.EA

    def __init__(self, roots: Optional[Sequence] = None, game_dirs: Optional[Sequence] = None):
        super().__init__(roots)
        self._explicit_game_dirs = list(game_dirs) if game_dirs is not None else None

    async def default_roots(self) -> List:
        program_data = get_program_data_dir()
        return [
            program_data / "EA Desktop" / "InstallData",
            program_data / "Origin" / "LocalContent",
        ]

    def configured_roots(self) -> List[str]:
        return []

    def game_dirs(self) -> List[Path]:
        if self._explicit_game_dirs is not None:
            return existing_dirs(self._explicit_game_dirs)
        defaults = [r"C:\Program Files\EA Games", r"C:\Program Files (x86)\Origin Games"] if IS_WINDOWS else []
        return existing_dirs(super().configured_roots() + defaults)

    async def read_manifest(self, title_dir: Path, mfst_path: Path) -> Optional[CandidateEntry]:
        try:
            async with aiofiles.open(mfst_path, "r", encoding="utf-8", errors="ignore") as f:
                content = await f.read()
        except OSError as e:
            logger.debug(f"Skipping unreadable EA manifest {mfst_path}: {e}")
            return None

        params = parse_mfst(content)
        ea_id = params.get("id")
        install_path = params.get("installpath")
        if not ea_id or not install_path:
            return None

        executable = None
        if os.path.isdir(install_path):
            executable = await asyncio.to_thread(
                find_representative_executable, Path(install_path), 2, self.extra_rules
            )

        return self.make_candidate(
            ea_id,
            clean_game_name(title_dir.name.replace("_", " ")),
            executable_path=str(executable) if executable else None,
            install_path=install_path,
            ea_id=ea_id,
        )

    async def scan_manifests(self) -> List[CandidateEntry]:
        tasks = []
        for content_root in await self.resolve_roots():
            try:
                title_dirs = sorted(p for p in content_root.iterdir() if p.is_dir())
            except OSError as e:
                logger.error(f"Cannot list EA content folder {content_root}: {e}")
                continue
            for title_dir in title_dirs:
                try:
                    manifests = sorted(title_dir.glob("*.mfst"))
                except OSError:
                    continue
                tasks.extend(self.read_manifest(title_dir, m) for m in manifests)

        results = await asyncio.gather(*tasks)
        return [c for c in results if c is not None]

    async def scan(self) -> List[CandidateEntry]:
        candidates = []
        seen_ids = set()
        seen_paths = set()

        for candidate in await self.scan_manifests():
            if candidate.id in seen_ids:
                continue
            seen_ids.add(candidate.id)
            seen_paths.add(os.path.normcase(os.path.normpath(candidate.install_path)))
            candidates.append(candidate)

        for games_dir in self.game_dirs():
            for candidate in await self.scan_game_folders(games_dir):
                install_key = os.path.normcase(os.path.normpath(candidate.install_path))
                if candidate.id in seen_ids or install_key in seen_paths:
                    continue
                seen_ids.add(candidate.id)
                candidates.append(candidate)

        logger.info(f"EA: {len(candidates)} installed games")
        return candidates
