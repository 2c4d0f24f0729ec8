import asyncio
from pathlib import Path
from typing import List, Optional, Union

import aiofiles
import msgspec

from ..config import LauncherPathName
from ..constants import Launcher
from ..logger import setup_logger
from ..models import CandidateEntry, decode_json
from ..platform_utils import IS_WINDOWS
from ..scanner import find_representative_executable
from ..utils import clean_game_name, folder_id
from .base import LauncherAdapter

logger = setup_logger()


class GogPlayTask(msgspec.Struct):
    path: Optional[str] = None
    is_primary: bool = msgspec.field(default=False, name="isPrimary")
    type: Optional[str] = None


class GogInfo(msgspec.Struct):
    """goggame-<id>.info sidecar written next to every GOG install."""
    game_id: Union[int, str] = msgspec.field(name="gameId")
    name: str = ""
    play_tasks: List[GogPlayTask] = msgspec.field(default_factory=list, name="playTasks")

    def primary_executable(self) -> Optional[str]:
        file_tasks = [t for t in self.play_tasks if t.path and t.type in (None, "FileTask")]
        for task in file_tasks:
            if task.is_primary:
                return task.path
        return file_tasks[0].path if file_tasks else None


class GogAdapter(LauncherAdapter):
    """GOG installs, identified by their goggame-*.info sidecar files."""

    launcher = Launcher.GOG
    config_key = LauncherPathName.GOG

    async def default_roots(self) -> List:
        roots = [Path.home() / "GOG Games"]
        if IS_WINDOWS:
            roots = [
                r"C:\GOG Games",
                r"C:\Program Files (x86)\GOG Galaxy\Games",
                r"D:\GOG Games",
            ] + roots
        return roots

    async def read_info(self, info_path: Path) -> Optional[GogInfo]:
        try:
            async with aiofiles.open(info_path, "rb") as f:
                data = await f.read()
            return decode_json(data, type=GogInfo)
        except (OSError, msgspec.DecodeError) as e:
            logger.debug(f"Unreadable GOG info file {info_path}: {e}")
            return None

    async def scan_game_folder(self, folder: Path) -> Optional[CandidateEntry]:
        try:
            info_files = sorted(folder.glob("goggame-*.info"))
        except OSError:
            info_files = []

        info = await self.read_info(info_files[0]) if info_files else None
        if info is not None:
            relative_exe = info.primary_executable()
            return self.make_candidate(
                str(info.game_id),
                info.name or clean_game_name(folder.name),
                executable_path=str(folder / relative_exe) if relative_exe else None,
                install_path=str(folder),
            )

        # No sidecar (or a broken one): fall back to the folder convention
        executable = await asyncio.to_thread(
            find_representative_executable, folder, 2, self.extra_rules
        )
        if executable is None and not info_files:
            return None
        return self.make_candidate(
            folder_id(folder.name),
            clean_game_name(folder.name),
            executable_path=str(executable) if executable else None,
            install_path=str(folder),
        )

    async def scan(self) -> List[CandidateEntry]:
        roots = await self.resolve_roots()
        if not roots:
            logger.info("GOG not found, skipping")
            return []

        folders = []
        for root in roots:
            try:
                folders.extend(sorted(p for p in root.iterdir() if p.is_dir() and not p.is_symlink()))
            except OSError as e:
                logger.error(f"Cannot list GOG folder {root}: {e}")

        results = await asyncio.gather(*[self.scan_game_folder(f) for f in folders])

        candidates = []
        seen = set()
        for candidate in results:
            if candidate is None or candidate.id in seen:
                continue
            seen.add(candidate.id)
            candidates.append(candidate)

        logger.info(f"GOG: {len(candidates)} installed games")
        return candidates
