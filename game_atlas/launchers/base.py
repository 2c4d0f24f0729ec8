import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..config import LauncherPathName, config_manager
from ..constants import LAUNCHER_DISPLAY_NAMES, ItemType, Launcher
from ..exclusion_rules import ExclusionRule
from ..logger import setup_logger
from ..models import CandidateEntry
from ..scanner import find_representative_executable
from ..utils import clean_game_name, folder_id

logger = setup_logger()


def existing_dirs(paths: Iterable) -> List[Path]:
    """Existing directories from paths, first occurrence wins."""
    result = []
    seen = set()
    for raw in paths:
        if not raw:
            continue
        path = Path(raw)
        key = str(path).lower()
        if key in seen:
            continue
        seen.add(key)
        if path.is_dir():
            result.append(path)
    return result


class LauncherAdapter(ABC):
    """
    Discovers the titles installed through one launcher.

    scan() never raises for a missing installation; it returns an empty list.
    A manifest that can't be parsed is logged and skipped.
    """

    launcher: Launcher
    config_key: Optional[LauncherPathName] = None
    # User exclusion patterns, applied wherever an adapter walks folders
    extra_rules: Sequence[ExclusionRule] = ()

    def __init__(self, roots: Optional[Sequence] = None):
        # Explicit roots replace detection entirely (used for fixtures)
        self._explicit_roots = list(roots) if roots is not None else None

    @property
    def display_name(self) -> str:
        return LAUNCHER_DISPLAY_NAMES[self.launcher]

    def configured_roots(self) -> List[str]:
        if self.config_key is None:
            return []
        return config_manager.get_launcher_paths(self.config_key)

    async def resolve_roots(self) -> List[Path]:
        if self._explicit_roots is not None:
            return existing_dirs(self._explicit_roots)
        return existing_dirs(self.configured_roots() + await self.default_roots())

    async def default_roots(self) -> List:
        return []

    @abstractmethod
    async def scan(self) -> List[CandidateEntry]:
        ...

    def make_candidate(self, native_id: str, name: str, **fields) -> CandidateEntry:
        return CandidateEntry(
            id=f"{self.launcher.value}_{native_id}",
            name=name,
            launcher=self.launcher,
            item_type=ItemType.GAME,
            **fields,
        )

    async def scan_game_folders(self, games_dir: Path, max_depth: int = 2) -> List[CandidateEntry]:
        """
        Folder-convention fallback: one candidate per subfolder of games_dir
        that holds a valid executable, keyed by the folder name.
        """
        try:
            folders = sorted(p for p in games_dir.iterdir() if p.is_dir() and not p.is_symlink())
        except OSError as e:
            logger.debug(f"Cannot list {games_dir}: {e}")
            return []

        async def _inspect(folder: Path):
            executable = await asyncio.to_thread(
                find_representative_executable, folder, max_depth, self.extra_rules
            )
            if executable is None:
                return None
            return self.make_candidate(
                folder_id(folder.name),
                clean_game_name(folder.name),
                executable_path=str(executable),
                install_path=str(folder),
            )

        results = await asyncio.gather(*[_inspect(f) for f in folders])
        return [c for c in results if c is not None]
