"""
Filesystem Walker
Bounded-depth directory walks that turn arbitrary folders (user-directed
scans) or curated game-convention folders (deep scans) into candidates.

Walks use an explicit worklist of (directory, depth) pairs and never follow
symlinks, so the maximum depth is the only bound on traversal and link
cycles cannot loop.
"""

import asyncio
import os
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .classifier import is_system_path, is_valid_candidate
from .config import ScanTuning
from .constants import ItemType, Launcher
from .exclusion_rules import ExclusionRule
from .logger import setup_logger
from .models import CandidateEntry
from .platform_utils import get_drive_roots
from .utils import clean_game_name, folder_id

logger = setup_logger()

EXECUTABLE_EXTENSIONS = frozenset({".exe"})

# Directories to skip during walks (common non-content folders)
_SKIP_DIRECTORIES: frozenset = frozenset({
    '__pycache__', '.git', '.svn', '.hg', 'node_modules',
    'logs', 'log', 'saves', 'save', 'screenshots', 'crashdumps', 'dumps',
    'temp', 'tmp', 'cache', '.cache', 'shader_cache', 'shadercache',
    'gpucache', 'webcache', 'windows', 'system32',
})

# Game-convention folders walked by a deep scan, relative to each drive root
DEEP_SCAN_DIRECTORIES: Tuple[str, ...] = (
    "Games",
    "Game",
    "My Games",
    os.path.join("SteamLibrary", "steamapps", "common"),
    "Epic Games",
    os.path.join("Program Files", "Epic Games"),
    "GOG Games",
    "XboxGames",
    os.path.join("Program Files (x86)", "Ubisoft", "Ubisoft Game Launcher", "games"),
)


def _is_skipped_directory(name: str) -> bool:
    return name.startswith(('.', '$')) or name.lower() in _SKIP_DIRECTORIES


def _list_directory(directory: Path) -> Tuple[List[os.DirEntry], List[Path]]:
    """Executable files and walkable subdirectories of one directory.

    Raises OSError when the directory itself can't be listed.
    """
    files = []
    subdirs = []
    with os.scandir(directory) as entries:
        for entry in entries:
            try:
                if entry.is_file(follow_symlinks=False):
                    if os.path.splitext(entry.name)[1].lower() in EXECUTABLE_EXTENSIONS:
                        files.append(entry)
                elif entry.is_dir(follow_symlinks=False):
                    if not _is_skipped_directory(entry.name):
                        subdirs.append(Path(entry.path))
            except OSError:
                continue
    return files, subdirs


def _largest_valid_executable(
    directory: Path,
    files: Iterable[os.DirEntry],
    extra_rules: Sequence[ExclusionRule],
    min_bytes: int,
) -> Optional[Tuple[int, str]]:
    best = None
    for entry in files:
        try:
            size = entry.stat(follow_symlinks=False).st_size
        except OSError:
            continue
        if size < min_bytes:
            continue
        if not is_valid_candidate(entry.name, str(directory), extra_rules):
            continue
        # Largest wins; equal sizes fall back to the name for a stable choice
        if best is None or (size, entry.path) > best:
            best = (size, entry.path)
    return best


def walk_for_executables(
    root: Path,
    depth: int = 0,
    max_depth: int = ScanTuning.FOLDER_SCAN_MAX_DEPTH,
    extra_rules: Sequence[ExclusionRule] = (),
    min_bytes: int = ScanTuning.MIN_EXECUTABLE_BYTES,
) -> List[Tuple[Path, int]]:
    """
    Walk root and return (executable, size) for each folder's representative.

    Directories in a system location are dropped before their contents are
    read; unreadable directories drop only their own subtree.
    """
    found = []
    worklist = [(Path(root), depth)]

    while worklist:
        directory, level = worklist.pop()
        if level > max_depth:
            continue
        if is_system_path(str(directory)):
            logger.debug(f"Skipping system directory {directory}")
            continue

        try:
            files, subdirs = _list_directory(directory)
        except OSError as e:
            logger.debug(f"Cannot access {directory}: {e}")
            continue

        best = _largest_valid_executable(directory, files, extra_rules, min_bytes)
        if best:
            size, path = best
            found.append((Path(path), size))

        # Reverse so the stack pops subdirectories in name order
        for subdir in sorted(subdirs, reverse=True):
            worklist.append((subdir, level + 1))

    return found


def find_representative_executable(
    folder: Path,
    max_depth: int = 1,
    extra_rules: Sequence[ExclusionRule] = (),
) -> Optional[Path]:
    """Largest valid executable anywhere under folder, within max_depth."""
    found = walk_for_executables(folder, 0, max_depth, extra_rules)
    if not found:
        return None
    return max(found, key=lambda item: (item[1], str(item[0])))[0]


def scan_folder_sync(
    root,
    depth: int = 0,
    max_depth: int = ScanTuning.FOLDER_SCAN_MAX_DEPTH,
    extra_rules: Sequence[ExclusionRule] = (),
) -> List[CandidateEntry]:
    candidates = []
    for executable, _ in walk_for_executables(Path(root), depth, max_depth, extra_rules):
        candidates.append(
            CandidateEntry(
                id=f"custom_{uuid.uuid4().hex[:16]}",
                name=clean_game_name(executable.stem),
                executable_path=str(executable),
                install_path=str(executable.parent),
                launcher=Launcher.DESKTOP,
                item_type=ItemType.APP,
            )
        )
    logger.info(f"Folder scan of {root} found {len(candidates)} candidates")
    return candidates


async def scan_folder(
    root,
    depth: int = 0,
    max_depth: int = ScanTuning.FOLDER_SCAN_MAX_DEPTH,
    extra_rules: Sequence[ExclusionRule] = (),
) -> List[CandidateEntry]:
    """
    Scan a user-chosen folder for applications.

    Args:
        root: Folder to walk
        depth: Depth the walk starts at (counted against max_depth)
        max_depth: Deepest level whose contents are inspected
        extra_rules: Additional classifier name rules

    Returns:
        One desktop/app candidate per folder holding a valid executable
    """
    return await asyncio.to_thread(scan_folder_sync, root, depth, max_depth, extra_rules)


def deep_scan_sync(
    roots: Optional[Iterable[Path]] = None,
    max_depth: int = ScanTuning.DEEP_SCAN_MAX_DEPTH,
    extra_rules: Sequence[ExclusionRule] = (),
) -> List[CandidateEntry]:
    candidates = []
    seen_ids = set()
    drive_roots = list(roots) if roots is not None else get_drive_roots()

    for drive_root in drive_roots:
        for relative in DEEP_SCAN_DIRECTORIES:
            base = Path(drive_root) / relative
            if is_system_path(str(base)) or not base.is_dir():
                continue

            try:
                _, game_folders = _list_directory(base)
            except OSError as e:
                logger.debug(f"Cannot access {base}: {e}")
                continue

            for folder in sorted(game_folders):
                executable = find_representative_executable(folder, max_depth, extra_rules)
                if executable is None:
                    continue
                # Re-check the resolved location; a junction may point anywhere
                if is_system_path(str(executable.parent)) or is_system_path(
                    os.path.dirname(os.path.realpath(executable))
                ):
                    continue

                candidate_id = f"deep_{folder_id(folder.name)}"
                if candidate_id in seen_ids:
                    continue
                seen_ids.add(candidate_id)
                candidates.append(
                    CandidateEntry(
                        id=candidate_id,
                        name=clean_game_name(folder.name),
                        executable_path=str(executable),
                        install_path=str(folder),
                        launcher=Launcher.MANUAL,
                        item_type=ItemType.APP,
                    )
                )

    logger.info(f"Deep scan found {len(candidates)} candidates")
    return candidates


async def deep_scan(
    roots: Optional[Iterable[Path]] = None,
    max_depth: int = ScanTuning.DEEP_SCAN_MAX_DEPTH,
    extra_rules: Sequence[ExclusionRule] = (),
) -> List[CandidateEntry]:
    """
    Walk only the curated game-convention folders under each drive root.

    Args:
        roots: Drive roots to search (defaults to detected drives)
        max_depth: Depth searched inside each game folder
        extra_rules: Additional classifier name rules

    Returns:
        One manual/app candidate per game folder, never under a system path
    """
    return await asyncio.to_thread(deep_scan_sync, roots, max_depth, extra_rules)
