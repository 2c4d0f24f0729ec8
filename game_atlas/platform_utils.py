"""
Platform Utilities Module
Provides centralized platform detection, per-user directories and drive enumeration.
"""

import os
import sys
from enum import Enum, auto
from pathlib import Path
from typing import List

import platformdirs
import psutil


APP_NAME = "GameAtlas"
APP_AUTHOR = "GameAtlas"
HOME_OVERRIDE_ENV = "GAME_ATLAS_HOME"


class Platform(Enum):
    """Supported operating system platforms."""
    WINDOWS = auto()
    LINUX = auto()
    MACOS = auto()
    UNKNOWN = auto()


def get_platform() -> Platform:
    """
    Detect the current operating system.

    Returns:
        Platform enum value for the current OS.
    """
    if sys.platform == 'win32':
        return Platform.WINDOWS
    elif sys.platform == 'linux':
        return Platform.LINUX
    elif sys.platform == 'darwin':
        return Platform.MACOS
    return Platform.UNKNOWN


# Pre-computed constants, computed once at import time
PLATFORM = get_platform()
IS_WINDOWS = PLATFORM == Platform.WINDOWS
IS_LINUX = PLATFORM == Platform.LINUX


def get_app_data_dir() -> Path:
    """
    Get the application data directory.

    The GAME_ATLAS_HOME environment variable wins when set, otherwise the
    platformdirs per-user data directory is used.

    Returns:
        Path to the data directory (created if it doesn't exist)
    """
    override = os.environ.get(HOME_OVERRIDE_ENV)
    if override:
        data_dir = Path(override)
    else:
        data_dir = Path(platformdirs.user_data_dir(APP_NAME, APP_AUTHOR))

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


APP_DATA_DIR = get_app_data_dir()


def get_system_root() -> str:
    """Windows installation directory, e.g. C:\\Windows."""
    return os.environ.get("SystemRoot") or os.environ.get("WINDIR") or r"C:\Windows"


def get_program_data_dir() -> Path:
    return Path(os.environ.get("PROGRAMDATA") or r"C:\ProgramData")


def get_drive_roots() -> List[Path]:
    """
    Detect mounted drive roots to search for game-convention folders.

    On Windows every fixed partition is returned (C:\\, D:\\, ...). Elsewhere the
    user's home directory is the only root, since game folders are not kept at
    the top of arbitrary mount points.
    """
    if not IS_WINDOWS:
        return [Path.home()]

    roots = []
    try:
        for partition in psutil.disk_partitions(all=False):
            if "cdrom" in partition.opts or not partition.fstype:
                continue
            roots.append(Path(partition.mountpoint))
    except OSError:
        roots = [Path("C:\\")]
    return roots
