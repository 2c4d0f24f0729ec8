"""
Registry Utilities Module
Provides async-safe Windows registry reads for launcher install locations.
On non-Windows platforms every read returns None / an empty list.
"""

import asyncio
from typing import List, Optional

from .logger import setup_logger
from .platform_utils import IS_WINDOWS

logger = setup_logger()

HKEY_LOCAL_MACHINE = "HKLM"
HKEY_CURRENT_USER = "HKCU"

STEAM_REGISTRY_PATHS = (
    (HKEY_LOCAL_MACHINE, r"SOFTWARE\WOW6432Node\Valve\Steam", "InstallPath"),
    (HKEY_LOCAL_MACHINE, r"SOFTWARE\Valve\Steam", "InstallPath"),
    (HKEY_CURRENT_USER, r"SOFTWARE\Valve\Steam", "SteamPath"),
)
UBISOFT_REGISTRY_PATH = r"SOFTWARE\WOW6432Node\Ubisoft\Launcher"
UBISOFT_INSTALLS_PATH = r"SOFTWARE\WOW6432Node\Ubisoft\Launcher\Installs"


def _open_hive(hive: str):
    import winreg

    return winreg.HKEY_LOCAL_MACHINE if hive == HKEY_LOCAL_MACHINE else winreg.HKEY_CURRENT_USER


async def read_registry_value(hive: str, key_path: str, value_name: str) -> Optional[str]:
    """
    Read a single string value.

    Returns None when not on Windows, or when the key or value is missing.
    Runs blocking winreg operations in thread pool.
    """
    if not IS_WINDOWS:
        return None

    def _read() -> Optional[str]:
        import winreg

        try:
            with winreg.OpenKey(_open_hive(hive), key_path, 0, winreg.KEY_READ) as key:
                value, _ = winreg.QueryValueEx(key, value_name)
                return str(value)
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug(f"Registry read failed for {key_path}\\{value_name}: {e}")
            return None

    return await asyncio.to_thread(_read)


async def list_registry_subkeys(hive: str, key_path: str) -> List[str]:
    """Names of the direct subkeys of key_path (empty on error or non-Windows)."""
    if not IS_WINDOWS:
        return []

    def _enumerate() -> List[str]:
        import winreg

        names = []
        try:
            with winreg.OpenKey(_open_hive(hive), key_path, 0, winreg.KEY_READ) as key:
                index = 0
                while True:
                    try:
                        names.append(winreg.EnumKey(key, index))
                    except OSError:
                        break
                    index += 1
        except OSError as e:
            logger.debug(f"Registry enumeration failed for {key_path}: {e}")
        return names

    return await asyncio.to_thread(_enumerate)


async def get_steam_install_path() -> Optional[str]:
    for hive, key_path, value_name in STEAM_REGISTRY_PATHS:
        value = await read_registry_value(hive, key_path, value_name)
        if value:
            return value
    return None
