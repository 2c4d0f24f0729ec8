"""
Launch and store URIs built from launcher-native ids.

Titles are started through their launcher's protocol handler where one
exists, so the launcher can apply updates, cloud saves and DRM. GOG,
Ubisoft and filesystem finds prefer their executable when it is on disk.
"""

import asyncio
import os
import subprocess
from typing import NamedTuple, Optional

from .constants import Launcher
from .logger import setup_logger
from .models import CatalogRecord
from .platform_utils import IS_WINDOWS

logger = setup_logger()

_DIRECT_LAUNCH_FIRST = frozenset({Launcher.GOG, Launcher.UBISOFT, Launcher.MANUAL, Launcher.DESKTOP})


class LaunchTarget(NamedTuple):
    kind: str  # "uri" or "path"
    value: str


def _native_id(record: CatalogRecord, value: Optional[str]) -> str:
    # Launcher-sourced ids are "<launcher>_<native id>"
    return value or record.id.split("_", 1)[-1]


def build_launch_target(record: CatalogRecord) -> Optional[LaunchTarget]:
    """How to start a record, or None when there is no way to."""
    executable = record.executable_path
    if executable and record.launcher in _DIRECT_LAUNCH_FIRST and os.path.exists(executable):
        return LaunchTarget("path", executable)

    if record.launcher == Launcher.STEAM:
        return LaunchTarget("uri", f"steam://run/{_native_id(record, record.steam_app_id)}")
    if record.launcher == Launcher.EPIC:
        app_name = _native_id(record, record.epic_app_name)
        return LaunchTarget("uri", f"com.epicgames.launcher://apps/{app_name}?action=launch&silent=true")
    if record.launcher == Launcher.XBOX and record.package_family_name:
        return LaunchTarget("uri", f"shell:AppsFolder\\{record.package_family_name}!App")
    if record.launcher == Launcher.EA:
        return LaunchTarget("uri", f"origin2://game/launch?offerIds={_native_id(record, record.ea_id)}")
    if record.launcher == Launcher.UBISOFT and record.uplay_id:
        return LaunchTarget("uri", f"uplay://launch/{record.uplay_id}/0")

    if executable:
        return LaunchTarget("path", executable)
    return None


def build_store_uri(record: CatalogRecord) -> Optional[str]:
    """The launcher's store page (or store front) for a record."""
    if record.launcher == Launcher.STEAM:
        return f"steam://store/{_native_id(record, record.steam_app_id)}"
    if record.launcher == Launcher.EPIC:
        return "com.epicgames.launcher://store"
    if record.launcher == Launcher.XBOX:
        if record.package_family_name:
            return f"ms-windows-store://pdp/?PFN={record.package_family_name}"
        return "ms-windows-store://home"
    if record.launcher == Launcher.EA:
        return "origin://"
    if record.launcher == Launcher.UBISOFT:
        return "uplay://"
    if record.launcher == Launcher.GOG:
        return "goggalaxy://"
    return None


async def open_target(target: LaunchTarget):
    """Hand a URI or path to the OS shell."""
    logger.info(f"Opening {target.kind} {target.value}")
    if IS_WINDOWS:
        await asyncio.to_thread(os.startfile, target.value)
        return
    await asyncio.to_thread(
        subprocess.Popen,
        ["xdg-open", target.value],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )
