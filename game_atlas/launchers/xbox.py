import asyncio
import re
from typing import Awaitable, Callable, List, Optional, Union

import msgspec

from ..config import LauncherPathName
from ..constants import Launcher
from ..logger import setup_logger
from ..models import CandidateEntry, PackageInfo
from ..platform_utils import IS_WINDOWS
from ..utils import clean_game_name
from .base import LauncherAdapter

logger = setup_logger()

PackageInventory = Callable[[], Awaitable[List[PackageInfo]]]

POWERSHELL_QUERY = (
    "Get-AppxPackage | Where-Object {$_.SignatureKind -eq 'Store' -and $_.IsFramework -eq $false} "
    "| Select-Object Name, PackageFamilyName, InstallLocation | ConvertTo-Json -Compress"
)

# First-party and OS packages, matched as name prefixes or family-name fragments
EXCLUDED_PACKAGE_PATTERNS = (
    "Microsoft.", "Windows.", "Xbox.TCUI", "Xbox.IdentityProvider",
    "GamingOverlay", "SpeechToText", "GamingApp", "Office.",
    "Paint", "People", "ScreenSketch", "StorePurchase", "VideoExtensions",
    "YourPhone", "Zune.", "Edge", "MixedReality", "Weather", "Todo",
    "PowerAutomate", "WebMedia", "WebpExtension", "Services.", "Security",
    "Notebook", "Notepad", "StickyNotes", "Calculator", "Camera", "Photos",
)

SYSTEM_APP_KEYWORDS = (
    "system", "service", "support", "client", "tool", "framework",
    "update", "security", "notebook", "microsoft", "windows",
)

_DIGIT_RUN = re.compile(r"\d{5,}")


class _AppxRow(msgspec.Struct):
    name: Optional[str] = msgspec.field(default=None, name="Name")
    package_family_name: Optional[str] = msgspec.field(default=None, name="PackageFamilyName")
    install_location: Optional[str] = msgspec.field(default=None, name="InstallLocation")


_appx_decoder = msgspec.json.Decoder(Union[List[_AppxRow], _AppxRow, None])


async def communicate_or_kill(process: asyncio.subprocess.Process):
    """communicate(), but a timeout or cancel also ends the child process."""
    try:
        return await process.communicate()
    except (asyncio.CancelledError, asyncio.TimeoutError):
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise


def parse_appx_output(output: bytes) -> List[PackageInfo]:
    """Decode ConvertTo-Json output, which is an object for a single package."""
    if not output.strip():
        return []
    rows = _appx_decoder.decode(output)
    if rows is None:
        return []
    if isinstance(rows, _AppxRow):
        rows = [rows]
    return [
        PackageInfo(
            name=row.name,
            package_family_name=row.package_family_name,
            install_location=row.install_location,
        )
        for row in rows
        if row.name and row.package_family_name
    ]


async def powershell_package_inventory() -> List[PackageInfo]:
    """Store-signed, non-framework packages of the current user (Windows only)."""
    if not IS_WINDOWS:
        return []

    try:
        process = await asyncio.create_subprocess_exec(
            "powershell", "-NoProfile", "-NonInteractive", "-Command", POWERSHELL_QUERY,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"Cannot start PowerShell for the package inventory: {e}")
        return []
    stdout, stderr = await communicate_or_kill(process)
    if process.returncode != 0:
        logger.error(f"Get-AppxPackage failed: {stderr.decode(errors='ignore').strip()}")
        return []
    return parse_appx_output(stdout)


def is_likely_system_app(name: str) -> bool:
    lowered = name.lower()
    return "game" not in lowered and any(k in lowered for k in SYSTEM_APP_KEYWORDS)


def has_too_many_numbers(name: str) -> bool:
    """More than 40% digits, or a run of five or more digits."""
    if not name:
        return False
    digits = sum(1 for c in name if c.isdigit())
    return digits / len(name) > 0.4 or bool(_DIGIT_RUN.search(name))


def is_excluded_package(package: PackageInfo) -> bool:
    name = package.name
    family = package.package_family_name
    if any(name.startswith(p) or p in family for p in EXCLUDED_PACKAGE_PATTERNS):
        return True
    if "windows" in name.lower() or "windows" in family.lower():
        return True
    if is_likely_system_app(name) or is_likely_system_app(family):
        return True
    return has_too_many_numbers(name) or has_too_many_numbers(family)


def package_display_name(name: str) -> str:
    # "Publisher.Title" identity names carry the publisher before the first dot
    _, _, title = name.partition(".")
    return clean_game_name(title or name)


class XboxAdapter(LauncherAdapter):
    """
    Xbox / Microsoft Store titles from the OS package inventory.

    Package names are less structured than file paths, so besides the
    first-party exclusions the classifier's noise heuristics are repeated
    here on the package name and family name.
    """

    launcher = Launcher.XBOX
    config_key = LauncherPathName.XBOX

    def __init__(self, inventory: Optional[PackageInventory] = None, roots=None):
        super().__init__(roots)
        self._inventory = inventory or powershell_package_inventory

    async def scan(self) -> List[CandidateEntry]:
        packages = await self._inventory()

        candidates = []
        seen = set()
        for package in packages:
            if not package.install_location or is_excluded_package(package):
                continue
            if package.package_family_name in seen:
                continue
            seen.add(package.package_family_name)
            candidates.append(
                self.make_candidate(
                    package.package_family_name,
                    package_display_name(package.name),
                    executable_path=None,
                    install_path=package.install_location,
                    package_family_name=package.package_family_name,
                )
            )

        logger.info(f"Xbox: {len(candidates)} games out of {len(packages)} packages")
        return candidates
