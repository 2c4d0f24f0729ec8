"""
Async VDF Parser for Steam Manifest Files

Parses Steam's VDF (Valve Data Format) files used in:
- libraryfolders.vdf: Steam library locations
- appmanifest_*.acf: Installed app metadata

Uses pre-compiled regex for key-value extraction and aiofiles for async I/O.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from .logger import setup_logger

logger = setup_logger()

# StateFlags bit set by Steam once every depot of an app is on disk.
# Other bits (update running, files missing, ...) may be set alongside it.
STATE_FULLY_INSTALLED = 4


class VDFParser:
    """
    Lightweight async VDF parser for Steam manifest files.

    VDF format is a simple key-value structure with nested blocks:
    "key"    "value"
    "block"
    {
        "nested_key"    "nested_value"
    }
    """

    _KV_PATTERN = re.compile(r'"([^"]+)"\s+"([^"]*)"')
    _BLOCK_START = re.compile(r'"([^"]+)"\s*(\{)?\s*$')

    @classmethod
    async def parse_file(cls, file_path: Path, encoding: str = 'utf-8') -> Dict[str, Any]:
        """
        Parse a VDF file and return its contents as a nested dictionary.

        Args:
            file_path: Path to the VDF file
            encoding: File encoding (default utf-8)

        Returns:
            Parsed VDF data as nested dict, empty when the file can't be read
        """
        try:
            async with aiofiles.open(file_path, 'r', encoding=encoding, errors='ignore') as f:
                content = await f.read()
        except OSError as e:
            logger.error(f"Error reading VDF file {file_path}: {e}")
            return {}

        return cls.parse_content(content)

    @classmethod
    def parse_content(cls, content: str) -> Dict[str, Any]:
        """
        Parse VDF content string into nested dictionary.

        Uses a simple stack-based parser for nested blocks. Keys keep their
        original case; escaped backslashes in values are unescaped.
        """
        result = {}
        stack = [result]
        current_key = None

        for line in content.splitlines():
            line = line.strip()

            if not line or line.startswith('//'):
                continue

            kv_match = cls._KV_PATTERN.match(line)
            if kv_match:
                key, value = kv_match.groups()
                stack[-1][key] = value.replace('\\\\', '\\')
                continue

            block_match = cls._BLOCK_START.match(line)
            if block_match:
                current_key = block_match.group(1)
                if block_match.group(2):
                    new_block = {}
                    stack[-1][current_key] = new_block
                    stack.append(new_block)
                    current_key = None
                continue

            if line == '{' and current_key:
                new_block = {}
                stack[-1][current_key] = new_block
                stack.append(new_block)
                current_key = None
                continue

            if line == '}':
                if len(stack) > 1:
                    stack.pop()
                continue

        return result

    @classmethod
    async def parse_library_folders(cls, vdf_path: Path) -> List[Path]:
        """
        Parse libraryfolders.vdf to extract all Steam library paths.

        Args:
            vdf_path: Path to libraryfolders.vdf

        Returns:
            List of existing steamapps directories
        """
        libraries = []
        data = await cls.parse_file(vdf_path)

        # "libraryfolders" { "0" { "path" "C:\\Program Files (x86)\\Steam" ... } }
        library_data = data.get('libraryfolders') or data.get('LibraryFolders') or data

        for key, value in library_data.items():
            if isinstance(value, dict) and 'path' in value:
                lib_path = Path(value['path']) / 'steamapps'
            elif isinstance(value, str) and (key == 'path' or key.isdigit()):
                # Older format: "1" "D:\\SteamLibrary"
                lib_path = Path(value) / 'steamapps'
            else:
                continue

            if lib_path.is_dir():
                libraries.append(lib_path)
                logger.debug(f"Found Steam library: {lib_path}")

        logger.debug(f"Found {len(libraries)} Steam library folders in {vdf_path}")
        return libraries

    @classmethod
    async def parse_appmanifest(cls, acf_path: Path) -> Optional[Dict[str, Any]]:
        """
        Parse appmanifest_*.acf to extract app metadata.

        Args:
            acf_path: Path to appmanifest_*.acf file

        Returns:
            Dict with appid, name, installdir and state_flags, or None when
            the manifest lacks an appid or install directory
        """
        data = await cls.parse_file(acf_path)
        app_state = data.get('AppState') or data.get('appstate') or data

        appid = app_state.get('appid')
        installdir = app_state.get('installdir')
        if not appid or not installdir:
            logger.debug(f"Skipping incomplete appmanifest {acf_path}")
            return None

        try:
            state_flags = int(app_state.get('StateFlags', '0'))
        except ValueError:
            state_flags = 0

        return {
            'appid': appid,
            'name': app_state.get('name') or f"App {appid}",
            'installdir': installdir,
            'state_flags': state_flags,
        }

    @staticmethod
    def is_fully_installed(state_flags: int) -> bool:
        return bool(state_flags & STATE_FULLY_INSTALLED)
