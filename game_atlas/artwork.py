"""
Title/artwork lookup backed by the public Steam store search.

Works for titles from any launcher: the store search is name-based, and the
matched Steam app id gives library cover and hero images on the Steam CDN.
"""

import asyncio
from typing import List, Optional, Protocol

import aiohttp
import msgspec

from .exceptions import LookupFailedError
from .launchers.steam import steam_background_uri, steam_cover_uri
from .logger import setup_logger
from .models import ArtworkMatch

logger = setup_logger()


class ArtworkLookup(Protocol):
    async def lookup(self, title: str) -> Optional[ArtworkMatch]:
        """Best match for title, None when there is none.

        Raises LookupFailedError on transient failures.
        """
        ...


class _StoreItem(msgspec.Struct):
    id: int
    name: str
    type: str = "app"


class _StoreSearchResponse(msgspec.Struct):
    total: int = 0
    items: List[_StoreItem] = msgspec.field(default_factory=list)


_search_decoder = msgspec.json.Decoder(_StoreSearchResponse)


class SteamStoreLookup:
    """
    ArtworkLookup over store.steampowered.com/api/storesearch.

    Use as an async context manager, or call close() when done; a session
    passed in by the caller is left open.
    """

    SEARCH_URL = "https://store.steampowered.com/api/storesearch/"
    REQUEST_TIMEOUT = 10

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, country: str = "US"):
        self._session = session
        self._owns_session = session is None
        self.country = country

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.REQUEST_TIMEOUT)
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def lookup(self, title: str) -> Optional[ArtworkMatch]:
        params = {"term": title, "l": "english", "cc": self.country}
        try:
            async with self._get_session().get(self.SEARCH_URL, params=params) as response:
                if response.status != 200:
                    raise LookupFailedError(f"Steam store search returned HTTP {response.status}")
                content = await response.read()
        except asyncio.TimeoutError as e:
            raise LookupFailedError(f"Steam store search timed out for '{title}'") from e
        except aiohttp.ClientError as e:
            raise LookupFailedError(f"Steam store search failed for '{title}': {e}") from e

        try:
            result = _search_decoder.decode(content)
        except msgspec.DecodeError as e:
            raise LookupFailedError(f"Unexpected Steam store response for '{title}': {e}") from e

        apps = [item for item in result.items if item.type == "app"]
        if not apps:
            logger.debug(f"No Steam store result for '{title}'")
            return None

        best = apps[0]
        return ArtworkMatch(
            title=best.name,
            cover_uri=steam_cover_uri(str(best.id)),
            background_uri=steam_background_uri(str(best.id)),
        )
