"""
Per-launcher stats capability table.

build_stats_providers() maps each launcher to an async callable that takes a
catalog record and returns a StatsResult, or None when the launcher has no
stats to offer. Launchers without an API map to unavailable(), so the
record's provenance stays "unknown".
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

import aiohttp
import msgspec

from .config import config_manager
from .constants import Launcher
from .database import CatalogStore
from .logger import setup_logger
from .models import Achievement, Achievements, CatalogRecord, StatsResult

logger = setup_logger()

StatsProvider = Callable[[CatalogRecord], Awaitable[Optional[StatsResult]]]


async def unavailable(record: CatalogRecord) -> Optional[StatsResult]:
    return None


class _OwnedGame(msgspec.Struct):
    appid: int
    playtime_forever: int = 0
    rtime_last_played: int = 0


class _OwnedGamesBody(msgspec.Struct):
    games: List[_OwnedGame] = msgspec.field(default_factory=list)


class _OwnedGamesResponse(msgspec.Struct):
    response: _OwnedGamesBody = msgspec.field(default_factory=_OwnedGamesBody)


class _PlayerAchievement(msgspec.Struct):
    apiname: str
    achieved: int = 0
    unlocktime: int = 0
    name: Optional[str] = None
    description: Optional[str] = None


class _PlayerStats(msgspec.Struct):
    success: bool = False
    achievements: List[_PlayerAchievement] = msgspec.field(default_factory=list)


class _PlayerStatsResponse(msgspec.Struct):
    playerstats: _PlayerStats = msgspec.field(default_factory=_PlayerStats)


def _from_epoch(seconds: int) -> Optional[datetime]:
    return datetime.fromtimestamp(seconds, tz=timezone.utc) if seconds else None


class SteamWebApiStats:
    """
    Steam Web API stats provider (needs an API key and a SteamID64).

    Owned-games playtime is fetched once per instance and shared by every
    record; achievements are fetched per app.
    """

    OWNED_GAMES_URL = "https://api.steampowered.com/IPlayerService/GetOwnedGames/v1/"
    ACHIEVEMENTS_URL = "https://api.steampowered.com/ISteamUserStats/GetPlayerAchievements/v1/"
    REQUEST_TIMEOUT = 10

    def __init__(self, api_key: str, steam_id: str, session: Optional[aiohttp.ClientSession] = None):
        self.api_key = api_key
        self.steam_id = steam_id
        self._session = session
        self._owns_session = session is None
        self._owned_games: Optional[Dict[str, _OwnedGame]] = None
        self._owned_lock = asyncio.Lock()

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

    async def _get_json(self, url: str, params: Dict[str, str], type):
        async with self._get_session().get(url, params=params) as response:
            if response.status != 200:
                logger.debug(f"Steam Web API {url} returned HTTP {response.status}")
                return None
            return msgspec.json.decode(await response.read(), type=type)

    async def owned_games(self) -> Dict[str, _OwnedGame]:
        async with self._owned_lock:
            if self._owned_games is None:
                params = {
                    "key": self.api_key,
                    "steamid": self.steam_id,
                    "include_played_free_games": "1",
                    "format": "json",
                }
                result = await self._get_json(self.OWNED_GAMES_URL, params, _OwnedGamesResponse)
                games = result.response.games if result else []
                self._owned_games = {str(g.appid): g for g in games}
                logger.info(f"Steam Web API: {len(self._owned_games)} owned games")
            return self._owned_games

    async def achievements(self, app_id: str) -> Optional[Achievements]:
        params = {"key": self.api_key, "steamid": self.steam_id, "appid": app_id, "l": "english"}
        result = await self._get_json(self.ACHIEVEMENTS_URL, params, _PlayerStatsResponse)
        if result is None or not result.playerstats.success:
            return None

        items = [
            Achievement(
                name=a.name or a.apiname,
                description=a.description,
                unlocked=bool(a.achieved),
                unlock_time=_from_epoch(a.unlocktime),
            )
            for a in result.playerstats.achievements
        ]
        return Achievements(
            unlocked=sum(1 for a in items if a.unlocked),
            total=len(items),
            items=items,
        )

    async def __call__(self, record: CatalogRecord) -> Optional[StatsResult]:
        if not record.steam_app_id:
            return None

        owned = (await self.owned_games()).get(record.steam_app_id)
        achievements = await self.achievements(record.steam_app_id)
        if owned is None and achievements is None:
            return None

        return StatsResult(
            playtime_minutes=owned.playtime_forever if owned else None,
            last_played=_from_epoch(owned.rtime_last_played) if owned else None,
            achievements=achievements,
        )


def build_stats_providers(steam: Optional[StatsProvider] = None) -> Dict[Launcher, StatsProvider]:
    """
    Capability table for every launcher.

    Steam uses the given provider, or the Web API when credentials are
    configured. Every other launcher is unavailable.
    """
    if steam is None:
        api_key, steam_id = config_manager.get_steam_api_credentials()
        if api_key:
            steam = SteamWebApiStats(api_key, steam_id)

    providers: Dict[Launcher, StatsProvider] = {launcher: unavailable for launcher in Launcher}
    if steam is not None:
        providers[Launcher.STEAM] = steam
    return providers


async def refresh_stats(store: CatalogStore, providers: Dict[Launcher, StatsProvider]) -> int:
    """
    Ask each record's provider for stats and store what comes back.

    A provider failure is logged and skips that record only. Returns the
    number of records updated.
    """
    updated = 0
    for record in await store.load():
        provider = providers.get(record.launcher, unavailable)
        if provider is unavailable:
            continue
        try:
            result = await provider(record)
        except (aiohttp.ClientError, asyncio.TimeoutError, msgspec.DecodeError) as e:
            logger.warning(f"Stats lookup failed for {record.name}: {e}")
            continue
        if result is None:
            continue
        await store.apply_stats(record.id, result)
        updated += 1

    logger.info(f"Stats refreshed for {updated} records")
    return updated
