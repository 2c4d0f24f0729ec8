"""
Playtime tracking by process liveness.

Titles launched through the app are polled every few seconds ("focused"); the
whole catalog is checked at a lower rate to catch titles started elsewhere.
A session ends once its process has been gone for the warm buffer, so a
launcher restarting the game or a short crash does not split it. Whole
minutes are written through the catalog store's lock.
"""

import asyncio
import ntpath
import time
from typing import Callable, Dict, FrozenSet, Optional

import psutil

from .database import CatalogStore
from .exceptions import RecordNotFoundError
from .logger import setup_logger
from .models import CatalogRecord, utc_now

logger = setup_logger()

IsRunning = Callable[[str], bool]

FOCUSED_POLL_SECONDS = 5
BACKGROUND_POLL_SECONDS = 60
WARM_BUFFER_SECONDS = 60


def running_process_names() -> FrozenSet[str]:
    """Lower-cased executable names of every process we can see."""
    names = set()
    for process in psutil.process_iter(["name"]):
        name = process.info.get("name")
        if name:
            names.add(name.lower())
    return frozenset(names)


def executable_base_name(record: CatalogRecord) -> Optional[str]:
    if not record.executable_path:
        return None
    # ntpath splits on both separators, catalog paths are usually Windows paths
    return ntpath.basename(record.executable_path).lower() or None


class _Session:
    __slots__ = ("record_id", "name", "exe_name", "started", "last_seen", "focused")

    def __init__(self, record_id: str, name: str, exe_name: str, now: float, focused: bool):
        self.record_id = record_id
        self.name = name
        self.exe_name = exe_name
        self.started = now
        self.last_seen = now
        self.focused = focused


class ProcessWatcher:
    """
    Args:
        store: Catalog store the finished sessions are written to
        is_running: Process-liveness check by executable base name; by
            default a psutil snapshot is taken once per poll
        clock: Monotonic seconds, injectable for tests
        warm_buffer: Seconds a process may be missing before its session ends
    """

    def __init__(
        self,
        store: CatalogStore,
        is_running: Optional[IsRunning] = None,
        clock: Callable[[], float] = time.monotonic,
        warm_buffer: float = WARM_BUFFER_SECONDS,
        focused_interval: float = FOCUSED_POLL_SECONDS,
        background_interval: float = BACKGROUND_POLL_SECONDS,
    ):
        self.store = store
        self._is_running = is_running
        self._clock = clock
        self.warm_buffer = warm_buffer
        self.focused_interval = focused_interval
        self.background_interval = background_interval
        self.sessions: Dict[str, _Session] = {}
        self._stop = asyncio.Event()

    def _running_check(self) -> IsRunning:
        if self._is_running is not None:
            return self._is_running
        snapshot = running_process_names()
        return lambda name: name.lower() in snapshot

    def track(self, record: CatalogRecord) -> bool:
        """Start a focused session for a title the app just launched."""
        exe_name = executable_base_name(record)
        if exe_name is None:
            logger.debug(f"Not tracking {record.name}: no executable to watch")
            return False
        self.sessions[record.id] = _Session(record.id, record.name, exe_name, self._clock(), True)
        logger.info(f"Tracking playtime for {record.name} ({exe_name})")
        return True

    async def _end_if_expired(self, session: _Session, now: float):
        if now - session.last_seen <= self.warm_buffer:
            return

        del self.sessions[session.record_id]
        minutes = round((session.last_seen - session.started) / 60)
        if minutes <= 0:
            return

        try:
            await self.store.record_play_session(session.record_id, minutes, ended_at=utc_now())
            logger.info(f"Saved {minutes}m of playtime for {session.name}")
        except RecordNotFoundError:
            logger.debug(f"{session.name} was removed from the catalog, session dropped")

    async def poll_focused(self):
        focused = [s for s in self.sessions.values() if s.focused]
        if not focused:
            return

        is_running = self._running_check()
        now = self._clock()
        for session in focused:
            if is_running(session.exe_name):
                session.last_seen = now
            else:
                await self._end_if_expired(session, now)

    async def poll_background(self):
        is_running = self._running_check()
        now = self._clock()

        for record in await self.store.load():
            exe_name = executable_base_name(record)
            if exe_name is None:
                continue
            session = self.sessions.get(record.id)

            if is_running(exe_name):
                if session is None:
                    logger.info(f"Detected {record.name} launched outside the app")
                    self.sessions[record.id] = _Session(record.id, record.name, exe_name, now, False)
                else:
                    session.last_seen = now
            elif session is not None and not session.focused:
                await self._end_if_expired(session, now)

    async def _loop(self, poll, interval: float):
        while not self._stop.is_set():
            await poll()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def run(self):
        """Run both polling loops until stop() is called."""
        self._stop.clear()
        await asyncio.gather(
            self._loop(self.poll_focused, self.focused_interval),
            self._loop(self.poll_background, self.background_interval),
        )

    def stop(self):
        self._stop.set()

