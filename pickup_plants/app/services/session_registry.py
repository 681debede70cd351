import asyncio
import logging
import secrets
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional, Tuple

from pickup_plants.app.services.auth_provider import AuthProvider
from pickup_plants.app.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], AuthProvider]


class SessionRegistry:
    """Owns one SessionManager (and provider client) per browser session.

    Sessions untouched for ``idle_timeout_seconds`` are dropped, and once
    ``max_sessions`` are live the least recently used one makes room for a new one.
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        refresh_margin_seconds: int = 60,
        idle_timeout_seconds: float = 1800.0,
        max_sessions: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._provider_factory = provider_factory
        self._refresh_margin_seconds = refresh_margin_seconds
        self._idle_timeout_seconds = idle_timeout_seconds
        self._max_sessions = max(1, max_sessions)
        self._clock = clock
        # session id -> (manager, last seen); oldest first
        self._managers: "OrderedDict[str, Tuple[SessionManager, float]]" = OrderedDict()
        self._restores: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._managers)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._managers

    def new_provider(self) -> AuthProvider:
        return self._provider_factory()

    def create(self, refresh_token: Optional[str] = None) -> Tuple[str, SessionManager]:
        """Register a new browser session and start restoring it in the background.

        Callers await ``manager.wait_until_resolved()`` before trusting its state.
        """
        now = self._clock()
        self.evict_idle(now)
        while len(self._managers) >= self._max_sessions:
            oldest = next(iter(self._managers))
            logger.info("session limit reached (%d); evicting least recently used", self._max_sessions)
            self._remove(oldest)

        session_id = secrets.token_urlsafe(32)
        manager = SessionManager(self.new_provider(), refresh_margin_seconds=self._refresh_margin_seconds)
        self._managers[session_id] = (manager, now)
        task = asyncio.get_running_loop().create_task(manager.start(refresh_token))
        self._restores[session_id] = task
        task.add_done_callback(lambda t, sid=session_id: self._start_finished(sid, t))
        logger.debug("created browser session (%d active)", len(self._managers))
        return session_id, manager

    def _start_finished(self, session_id: str, task: asyncio.Task) -> None:
        if self._restores.get(session_id) is task:
            del self._restores[session_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("session restore crashed", exc_info=task.exception())

    def get(self, session_id: Optional[str]) -> Optional[SessionManager]:
        now = self._clock()
        self.evict_idle(now)
        if not session_id:
            return None
        entry = self._managers.get(session_id)
        if entry is None:
            return None
        manager = entry[0]
        self._managers[session_id] = (manager, now)
        self._managers.move_to_end(session_id)
        return manager

    def evict_idle(self, now: Optional[float] = None) -> int:
        if now is None:
            now = self._clock()
        cutoff = now - self._idle_timeout_seconds
        expired = []
        for session_id, (_, last_seen) in self._managers.items():
            if last_seen > cutoff:
                break
            expired.append(session_id)
        for session_id in expired:
            self._remove(session_id)
        if expired:
            logger.debug("evicted %d idle browser sessions", len(expired))
        return len(expired)

    def _remove(self, session_id: str) -> None:
        entry = self._managers.pop(session_id, None)
        task = self._restores.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()
        if entry is not None:
            entry[0].stop()

    def discard(self, session_id: Optional[str]) -> None:
        if session_id:
            self._remove(session_id)

    def close(self) -> None:
        for session_id in list(self._managers):
            self._remove(session_id)
        for task in list(self._restores.values()):
            task.cancel()
        self._restores.clear()
