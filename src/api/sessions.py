"""
Per-browser page sessions

Each browser session (identified by a cookie) gets its own PageController,
mounted on first use. The store is bounded; the least recently used
session is torn down when a new one would exceed the limit.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from src.crowdsource.page_controller import PageController

logger = logging.getLogger(__name__)

SESSION_COOKIE = "pw_session"


class SessionStore:
    """Bounded LRU map of session id -> mounted PageController."""

    def __init__(self, factory: Callable[[], PageController], max_sessions: int = 256):
        """
        Initialize store.

        Args:
            factory: Builds a fresh, unmounted controller
            max_sessions: Number of live sessions kept before eviction
        """
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")

        self.factory = factory
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, PageController]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def peek(self, session_id: Optional[str]) -> Optional[PageController]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    async def get_or_create(self, session_id: Optional[str]) -> Tuple[str, PageController]:
        """
        Return the controller for a session, mounting a new one if needed.

        Returns:
            (session_id, controller); the id is new when the given one
            was missing or unknown
        """
        async with self._lock:
            if session_id and session_id in self._sessions:
                self._sessions.move_to_end(session_id)
                return session_id, self._sessions[session_id]

            new_id = uuid.uuid4().hex
            controller = self.factory()
            self._sessions[new_id] = controller
            self._evict()

        await controller.mount()
        logger.info(f"Session {new_id[:8]} mounted ({len(self._sessions)} active)")
        return new_id, controller

    def _evict(self) -> None:
        while len(self._sessions) > self.max_sessions:
            old_id, controller = self._sessions.popitem(last=False)
            controller.teardown()
            logger.info(f"Session {old_id[:8]} evicted")

    def close(self, session_id: str) -> None:
        controller = self._sessions.pop(session_id, None)
        if controller is not None:
            controller.teardown()

    def close_all(self) -> None:
        while self._sessions:
            _, controller = self._sessions.popitem()
            controller.teardown()
