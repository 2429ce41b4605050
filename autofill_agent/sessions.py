from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import SessionInfo

logger = logging.getLogger(__name__)


@dataclass
class BrowserSession:
    """A browser left open after a successful run, owned by the service layer."""

    url: str
    browser: Any = None
    page: Any = None
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def info(self) -> SessionInfo:
        return SessionInfo(session_id=self.session_id, url=self.url, created_at=self.created_at)

    @property
    def disconnected(self) -> bool:
        return self.browser is not None and not self.browser.is_connected()

    async def close(self) -> None:
        if self.browser is not None and self.browser.is_connected():
            await self.browser.close()


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: Dict[str, BrowserSession] = {}
        self._lock = asyncio.Lock()

    async def add(self, session: BrowserSession) -> None:
        async with self._lock:
            self._prune()
            self._sessions[session.session_id] = session

    def _prune(self) -> None:
        # browsers closed by hand are forgotten
        for session_id in [sid for sid, session in self._sessions.items() if session.disconnected]:
            logger.info("Dropping disconnected browser session %s", session_id)
            del self._sessions[session_id]

    def get(self, session_id: str) -> Optional[BrowserSession]:
        return self._sessions.get(session_id)

    def list(self) -> List[SessionInfo]:
        self._prune()
        return [session.info() for session in self._sessions.values()]

    async def close(self, session_id: str) -> bool:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        logger.info("Closed browser session %s (%s)", session_id, session.url)
        return True

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.close()
