"""Session persistence backing cookie authentication.

Two implementations mirror the storage duality: :class:`PostgresSessionStore`
keeps sessions in the ``user_sessions`` table, :class:`MemorySessionStore`
keeps them in a dict. The facade's ``sessions`` attribute routes between them.
"""

from __future__ import annotations

import abc
import json
import logging
from datetime import datetime, timedelta
from typing import Any

from paintrack.db import Database
from paintrack.storage.errors import StorageUnavailableError
from paintrack.storage.models import utcnow

logger = logging.getLogger(__name__)


class SessionStore(abc.ABC):
    """Session data keyed by session id, each entry with an expiry."""

    @abc.abstractmethod
    async def get(self, sid: str) -> dict[str, Any] | None:
        """Return the session data, or None when unknown or expired."""

    @abc.abstractmethod
    async def set(self, sid: str, data: dict[str, Any], max_age: float) -> None:
        """Create or replace a session that expires ``max_age`` seconds from now."""

    @abc.abstractmethod
    async def destroy(self, sid: str) -> None:
        """Delete a session. No-op if it does not exist."""

    @abc.abstractmethod
    async def prune_expired(self) -> int:
        """Delete expired sessions and return how many were removed."""


class MemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, tuple[dict[str, Any], datetime]] = {}

    async def get(self, sid: str) -> dict[str, Any] | None:
        item = self._sessions.get(sid)
        if item is None:
            return None
        data, expires_at = item
        if expires_at <= utcnow():
            del self._sessions[sid]
            return None
        return dict(data)

    async def set(self, sid: str, data: dict[str, Any], max_age: float) -> None:
        self._sessions[sid] = (dict(data), utcnow() + timedelta(seconds=max_age))

    async def destroy(self, sid: str) -> None:
        self._sessions.pop(sid, None)

    async def prune_expired(self) -> int:
        now = utcnow()
        expired = [sid for sid, (_, expires_at) in self._sessions.items() if expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)


class PostgresSessionStore(SessionStore):
    """Sessions in the ``user_sessions`` table (``sid``, ``sess`` JSONB, ``expire``).

    Any database failure is raised as StorageUnavailableError.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def get(self, sid: str) -> dict[str, Any] | None:
        try:
            value = await self.database.require_pool().fetchval(
                "SELECT sess FROM user_sessions WHERE sid = $1 AND expire > now()",
                sid,
            )
        except Exception as exc:
            raise StorageUnavailableError(f"session get failed: {exc}") from exc
        if value is None:
            return None
        return json.loads(value) if isinstance(value, str) else value

    async def set(self, sid: str, data: dict[str, Any], max_age: float) -> None:
        try:
            await self.database.require_pool().execute(
                """
                INSERT INTO user_sessions (sid, sess, expire)
                VALUES ($1, $2::jsonb, $3)
                ON CONFLICT (sid) DO UPDATE
                    SET sess = EXCLUDED.sess,
                        expire = EXCLUDED.expire
                """,
                sid,
                json.dumps(data),
                utcnow() + timedelta(seconds=max_age),
            )
        except Exception as exc:
            raise StorageUnavailableError(f"session set failed: {exc}") from exc

    async def destroy(self, sid: str) -> None:
        try:
            await self.database.require_pool().execute(
                "DELETE FROM user_sessions WHERE sid = $1", sid
            )
        except Exception as exc:
            raise StorageUnavailableError(f"session destroy failed: {exc}") from exc

    async def prune_expired(self) -> int:
        try:
            status = await self.database.require_pool().execute(
                "DELETE FROM user_sessions WHERE expire <= now()"
            )
        except Exception as exc:
            raise StorageUnavailableError(f"session prune failed: {exc}") from exc
        # asyncpg returns a command tag such as "DELETE 3".
        removed = int(status.split()[-1]) if status else 0
        if removed:
            logger.info("Pruned %d expired session(s)", removed)
        return removed
