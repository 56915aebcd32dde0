"""
Session store for persistent conversation state.
"""

import asyncio
import json
import sqlite3
from datetime import datetime, timedelta
from typing import List, Optional

from ...core.models import Session
from ...config import Settings, get_settings
from ...utils.logging import get_logger

logger = get_logger("receptionist.state")


class SessionStore:
    """Keyed, expiring conversation sessions in a SQLite database."""

    def __init__(self, settings: Optional[Settings] = None, db_path: Optional[str] = None):
        self.settings = settings or get_settings()
        self.state_db = db_path or self.settings.state_db_path
        self.timeout = timedelta(minutes=self.settings.session_timeout_minutes)
        self._lock = asyncio.Lock()
        self._table_ready = False

    async def _ensure_table(self) -> None:
        """Ensure the sessions table exists."""
        if self._table_ready:
            return

        def _create_table():
            conn = sqlite3.connect(self.state_db)
            try:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS sessions (
                        conversation_id TEXT PRIMARY KEY,
                        data TEXT NOT NULL,
                        last_activity_at TEXT NOT NULL
                    )
                    """
                )
                conn.commit()
            finally:
                conn.close()

        await asyncio.to_thread(_create_table)
        self._table_ready = True

    def is_expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_activity_at > self.timeout

    async def load(self, conversation_id: str, now: datetime) -> Session:
        """
        Return the stored session, or a fresh one when absent or expired.

        An expired row is deleted so it can never be read back.
        """
        await self._ensure_table()

        async with self._lock:
            def _fetch() -> Optional[str]:
                conn = sqlite3.connect(self.state_db)
                try:
                    cur = conn.execute(
                        "SELECT data FROM sessions WHERE conversation_id = ?",
                        (conversation_id,),
                    )
                    row = cur.fetchone()
                finally:
                    conn.close()
                return row[0] if row else None

            raw = await asyncio.to_thread(_fetch)

        fresh = Session(id=conversation_id, created_at=now, last_activity_at=now)
        if raw is None:
            return fresh

        try:
            session = Session.from_dict(json.loads(raw))
        except Exception as e:
            logger.warning(f"state: unreadable session {conversation_id}, starting fresh: {e}")
            await self.clear(conversation_id)
            return fresh

        if self.is_expired(session, now):
            logger.info(f"state: session {conversation_id} expired")
            await self.clear(conversation_id)
            return fresh

        return session

    async def save(self, session: Session) -> None:
        """Atomically replace the stored session."""
        await self._ensure_table()
        data = json.dumps(session.to_dict(), ensure_ascii=False)
        last_activity = session.last_activity_at.isoformat()

        async with self._lock:
            def _write() -> None:
                conn = sqlite3.connect(self.state_db)
                try:
                    conn.execute(
                        "INSERT OR REPLACE INTO sessions (conversation_id, data, last_activity_at) "
                        "VALUES (?, ?, ?)",
                        (session.id, data, last_activity),
                    )
                    conn.commit()
                finally:
                    conn.close()

            await asyncio.to_thread(_write)

    async def clear(self, conversation_id: str) -> None:
        """Remove stored state for a conversation."""
        await self._ensure_table()

        async with self._lock:
            def _delete() -> None:
                conn = sqlite3.connect(self.state_db)
                try:
                    conn.execute(
                        "DELETE FROM sessions WHERE conversation_id = ?", (conversation_id,)
                    )
                    conn.commit()
                finally:
                    conn.close()

            await asyncio.to_thread(_delete)

    async def sweep_expired(self, now: datetime) -> List[str]:
        """Delete every session idle for longer than the timeout; return their ids."""
        await self._ensure_table()
        cutoff = now - self.timeout

        async with self._lock:
            def _sweep() -> List[str]:
                conn = sqlite3.connect(self.state_db)
                try:
                    rows = conn.execute(
                        "SELECT conversation_id, last_activity_at FROM sessions"
                    ).fetchall()
                    expired = [
                        cid for cid, ts in rows
                        if datetime.fromisoformat(ts) < cutoff
                    ]
                    conn.executemany(
                        "DELETE FROM sessions WHERE conversation_id = ?",
                        [(cid,) for cid in expired],
                    )
                    conn.commit()
                finally:
                    conn.close()
                return expired

            expired = await asyncio.to_thread(_sweep)

        if expired:
            logger.info(f"state: swept {len(expired)} expired session(s)")
        return expired
