"""
Per-conversation turn serialization.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class ConversationLocks:
    """
    One ``asyncio.Lock`` per conversation id.

    Waiters are woken in arrival order. A lock is dropped once no turn holds
    or waits for it, so idle conversations do not accumulate.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, conversation_id: str):
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._users[conversation_id] = self._users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[conversation_id] -= 1
            if self._users[conversation_id] == 0:
                self._users.pop(conversation_id, None)
                self._locks.pop(conversation_id, None)

    def __len__(self) -> int:
        return len(self._locks)
