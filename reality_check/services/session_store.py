"""Conversation session store.

The research pipeline receives a :class:`SessionStore` rather than reaching
for a module-level map, so the storage policy is explicit and swappable.
``InMemorySessionStore`` keeps conversations in process memory and evicts
any conversation idle for longer than ``idle_ttl_sec``; eviction happens
lazily on access and in bulk via :meth:`sweep`.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Callable, Dict, Optional

import structlog

from ..core import config
from ..models.conversation import Conversation

logger = structlog.get_logger(__name__)


class SessionStore:
    """Interface for conversation stores."""

    async def get(self, conversation_id: str) -> Optional[Conversation]:  # pragma: no cover - interface
        raise NotImplementedError

    async def put(self, conversation: Conversation) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def delete(self, conversation_id: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    async def create(
        self, user_id: Optional[str] = None, conversation_id: Optional[str] = None
    ) -> Conversation:
        conversation = Conversation(
            id=conversation_id or str(uuid.uuid4()),
            user_id=user_id or "anonymous",
        )
        await self.put(conversation)
        return conversation


class InMemorySessionStore(SessionStore):
    def __init__(
        self,
        idle_ttl_sec: float = config.CONVERSATION_IDLE_TTL_SEC,
        max_messages: int = config.CONVERSATION_MAX_MESSAGES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if idle_ttl_sec <= 0:
            raise ValueError("idle_ttl_sec must be positive")
        self.idle_ttl_sec = idle_ttl_sec
        self.max_messages = max_messages
        self._clock = clock
        self._items: Dict[str, Conversation] = {}
        self._touched: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _expired_locked(self, conversation_id: str, now: float) -> bool:
        touched = self._touched.get(conversation_id)
        return touched is not None and now - touched > self.idle_ttl_sec

    def _evict_locked(self, conversation_id: str) -> None:
        self._items.pop(conversation_id, None)
        self._touched.pop(conversation_id, None)

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        if not conversation_id:
            return None
        async with self._lock:
            now = self._clock()
            if self._expired_locked(conversation_id, now):
                self._evict_locked(conversation_id)
                logger.info("Evicted idle conversation", conversation_id=conversation_id)
                return None
            conversation = self._items.get(conversation_id)
            if conversation is not None:
                self._touched[conversation_id] = now
            return conversation

    async def put(self, conversation: Conversation) -> None:
        async with self._lock:
            if self.max_messages and len(conversation.messages) > self.max_messages:
                conversation.messages = conversation.messages[-self.max_messages:]
            self._items[conversation.id] = conversation
            self._touched[conversation.id] = self._clock()

    async def delete(self, conversation_id: str) -> bool:
        async with self._lock:
            existed = conversation_id in self._items
            self._evict_locked(conversation_id)
            return existed

    async def sweep(self) -> int:
        """Evict every idle conversation; returns how many were removed."""
        async with self._lock:
            now = self._clock()
            stale = [cid for cid in list(self._items) if self._expired_locked(cid, now)]
            for cid in stale:
                self._evict_locked(cid)
        if stale:
            logger.info("Swept idle conversations", evicted=len(stale))
        return len(stale)

    async def count(self) -> int:
        async with self._lock:
            return len(self._items)
