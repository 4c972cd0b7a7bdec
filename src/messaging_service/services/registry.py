from __future__ import annotations

import asyncio
from typing import Dict, List, Protocol, Tuple
from uuid import UUID

from ..logging_config import logger


class LiveConnection(Protocol):
    """Anything that can receive a serialized event; a Starlette WebSocket in production."""

    async def send_text(self, data: str) -> None: ...


class ConnectionRegistry:
    """
    Process-local map of user id -> currently open live connections.

    A user may hold several connections at once (multiple devices); registering
    never evicts an earlier one. The registry is purely a delivery optimisation
    and is never consulted for message history.
    """

    def __init__(self) -> None:
        self._connections: Dict[UUID, List[LiveConnection]] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: UUID, connection: LiveConnection) -> None:
        async with self._lock:
            bucket = self._connections.setdefault(user_id, [])
            if not any(existing is connection for existing in bucket):
                bucket.append(connection)
            count = len(bucket)
        logger.info("Live connection registered for user %s (%d open)", user_id, count)

    async def unregister(self, user_id: UUID, connection: LiveConnection) -> bool:
        """Remove exactly ``connection``. Returns False if it was already gone."""
        async with self._lock:
            bucket = self._connections.get(user_id)
            if not bucket:
                return False
            remaining = [existing for existing in bucket if existing is not connection]
            if len(remaining) == len(bucket):
                return False
            if remaining:
                self._connections[user_id] = remaining
            else:
                del self._connections[user_id]
        logger.info("Live connection unregistered for user %s", user_id)
        return True

    async def connections_for(self, user_id: UUID) -> Tuple[LiveConnection, ...]:
        async with self._lock:
            return tuple(self._connections.get(user_id, ()))

    async def total_connections(self) -> int:
        async with self._lock:
            return sum(len(bucket) for bucket in self._connections.values())
