"""
Adapter: Polling Message Bus — IMessageBus over an IMessageStore.

Subscribers poll the store every `interval_seconds` and only see messages of
their own session. Store calls run in the default executor so an SQL store
never blocks the event loop.
"""

import asyncio
import logging
from typing import AsyncIterator

from passport_capture.core.entities.session import MessageType, PairingMessage
from passport_capture.core.interfaces.message_bus import IMessageBus, IMessageStore

logger = logging.getLogger(__name__)


class PollingMessageBus(IMessageBus):
    def __init__(self, store: IMessageStore, interval_seconds: float = 0.5):
        self._store = store
        self._interval = interval_seconds

    @property
    def store(self) -> IMessageStore:
        return self._store

    async def publish(self, message: PairingMessage) -> PairingMessage:
        loop = asyncio.get_running_loop()
        stored = await loop.run_in_executor(None, self._store.append, message)
        logger.debug(f"Published {stored.type.value} #{stored.sequence} for {stored.session_id}")
        return stored

    async def discard(self, session_id: str) -> None:
        loop = asyncio.get_running_loop()
        deleted = await loop.run_in_executor(None, self._store.delete_session, session_id)
        logger.info(f"Session {session_id} discarded ({deleted} messages)")

    async def subscribe(
        self,
        session_id: str,
        types: set[MessageType] | None = None,
        after: int = 0,
    ) -> AsyncIterator[PairingMessage]:
        loop = asyncio.get_running_loop()
        cursor = after
        while True:
            messages = await loop.run_in_executor(None, self._store.read, session_id, cursor)
            for message in messages:
                cursor = max(cursor, message.sequence)
                if types is None or message.type in types:
                    yield message
            await asyncio.sleep(self._interval)
