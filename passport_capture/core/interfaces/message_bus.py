"""
Contract: Message Store / Message Bus

The pairing channel exchanges messages through a shared append-only store.
The bus hides whether delivery is polled or pushed, so a real-time transport
can replace polling without touching the pipeline.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator

from passport_capture.core.entities.session import MessageType, PairingMessage


class IMessageStore(ABC):
    """Port: append-only message store shared by both devices."""

    @abstractmethod
    def append(self, message: PairingMessage) -> PairingMessage:
        """Append a message; returns it with its assigned sequence."""
        ...

    @abstractmethod
    def read(self, session_id: str, after: int = 0) -> list[PairingMessage]:
        """Messages of one session with sequence > `after`, oldest first."""
        ...

    @abstractmethod
    def delete_session(self, session_id: str) -> int:
        """Drop every message of a finished session; returns how many went."""
        ...


class IMessageBus(ABC):
    """Port: publish / subscribe keyed by session id."""

    @abstractmethod
    async def publish(self, message: PairingMessage) -> PairingMessage:
        ...

    @abstractmethod
    async def discard(self, session_id: str) -> None:
        """Forget a session once the flow no longer uses it."""
        ...

    @abstractmethod
    def subscribe(
        self,
        session_id: str,
        types: set[MessageType] | None = None,
        after: int = 0,
    ) -> AsyncIterator[PairingMessage]:
        """
        Yield messages for `session_id` with sequence > `after` as they arrive.

        Cancelling the consuming task stops the subscription.
        """
        ...
