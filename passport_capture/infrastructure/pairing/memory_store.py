"""
In-memory IMessageStore.

Single-process stand-in for the shared store: both devices talk to the same
API process, which keeps each session's messages in its own list.
"""

import threading
from collections import defaultdict
from dataclasses import replace

from passport_capture.core.entities.session import PairingMessage
from passport_capture.core.interfaces.message_bus import IMessageStore


class InMemoryMessageStore(IMessageStore):
    def __init__(self):
        self._sessions: dict[str, list[PairingMessage]] = defaultdict(list)
        self._sequence = 0
        self._lock = threading.Lock()

    def append(self, message: PairingMessage) -> PairingMessage:
        with self._lock:
            self._sequence += 1
            stored = replace(message, sequence=self._sequence)
            self._sessions[message.session_id].append(stored)
            return stored

    def read(self, session_id: str, after: int = 0) -> list[PairingMessage]:
        with self._lock:
            return [m for m in self._sessions.get(session_id, ()) if m.sequence > after]

    def delete_session(self, session_id: str) -> int:
        with self._lock:
            return len(self._sessions.pop(session_id, ()))

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._sessions.values())
