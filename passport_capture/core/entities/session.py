"""
Entity: Pairing session and wire message

A CaptureSession ties a desktop (primary) and a phone (secondary) together
for the lifetime of one cross-device capture.
"""

import time
from dataclasses import dataclass, field
from enum import Enum


class MessageType(str, Enum):
    CONNECTED = "connected"
    DOCUMENT = "document"
    FACE = "face"
    VALIDATION = "validation"
    ACKNOWLEDGED = "acknowledged"


class LinkState(str, Enum):
    """Secondary-device view of the pairing link."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DESKTOP_UNREACHABLE = "desktop_unreachable"
    CLOSED = "closed"


@dataclass(frozen=True)
class CaptureSession:
    session_id: str
    secret_token: str
    stage: str = "document"
    retries: int = 0
    created_at: float = field(default_factory=time.time)

    @property
    def is_well_formed(self) -> bool:
        return bool(self.session_id) and bool(self.secret_token)


@dataclass(frozen=True)
class PairingMessage:
    """
    One wire message.

    JSON form: {type, sessionId, secretToken, timestamp, payload}.
    `sequence` is assigned by the store on append.
    """
    type: MessageType
    session_id: str
    secret_token: str
    timestamp: float = field(default_factory=lambda: time.time() * 1000)
    payload: dict = field(default_factory=dict)
    sequence: int = 0

    def to_wire(self) -> dict:
        return {
            "type": self.type.value,
            "sessionId": self.session_id,
            "secretToken": self.secret_token,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }

    @classmethod
    def from_wire(cls, data: dict, sequence: int = 0) -> "PairingMessage":
        return cls(
            type=MessageType(data["type"]),
            session_id=data.get("sessionId", ""),
            secret_token=data.get("secretToken", ""),
            timestamp=float(data.get("timestamp") or time.time() * 1000),
            payload=data.get("payload") or {},
            sequence=sequence,
        )
