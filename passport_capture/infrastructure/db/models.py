"""
Database Models — SQLAlchemy.

Tables:
  - pairing_messages: pairing channel, one row per wire message, deleted with its session
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Index, Integer, JSON, String
from sqlalchemy.orm import DeclarativeBase

from passport_capture.core.entities.session import MessageType, PairingMessage


class Base(DeclarativeBase):
    pass


class PairingMessageRecord(Base):
    """One message written by either device."""
    __tablename__ = "pairing_messages"

    sequence = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), nullable=False)
    type = Column(String(20), nullable=False)
    secret_token = Column(String(128), nullable=False)
    timestamp = Column(Float, nullable=False)
    payload = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_pairing_messages_session_seq", "session_id", "sequence"),
        # Sequences stay monotonic after a session is deleted.
        {"sqlite_autoincrement": True},
    )

    @classmethod
    def from_message(cls, message: PairingMessage) -> "PairingMessageRecord":
        return cls(
            session_id=message.session_id,
            type=message.type.value,
            secret_token=message.secret_token,
            timestamp=message.timestamp,
            payload=message.payload,
        )

    def to_message(self) -> PairingMessage:
        return PairingMessage(
            type=MessageType(self.type),
            session_id=self.session_id,
            secret_token=self.secret_token,
            timestamp=self.timestamp,
            payload=self.payload or {},
            sequence=self.sequence,
        )

    def __repr__(self):
        return f"<PairingMessage #{self.sequence} {self.session_id} [{self.type}]>"
