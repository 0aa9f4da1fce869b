"""
Pairing Message Repository — SQL-backed IMessageStore.

Rows are inserted while a session is live and deleted with it; the autoincrement primary key is the sequence
number consumers poll after.
"""

import logging

from sqlalchemy.orm import sessionmaker

from passport_capture.core.entities.session import PairingMessage
from passport_capture.core.interfaces.message_bus import IMessageStore
from passport_capture.infrastructure.db.database import get_db
from passport_capture.infrastructure.db.models import PairingMessageRecord

logger = logging.getLogger(__name__)


class SqlMessageStore(IMessageStore):
    """Repository for pairing messages."""

    def __init__(self, session_factory: sessionmaker | None = None):
        self._factory = session_factory

    def append(self, message: PairingMessage) -> PairingMessage:
        with get_db(self._factory) as db:
            record = PairingMessageRecord.from_message(message)
            db.add(record)
            db.flush()
            logger.debug(f"Stored {record!r}")
            return record.to_message()

    def read(self, session_id: str, after: int = 0) -> list[PairingMessage]:
        with get_db(self._factory) as db:
            records = (
                db.query(PairingMessageRecord)
                .filter(PairingMessageRecord.session_id == session_id)
                .filter(PairingMessageRecord.sequence > after)
                .order_by(PairingMessageRecord.sequence)
                .all()
            )
            return [r.to_message() for r in records]

    def delete_session(self, session_id: str) -> int:
        with get_db(self._factory) as db:
            deleted = (
                db.query(PairingMessageRecord)
                .filter(PairingMessageRecord.session_id == session_id)
                .delete(synchronize_session=False)
            )
            logger.info(f"Deleted {deleted} pairing messages of session {session_id}")
            return deleted
