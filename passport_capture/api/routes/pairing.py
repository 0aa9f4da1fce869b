"""
Routes: cross-device pairing.

The shared message store both devices poll. Every call carries the session
token; reads only return messages written with the same token.
"""

import logging

from fastapi import APIRouter, Query
from fastapi.concurrency import run_in_threadpool

from passport_capture.api import dependencies
from passport_capture.api.errors import to_http
from passport_capture.api.schemas.responses import (
    PairingMessageRequest,
    PairingMessageResponse,
    PairingMessagesResponse,
    PairingSessionResponse,
)
from passport_capture.core.entities.session import PairingMessage
from passport_capture.core.errors import SessionInvalid

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(message: PairingMessage) -> PairingMessageResponse:
    return PairingMessageResponse(**message.to_wire(), sequence=message.sequence)


@router.post("/pairing/sessions", response_model=PairingSessionResponse)
async def create_session():
    """Create a session; the URL goes into the QR code shown on the desktop."""
    session, url = dependencies.get_pairing_service().create_session()
    return PairingSessionResponse(session_id=session.session_id, secret_token=session.secret_token, url=url)


@router.post("/pairing/messages", response_model=PairingMessageResponse)
async def publish_message(req: PairingMessageRequest):
    try:
        dependencies.get_pairing_service().validate(req.sessionId, req.secretToken)
    except SessionInvalid as e:
        raise to_http(e) from e

    message = PairingMessage.from_wire(req.model_dump(exclude_none=True))
    stored = await run_in_threadpool(dependencies.get_message_store().append, message)
    logger.info(f"Session {stored.session_id}: {stored.type.value} #{stored.sequence}")
    return _to_response(stored)


@router.get("/pairing/sessions/{session_id}/messages", response_model=PairingMessagesResponse)
async def poll_messages(
    session_id: str,
    token: str = Query(""),
    after: int = Query(0, ge=0),
    message_type: str | None = Query(None, alias="type"),
):
    """Messages of one session with sequence > `after`, oldest first."""
    try:
        dependencies.get_pairing_service().validate(session_id, token)
    except SessionInvalid as e:
        raise to_http(e) from e

    messages = await run_in_threadpool(dependencies.get_message_store().read, session_id, after)
    last = max((m.sequence for m in messages), default=after)
    messages = [m for m in messages if m.secret_token == token]
    if message_type:
        messages = [m for m in messages if m.type.value == message_type]
    return PairingMessagesResponse(
        session_id=session_id,
        messages=[_to_response(m) for m in messages],
        last_sequence=last,
    )
