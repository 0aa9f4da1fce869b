"""
Use Case: Cross-device pairing

The primary device (desktop) creates a session and shows its URL as a QR
code. The secondary device (phone) opens the URL, announces itself with
`connected` messages until the primary acknowledges, then publishes capture
payloads on the same session.
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
from contextlib import aclosing
from urllib.parse import urlencode

from passport_capture.core.entities.document import DocumentFields
from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.entities.session import (
    CaptureSession,
    LinkState,
    MessageType,
    PairingMessage,
)
from passport_capture.core.entities.validation import PassportValidation
from passport_capture.core.errors import CaptureFailed, PairingTimeout, SessionInvalid
from passport_capture.core.interfaces.message_bus import IMessageBus

logger = logging.getLogger(__name__)


class PairingService:
    """
    Creates and validates pairing sessions.

    With `secret_key` set, the token is an HMAC of the session id and is
    verified. Without it, any non-empty token is accepted.
    """

    CAPTURE_PATH = "/mobile-capture"

    def __init__(self, base_url: str, secret_key: str = ""):
        self._base_url = base_url.rstrip("/")
        self._secret_key = secret_key
        if not secret_key:
            logger.warning("PAIRING_SECRET_KEY not set: pairing tokens are not bound to their session")

    def create_session(self) -> tuple[CaptureSession, str]:
        """Returns the session and the URL to encode in the QR code."""
        session_id = secrets.token_hex(8)
        token = self._sign(session_id) if self._secret_key else secrets.token_urlsafe(16)
        session = CaptureSession(session_id=session_id, secret_token=token)
        url = f"{self._base_url}{self.CAPTURE_PATH}?" + urlencode({"session": session_id, "token": token})
        logger.info(f"Pairing session created: {session_id}")
        return session, url

    def validate(self, session_id: str, token: str) -> CaptureSession:
        """
        Raises:
            SessionInvalid: empty id/token, or a token not issued for this id.
        """
        session = CaptureSession(session_id=session_id or "", secret_token=token or "")
        if not session.is_well_formed:
            raise SessionInvalid()
        if self._secret_key and not hmac.compare_digest(self._sign(session_id), token):
            logger.warning(f"Rejected token for session {session_id}")
            raise SessionInvalid()
        return session

    def _sign(self, session_id: str) -> str:
        digest = hmac.new(self._secret_key.encode(), session_id.encode(), hashlib.sha256)
        return digest.hexdigest()[:32]


def _message(session: CaptureSession, kind: MessageType, payload: dict | None = None) -> PairingMessage:
    return PairingMessage(
        type=kind,
        session_id=session.session_id,
        secret_token=session.secret_token,
        payload=payload or {},
    )


async def first_message(bus: IMessageBus, session_id: str, kind: MessageType) -> PairingMessage:
    """First message of `kind` on the session; waits until one arrives."""
    async with aclosing(bus.subscribe(session_id, {kind})) as stream:
        async for message in stream:
            return message
    raise PairingTimeout()


def decode_image_payload(payload: dict) -> RawFrame:
    """
    Raises:
        CaptureFailed: missing or undecodable image.
    """
    image = payload.get("image") if isinstance(payload, dict) else None
    if not image:
        raise CaptureFailed("Paired device sent no image.")
    return RawFrame.from_base64(image)


_FIELD_KEYS = (
    "documentType", "issuingCountry", "surname", "givenNames", "name", "documentNumber",
    "nationality", "dateOfBirth", "sex", "dateOfExpiry", "personalNumber",
)


def decode_fields_payload(payload: dict) -> DocumentFields | None:
    """
    Raises:
        CaptureFailed: `fields` present but not an object of strings.
    """
    data = payload.get("fields") if isinstance(payload, dict) else None
    if not data:
        return None
    if not isinstance(data, dict) or any(
        data.get(key) is not None and not isinstance(data[key], str) for key in _FIELD_KEYS
    ):
        raise CaptureFailed("Paired device sent malformed document fields.")
    return DocumentFields.from_dict(data)


class SecondaryDeviceLink:
    """Phone side of a pairing session."""

    def __init__(
        self,
        bus: IMessageBus,
        session: CaptureSession,
        interval_seconds: float = 0.5,
        max_attempts: int = 100,
    ):
        self._bus = bus
        self._session = session
        self._interval = interval_seconds
        self._max_attempts = max_attempts
        self.state = LinkState.CONNECTING
        self.attempts = 0

    async def announce(self) -> None:
        """
        Publish `connected` every interval until acknowledged.

        Raises:
            PairingTimeout: no acknowledgement after `max_attempts` writes;
                the link is left in DESKTOP_UNREACHABLE.
        """
        if not self._session.is_well_formed:
            self.state = LinkState.CLOSED
            raise SessionInvalid()

        ack = asyncio.ensure_future(
            first_message(self._bus, self._session.session_id, MessageType.ACKNOWLEDGED)
        )
        try:
            for attempt in range(1, self._max_attempts + 1):
                self.attempts = attempt
                await self._bus.publish(_message(self._session, MessageType.CONNECTED, {"attempt": attempt}))
                done, _ = await asyncio.wait({ack}, timeout=self._interval)
                if done:
                    ack.result()
                    self.state = LinkState.CONNECTED
                    logger.info(f"Session {self._session.session_id}: desktop acknowledged after {attempt} attempts")
                    return
        finally:
            ack.cancel()

        self.state = LinkState.DESKTOP_UNREACHABLE
        logger.warning(f"Session {self._session.session_id}: desktop unreachable after {self._max_attempts} attempts")
        raise PairingTimeout()

    async def send_document(self, frame: RawFrame, fields: DocumentFields | None = None) -> PairingMessage:
        payload = {"image": frame.to_base64(), "fields": fields.to_dict() if fields is not None else None}
        return await self._bus.publish(_message(self._session, MessageType.DOCUMENT, payload))

    async def send_face(self, frame: RawFrame) -> PairingMessage:
        return await self._bus.publish(_message(self._session, MessageType.FACE, {"image": frame.to_base64()}))

    async def send_validation(
        self, validation: PassportValidation, fields: DocumentFields | None = None
    ) -> PairingMessage:
        payload = {"validation": validation.to_dict(), "fields": fields.to_dict() if fields is not None else None}
        return await self._bus.publish(_message(self._session, MessageType.VALIDATION, payload))

    def close(self) -> None:
        self.state = LinkState.CLOSED


class PrimaryDeviceLink:
    """Desktop side: waits for the phone and acknowledges it."""

    def __init__(self, bus: IMessageBus, session: CaptureSession):
        self._bus = bus
        self._session = session

    async def wait_for_connection(self, timeout_seconds: float | None = None) -> PairingMessage:
        """
        Raises:
            PairingTimeout: the phone did not connect within the timeout.
        """
        try:
            connected = await asyncio.wait_for(
                first_message(self._bus, self._session.session_id, MessageType.CONNECTED),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise PairingTimeout("The phone did not connect in time.") from e
        await self._bus.publish(_message(self._session, MessageType.ACKNOWLEDGED))
        logger.info(f"Session {self._session.session_id}: phone connected")
        return connected
