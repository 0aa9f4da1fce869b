"""
Capture Coordinator — runs the effects the state machine asks for.

The machine decides, the coordinator acts: it owns the camera, the polling
task for a paired device, and the match / proof / submit calls. Every
CaptureError raised while acting is fed back as a StageFailed event.
"""

import asyncio
import logging
from contextlib import aclosing

from passport_capture.core.entities.session import CaptureSession, MessageType, PairingMessage
from passport_capture.core.errors import (
    CaptureError,
    CaptureFailed,
    InvalidTransition,
    RecognitionTimeout,
)
from passport_capture.core.interfaces.capture_adapter import ICaptureAdapter
from passport_capture.core.interfaces.message_bus import IMessageBus
from passport_capture.core.interfaces.proof_service import IProofService
from passport_capture.core.use_cases.capture_flow import (
    CancelRequested,
    CaptureStateMachine,
    DocumentCaptured,
    Effect,
    EffectKind,
    FaceCaptured,
    MatchScored,
    PairingClosed,
    PairingRequested,
    PipelineContext,
    ProofProduced,
    RemoteValidationUpdated,
    RetryRequested,
    Stage,
    StageFailed,
    SubmissionAcknowledged,
    SummaryConfirmed,
    Transition,
)
from passport_capture.core.use_cases.match_faces import MatchFacesUseCase
from passport_capture.core.use_cases.pairing import decode_fields_payload, decode_image_payload
from passport_capture.core.use_cases.validate_document import DocumentValidationUseCase

logger = logging.getLogger(__name__)


class CaptureCoordinator:
    """
    Async driver of one capture flow.

    Dependency Injection: the machine and every adapter come through the
    constructor. The message bus is only needed for paired capture.
    """

    def __init__(
        self,
        machine: CaptureStateMachine,
        camera: ICaptureAdapter,
        validate_document: DocumentValidationUseCase,
        match_faces: MatchFacesUseCase,
        proof_service: IProofService,
        bus: IMessageBus | None = None,
        capture_timeout_seconds: float = 60.0,
    ):
        self._machine = machine
        self._camera = camera
        self._validate = validate_document
        self._match = match_faces
        self._proof = proof_service
        self._bus = bus
        self._capture_timeout = capture_timeout_seconds
        self._poll_task: asyncio.Task | None = None
        self._cursor = 0
        self._cursor_session: str | None = None

    @property
    def context(self) -> PipelineContext:
        return self._machine.context

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # ─── User actions ───────────────────────────────────

    async def start(self) -> PipelineContext:
        await self._apply(self._machine.start())
        return self.context

    async def capture_document(self) -> PipelineContext:
        self._require(Stage.DOCUMENT)
        try:
            frame = await self._grab()
            document = await self._validate.execute(frame, fallback=self.context.remote_fields)
        except CaptureError as e:
            return await self.dispatch(StageFailed(e))
        return await self.dispatch(DocumentCaptured(document))

    async def capture_face(self) -> PipelineContext:
        self._require(Stage.FACE)
        try:
            frame = await self._grab()
        except CaptureError as e:
            return await self.dispatch(StageFailed(e))
        return await self.dispatch(FaceCaptured(frame))

    async def confirm_summary(self) -> PipelineContext:
        return await self.dispatch(SummaryConfirmed())

    async def retry(self) -> PipelineContext:
        return await self.dispatch(RetryRequested())

    async def cancel(self) -> PipelineContext:
        return await self.dispatch(CancelRequested())

    async def pair(self, session: CaptureSession) -> PipelineContext:
        if self._bus is None:
            raise CaptureFailed("Paired capture needs a message bus.")
        return await self.dispatch(PairingRequested(session))

    async def unpair(self) -> PipelineContext:
        return await self.dispatch(PairingClosed())

    # ─── Event loop ─────────────────────────────────────

    async def dispatch(self, event) -> PipelineContext:
        await self._apply(self._machine.transition(event))
        return self.context

    async def _apply(self, transition: Transition) -> None:
        follow_up = None
        for effect in transition.effects:
            event = await self._run_effect(effect)
            follow_up = follow_up or event
        if follow_up is not None:
            await self.dispatch(follow_up)

    async def _run_effect(self, effect: Effect):
        """Run one effect; returns the event it produced, if any."""
        kind = effect.kind
        stage = self.context.stage

        if kind is EffectKind.ACQUIRE_CAMERA:
            try:
                await self._camera.start(effect.constraints)
            except CaptureError as e:
                await self._release_camera()
                return StageFailed(e)
        elif kind is EffectKind.RELEASE_CAMERA:
            await self._release_camera()
        elif kind is EffectKind.START_POLLING:
            await self._start_polling(effect.message_type)
        elif kind is EffectKind.STOP_POLLING:
            await self._stop_polling()
        elif kind is EffectKind.DISCARD_SESSION:
            if self._bus is not None:
                await self._bus.discard(effect.session_id)
        elif kind is EffectKind.CLEAR_CAPTURES:
            logger.info("Captured images cleared")
        elif kind is EffectKind.RUN_MATCH:
            return await self._guard(stage, self._run_match)
        elif kind is EffectKind.GENERATE_PROOF:
            return await self._guard(stage, self._generate_proof)
        elif kind is EffectKind.SUBMIT_PROOF:
            return await self._guard(stage, self._submit_proof)
        return None

    async def _guard(self, stage: Stage, action):
        try:
            event = await action()
        except CaptureError as e:
            event = StageFailed(e)
        if self.context.stage is not stage:
            # Cancelled (or otherwise moved on) while the call was running.
            logger.info(f"Dropping stale {type(event).__name__} from stage '{stage.value}'")
            return None
        return event

    def _require(self, stage: Stage) -> None:
        if self.context.stage is not stage:
            raise InvalidTransition(
                f"Cannot capture for '{stage.value}' in stage '{self.context.stage.value}'"
            )

    # ─── Effects ────────────────────────────────────────

    async def _grab(self):
        try:
            return await asyncio.wait_for(self._camera.capture(), timeout=self._capture_timeout)
        except asyncio.TimeoutError as e:
            raise RecognitionTimeout("Camera did not deliver a frame in time.") from e

    async def _release_camera(self) -> None:
        if self._camera.is_active:
            await self._camera.stop()

    async def _run_match(self):
        ctx = self.context
        if ctx.document is None or ctx.face_frame is None:
            raise CaptureFailed("Nothing to match.")
        result = await self._match.execute(ctx.document.photo_region, ctx.face_frame)
        return MatchScored(result)

    async def _generate_proof(self):
        if self.context.claims is None:
            raise CaptureFailed("No claims to prove.")
        return ProofProduced(await self._proof.generate(self.context.claims))

    async def _submit_proof(self):
        if self.context.proof is None:
            raise CaptureFailed("No proof to submit.")
        return SubmissionAcknowledged(await self._proof.submit(self.context.proof))

    # ─── Paired device ──────────────────────────────────

    async def _start_polling(self, message_type: MessageType) -> None:
        # At most one poller per flow.
        await self._stop_polling()
        session = self.context.session
        if self._bus is None or session is None:
            return
        if session.session_id != self._cursor_session:
            self._cursor, self._cursor_session = 0, session.session_id
        types = {message_type}
        if message_type is MessageType.DOCUMENT:
            types.add(MessageType.VALIDATION)
        self._poll_task = asyncio.create_task(self._poll(session.session_id, types))
        logger.info(f"Polling session {session.session_id} for {sorted(t.value for t in types)}")

    async def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        if task.done():
            if not task.cancelled() and task.exception() is not None:
                logger.error(f"Polling task had failed: {task.exception()!r}")
            return
        if task is asyncio.current_task():
            # Stopping from inside the poller: it exits after this dispatch.
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll(self, session_id: str, types: set[MessageType]) -> None:
        me = asyncio.current_task()
        async with aclosing(self._bus.subscribe(session_id, types, after=self._cursor)) as stream:
            async for message in stream:
                self._cursor = max(self._cursor, message.sequence)
                try:
                    await self._on_message(message)
                except CaptureError as e:
                    await self.dispatch(StageFailed(e))
                except Exception as e:
                    logger.exception(f"Unreadable {message.type.value} message #{message.sequence}")
                    await self.dispatch(StageFailed(CaptureFailed(f"Paired device sent an unreadable message: {e}")))
                if self._poll_task is not me:
                    break

    async def _on_message(self, message: PairingMessage) -> None:
        ctx = self.context
        if ctx.session is None or message.secret_token != ctx.session.secret_token:
            logger.warning(f"Ignoring message #{message.sequence} with a foreign token")
            return

        if message.type is MessageType.VALIDATION:
            validation = message.payload.get("validation") or {}
            if not isinstance(validation, dict):
                raise CaptureFailed("Paired device sent a malformed validation update.")
            await self.dispatch(RemoteValidationUpdated(validation, decode_fields_payload(message.payload)))
        elif message.type is MessageType.DOCUMENT:
            frame = decode_image_payload(message.payload)
            fallback = decode_fields_payload(message.payload) or ctx.remote_fields
            document = await self._validate.execute(frame, fallback=fallback)
            await self.dispatch(DocumentCaptured(document))
        elif message.type is MessageType.FACE:
            await self.dispatch(FaceCaptured(decode_image_payload(message.payload)))
