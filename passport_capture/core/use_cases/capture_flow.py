"""
Capture State Machine

    document → face → matching → summary → proof → transaction → complete
                 ↑________↓ (score below threshold)
    any non-terminal stage → cancelled

`transition(event)` is pure: it returns the next PipelineContext plus the
side effects to run (camera, polling, match, proof). Nothing here touches a
camera or the network, so the flow is testable without any device.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

from passport_capture.core.entities.claims import Claims, derive_claims
from passport_capture.core.entities.document import DocumentFields
from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.entities.session import CaptureSession, MessageType
from passport_capture.core.entities.validation import FaceMatchResult
from passport_capture.core.errors import (
    CaptureError,
    DecodeIncomplete,
    InvalidTransition,
    MatchBelowThreshold,
    PairingTimeout,
    SessionInvalid,
    SpoofSuspected,
)
from passport_capture.core.interfaces.capture_adapter import (
    DOCUMENT_CAMERA,
    FACE_CAMERA,
    CameraConstraints,
)
from passport_capture.core.interfaces.proof_service import ProofArtifact, SubmissionReceipt
from passport_capture.core.use_cases.validate_document import ValidatedDocument

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    DOCUMENT = "document"
    FACE = "face"
    MATCHING = "matching"
    SUMMARY = "summary"
    PROOF = "proof"
    TRANSACTION = "transaction"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


TERMINAL_STAGES = (Stage.COMPLETE, Stage.CANCELLED)
CAPTURE_STAGES = {
    Stage.DOCUMENT: (DOCUMENT_CAMERA, MessageType.DOCUMENT),
    Stage.FACE: (FACE_CAMERA, MessageType.FACE),
}


class CaptureSource(str, Enum):
    LOCAL = "local"
    PAIRED = "paired"


class EffectKind(str, Enum):
    ACQUIRE_CAMERA = "acquire_camera"
    RELEASE_CAMERA = "release_camera"
    START_POLLING = "start_polling"
    STOP_POLLING = "stop_polling"
    CLEAR_CAPTURES = "clear_captures"
    RUN_MATCH = "run_match"
    GENERATE_PROOF = "generate_proof"
    SUBMIT_PROOF = "submit_proof"
    DISCARD_SESSION = "discard_session"


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    constraints: CameraConstraints | None = None
    message_type: MessageType | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class PipelineContext:
    """
    Everything the flow knows, for one attempt.

    Never mutated: each transition returns a new context. Session identifiers
    survive retries; per-attempt captures do not.
    """
    stage: Stage = Stage.DOCUMENT
    source: CaptureSource = CaptureSource.LOCAL
    session: CaptureSession | None = None
    document: ValidatedDocument | None = None
    face_frame: RawFrame | None = None
    match: FaceMatchResult | None = None
    claims: Claims | None = None
    proof: ProofArtifact | None = None
    receipt: SubmissionReceipt | None = None
    remote_validation: dict | None = None
    remote_fields: DocumentFields | None = None
    error: CaptureError | None = None
    retries: int = 0

    @property
    def fields(self) -> DocumentFields | None:
        return self.document.fields if self.document is not None else None


# ── Events ─────────────────────────────────────────────

@dataclass(frozen=True)
class DocumentCaptured:
    document: ValidatedDocument


@dataclass(frozen=True)
class FaceCaptured:
    frame: RawFrame


@dataclass(frozen=True)
class MatchScored:
    result: FaceMatchResult


@dataclass(frozen=True)
class SummaryConfirmed:
    pass


@dataclass(frozen=True)
class ProofProduced:
    proof: ProofArtifact


@dataclass(frozen=True)
class SubmissionAcknowledged:
    receipt: SubmissionReceipt


@dataclass(frozen=True)
class StageFailed:
    error: CaptureError


@dataclass(frozen=True)
class RetryRequested:
    pass


@dataclass(frozen=True)
class CancelRequested:
    pass


@dataclass(frozen=True)
class PairingRequested:
    session: CaptureSession


@dataclass(frozen=True)
class PairingClosed:
    pass


@dataclass(frozen=True)
class RemoteValidationUpdated:
    validation: dict
    fields: DocumentFields | None = None


@dataclass(frozen=True)
class Transition:
    context: PipelineContext
    effects: list[Effect] = field(default_factory=list)


class CaptureStateMachine:
    """
    Explicit FSM for the capture flow.

    Raises InvalidTransition for an event the current stage does not accept.
    """

    def __init__(
        self,
        match_threshold: float = 0.70,
        expiry_window_years: int = 20,
        today: date | None = None,
    ):
        self.match_threshold = match_threshold
        self.expiry_window_years = expiry_window_years
        self._today = today
        self._context = PipelineContext()

    @property
    def context(self) -> PipelineContext:
        return self._context

    @property
    def stage(self) -> Stage:
        return self._context.stage

    def start(self) -> Transition:
        """Effects that enter the initial document stage."""
        if self._context.stage is not Stage.DOCUMENT or self._context.document is not None:
            raise InvalidTransition(f"Cannot start from stage '{self._context.stage.value}'")
        return Transition(self._context, self._enter_capture(self._context))

    def transition(self, event) -> Transition:
        ctx = self._context
        handler = getattr(self, f"_on_{type(event).__name__}", None)
        if handler is None or ctx.stage in TERMINAL_STAGES:
            raise InvalidTransition(
                f"Event {type(event).__name__} not valid in stage '{ctx.stage.value}'"
            )
        result = handler(ctx, event)
        logger.info(
            f"{type(event).__name__}: {ctx.stage.value} → {result.context.stage.value} "
            f"effects={[e.kind.value for e in result.effects]}"
        )
        self._context = result.context
        return result

    # ─── Handlers ───────────────────────────────────────

    def _on_DocumentCaptured(self, ctx: PipelineContext, event: DocumentCaptured) -> Transition:
        self._expect(ctx, event, Stage.DOCUMENT)
        doc = event.document
        if not doc.accepted:
            error = (
                SpoofSuspected()
                if not doc.validation.is_real_document
                else DecodeIncomplete()
            )
            # Checklist stays on display until the user retries.
            return Transition(
                replace(ctx, document=doc, error=error),
                self._leave_capture(ctx),
            )
        nxt = replace(ctx, stage=Stage.FACE, document=doc, error=None, retries=0)
        return Transition(nxt, self._leave_capture(ctx) + self._enter_capture(nxt))

    def _on_FaceCaptured(self, ctx: PipelineContext, event: FaceCaptured) -> Transition:
        self._expect(ctx, event, Stage.FACE)
        nxt = replace(ctx, stage=Stage.MATCHING, face_frame=event.frame, match=None, error=None)
        return Transition(nxt, self._leave_capture(ctx) + [Effect(EffectKind.RUN_MATCH)])

    def _on_MatchScored(self, ctx: PipelineContext, event: MatchScored) -> Transition:
        self._expect(ctx, event, Stage.MATCHING)
        result = FaceMatchResult(score=event.result.score, threshold=self.match_threshold)
        if result.matched:
            claims = derive_claims(
                ctx.fields or DocumentFields(),
                result,
                today=self._today,
                expiry_window_years=self.expiry_window_years,
            )
            return Transition(replace(ctx, stage=Stage.SUMMARY, match=result, claims=claims, error=None))

        # Retake the face only; the document capture is kept.
        nxt = replace(
            ctx,
            stage=Stage.FACE,
            face_frame=None,
            match=result,
            error=MatchBelowThreshold(result.score, self.match_threshold),
            retries=ctx.retries + 1,
        )
        return Transition(nxt, self._enter_capture(nxt))

    def _on_SummaryConfirmed(self, ctx: PipelineContext, event: SummaryConfirmed) -> Transition:
        self._expect(ctx, event, Stage.SUMMARY)
        return Transition(replace(ctx, stage=Stage.PROOF, error=None), [Effect(EffectKind.GENERATE_PROOF)])

    def _on_ProofProduced(self, ctx: PipelineContext, event: ProofProduced) -> Transition:
        self._expect(ctx, event, Stage.PROOF)
        nxt = replace(ctx, stage=Stage.TRANSACTION, proof=event.proof, error=None)
        return Transition(nxt, [Effect(EffectKind.SUBMIT_PROOF)])

    def _on_SubmissionAcknowledged(self, ctx: PipelineContext, event: SubmissionAcknowledged) -> Transition:
        self._expect(ctx, event, Stage.TRANSACTION)
        nxt = replace(ctx, stage=Stage.COMPLETE, receipt=event.receipt, error=None)
        effects = []
        if ctx.source is CaptureSource.PAIRED:
            effects = [Effect(EffectKind.STOP_POLLING)] + self._discard_session(ctx)
        return Transition(nxt, effects)

    def _on_StageFailed(self, ctx: PipelineContext, event: StageFailed) -> Transition:
        error = event.error
        if isinstance(error, (SessionInvalid, PairingTimeout)):
            # Ends the pairing sub-flow only.
            nxt = replace(ctx, source=CaptureSource.LOCAL, session=None, error=error)
            effects = [Effect(EffectKind.STOP_POLLING)] + self._discard_session(ctx)
            if ctx.stage in CAPTURE_STAGES:
                effects += self._enter_capture(nxt)
            return Transition(nxt, effects)

        if ctx.stage is Stage.MATCHING:
            # No face, engine failure or timeout: retake the face.
            nxt = replace(ctx, stage=Stage.FACE, face_frame=None, match=None, error=error)
            return Transition(nxt, self._enter_capture(nxt) if error.retryable else [])

        effects = self._leave_capture(ctx) if ctx.stage in CAPTURE_STAGES else []
        return Transition(replace(ctx, error=error), effects)

    def _on_RetryRequested(self, ctx: PipelineContext, event: RetryRequested) -> Transition:
        retries = ctx.retries + 1
        if ctx.stage is Stage.DOCUMENT:
            nxt = replace(ctx, document=None, remote_validation=None, error=None, retries=retries)
            return Transition(nxt, self._leave_capture(ctx) + self._enter_capture(nxt))
        if ctx.stage is Stage.FACE:
            nxt = replace(ctx, face_frame=None, match=None, error=None, retries=retries)
            return Transition(nxt, self._leave_capture(ctx) + self._enter_capture(nxt))
        if ctx.stage is Stage.PROOF:
            nxt = replace(ctx, proof=None, error=None, retries=retries)
            return Transition(nxt, [Effect(EffectKind.GENERATE_PROOF)])
        if ctx.stage is Stage.TRANSACTION:
            nxt = replace(ctx, receipt=None, error=None, retries=retries)
            return Transition(nxt, [Effect(EffectKind.SUBMIT_PROOF)])
        raise InvalidTransition(f"Retry not valid in stage '{ctx.stage.value}'")

    def _on_CancelRequested(self, ctx: PipelineContext, event: CancelRequested) -> Transition:
        nxt = replace(
            ctx,
            stage=Stage.CANCELLED,
            session=None,
            document=None,
            face_frame=None,
            match=None,
            claims=None,
            proof=None,
            remote_validation=None,
            remote_fields=None,
            error=None,
        )
        return Transition(nxt, [
            Effect(EffectKind.RELEASE_CAMERA),
            Effect(EffectKind.STOP_POLLING),
            Effect(EffectKind.CLEAR_CAPTURES),
        ] + self._discard_session(ctx))

    def _on_PairingRequested(self, ctx: PipelineContext, event: PairingRequested) -> Transition:
        if ctx.stage not in CAPTURE_STAGES:
            raise InvalidTransition(f"Pairing not valid in stage '{ctx.stage.value}'")
        if not event.session.is_well_formed:
            return self._on_StageFailed(ctx, StageFailed(SessionInvalid()))
        nxt = replace(ctx, source=CaptureSource.PAIRED, session=event.session, error=None)
        if ctx.source is CaptureSource.PAIRED:
            # Re-pairing: the previous session is over.
            leave = [Effect(EffectKind.STOP_POLLING)]
            if ctx.session is not None and ctx.session.session_id != event.session.session_id:
                leave += self._discard_session(ctx)
        else:
            # Camera goes before the handoff.
            leave = [Effect(EffectKind.RELEASE_CAMERA)]
        return Transition(nxt, leave + self._enter_capture(nxt))

    def _on_PairingClosed(self, ctx: PipelineContext, event: PairingClosed) -> Transition:
        if ctx.source is not CaptureSource.PAIRED:
            raise InvalidTransition("No paired device to close")
        nxt = replace(ctx, source=CaptureSource.LOCAL, session=None)
        effects = [Effect(EffectKind.STOP_POLLING)] + self._discard_session(ctx)
        if ctx.stage in CAPTURE_STAGES:
            effects += self._enter_capture(nxt)
        return Transition(nxt, effects)

    def _on_RemoteValidationUpdated(self, ctx: PipelineContext, event: RemoteValidationUpdated) -> Transition:
        self._expect(ctx, event, Stage.DOCUMENT)
        if ctx.source is not CaptureSource.PAIRED:
            raise InvalidTransition("Validation updates only arrive from a paired device")
        nxt = replace(
            ctx,
            remote_validation=event.validation,
            remote_fields=event.fields or ctx.remote_fields,
        )
        return Transition(nxt)

    # ─── Helpers ────────────────────────────────────────

    @staticmethod
    def _expect(ctx: PipelineContext, event, stage: Stage) -> None:
        if ctx.stage is not stage:
            raise InvalidTransition(
                f"Event {type(event).__name__} not valid in stage '{ctx.stage.value}'"
            )

    @staticmethod
    def _enter_capture(ctx: PipelineContext) -> list[Effect]:
        constraints, message_type = CAPTURE_STAGES[ctx.stage]
        if ctx.source is CaptureSource.PAIRED:
            return [Effect(EffectKind.START_POLLING, message_type=message_type)]
        return [Effect(EffectKind.ACQUIRE_CAMERA, constraints=constraints)]

    @staticmethod
    def _discard_session(ctx: PipelineContext) -> list[Effect]:
        if ctx.session is None:
            return []
        return [Effect(EffectKind.DISCARD_SESSION, session_id=ctx.session.session_id)]

    @staticmethod
    def _leave_capture(ctx: PipelineContext) -> list[Effect]:
        if ctx.source is CaptureSource.PAIRED:
            return [Effect(EffectKind.STOP_POLLING)]
        return [Effect(EffectKind.RELEASE_CAMERA)]
