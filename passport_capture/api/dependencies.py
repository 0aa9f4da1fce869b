"""
Factories + lazy singletons shared by the routers.

Adapters are built from Settings on first use; tests swap them through
`reset()` and the module-level setters.
"""

import logging

from passport_capture.config.settings import Settings, get_settings
from passport_capture.core.entities.session import CaptureSession
from passport_capture.core.interfaces.capture_adapter import ICaptureAdapter
from passport_capture.core.interfaces.face_engine import IFaceEngine
from passport_capture.core.interfaces.message_bus import IMessageStore
from passport_capture.core.interfaces.ocr_engine import ITextRecognizer
from passport_capture.core.use_cases.capture_coordinator import CaptureCoordinator
from passport_capture.core.use_cases.capture_flow import CaptureStateMachine
from passport_capture.core.use_cases.match_faces import MatchFacesUseCase
from passport_capture.core.use_cases.pairing import PairingService, SecondaryDeviceLink
from passport_capture.core.use_cases.validate_document import DocumentValidationUseCase
from passport_capture.infrastructure.face.opencv_sface_engine import OpenCVSFaceEngine
from passport_capture.infrastructure.face.photo_detector import PassportPhotoDetector
from passport_capture.infrastructure.pairing.memory_store import InMemoryMessageStore
from passport_capture.infrastructure.pairing.polling_bus import PollingMessageBus
from passport_capture.infrastructure.proof.simulated_proof_service import SimulatedProofService
from passport_capture.infrastructure.quality.region_preprocessor import RegionPreprocessor
from passport_capture.infrastructure.quality.screen_replay_detector import ScreenReplayDetector
from passport_capture.infrastructure.rules.mrz_decoder import MRZDecoder
from passport_capture.infrastructure.rules.validation_aggregator import ValidationAggregator

logger = logging.getLogger(__name__)

# Lazy singletons
_face_engine: IFaceEngine | None = None
_text_recognizer: ITextRecognizer | None = None
_validation_use_case: DocumentValidationUseCase | None = None
_message_store: IMessageStore | None = None
_pairing_service: PairingService | None = None


def build_text_recognizer(settings: Settings) -> ITextRecognizer:
    if settings.ocr_engine == "hybrid":
        from passport_capture.infrastructure.ocr.hybrid_mrz_engine import HybridMRZRecognizer
        return HybridMRZRecognizer(lang=settings.ocr_lang, use_gpu=settings.ocr_use_gpu)
    from passport_capture.infrastructure.ocr.tesseract_mrz_engine import TesseractMRZRecognizer
    return TesseractMRZRecognizer(base_config=settings.tesseract_config)


def build_spoof_detector(settings: Settings) -> ScreenReplayDetector:
    return ScreenReplayDetector(
        scanline_channel_delta=settings.scanline_channel_delta,
        scanline_column_fraction=settings.scanline_column_fraction,
        scanline_row_divisor=settings.scanline_row_divisor,
        brightness_sample_divisor=settings.brightness_sample_divisor,
        brightness_variance_max=settings.brightness_variance_max,
        moire_sample_divisor=settings.moire_sample_divisor,
        moire_offset=settings.moire_offset,
        moire_pixel_delta=settings.moire_pixel_delta,
        moire_fraction=settings.moire_fraction,
        min_indicators=settings.spoof_min_indicators,
        seed=settings.spoof_sampling_seed,
    )


def build_validation_use_case(
    settings: Settings,
    text_recognizer: ITextRecognizer,
    face_engine: IFaceEngine,
) -> DocumentValidationUseCase:
    """Wire the document pipeline with concrete adapters."""
    return DocumentValidationUseCase(
        spoof_detector=build_spoof_detector(settings),
        preprocessor=RegionPreprocessor(
            photo_fraction=settings.photo_region_fraction,
            mrz_fraction=settings.mrz_region_fraction,
        ),
        text_recognizer=text_recognizer,
        decoder=MRZDecoder(
            min_line_length=settings.mrz_min_line_length,
            max_line_length=settings.mrz_max_line_length,
            expiry_window_years=settings.expiry_window_years,
        ),
        photo_detector=PassportPhotoDetector(face_engine, seed=settings.spoof_sampling_seed),
        aggregator=ValidationAggregator(
            detected_floor=settings.detected_confidence_floor,
            accept_incomplete=settings.accept_incomplete_documents,
        ),
        timeout_seconds=settings.validation_timeout_seconds,
    )


def build_message_store(settings: Settings) -> IMessageStore:
    if settings.pairing_store == "sql":
        from passport_capture.infrastructure.db.message_repository import SqlMessageStore
        return SqlMessageStore()
    return InMemoryMessageStore()


def get_face_engine() -> IFaceEngine:
    global _face_engine
    if _face_engine is None:
        settings = get_settings()
        _face_engine = OpenCVSFaceEngine(
            models_dir=settings.face_models_dir,
            score_threshold=settings.face_score_threshold,
        )
    return _face_engine


def get_text_recognizer() -> ITextRecognizer:
    global _text_recognizer
    if _text_recognizer is None:
        _text_recognizer = build_text_recognizer(get_settings())
    return _text_recognizer


def get_validation_use_case() -> DocumentValidationUseCase:
    global _validation_use_case
    if _validation_use_case is None:
        _validation_use_case = build_validation_use_case(
            get_settings(), get_text_recognizer(), get_face_engine()
        )
    return _validation_use_case


def get_match_use_case(strict: bool = False) -> MatchFacesUseCase:
    settings = get_settings()
    threshold = settings.strict_match_threshold if strict else settings.match_threshold
    return MatchFacesUseCase(
        get_face_engine(),
        threshold=threshold,
        timeout_seconds=settings.stage_timeout_seconds,
    )


def get_message_store() -> IMessageStore:
    global _message_store
    if _message_store is None:
        _message_store = build_message_store(get_settings())
    return _message_store


def get_pairing_service() -> PairingService:
    global _pairing_service
    if _pairing_service is None:
        settings = get_settings()
        _pairing_service = PairingService(
            base_url=settings.public_base_url,
            secret_key=settings.pairing_secret_key,
        )
    return _pairing_service


def get_message_bus() -> PollingMessageBus:
    return PollingMessageBus(get_message_store(), interval_seconds=get_settings().pairing_interval_seconds)


def build_secondary_link(session: CaptureSession) -> SecondaryDeviceLink:
    """Phone side of a session, polling at the configured interval."""
    settings = get_settings()
    return SecondaryDeviceLink(
        get_message_bus(),
        session,
        interval_seconds=settings.pairing_interval_seconds,
        max_attempts=settings.pairing_max_attempts,
    )


def build_capture_coordinator(camera: ICaptureAdapter | None = None) -> CaptureCoordinator:
    """A fresh capture flow; the local OpenCV camera unless one is given."""
    settings = get_settings()
    if camera is None:
        from passport_capture.infrastructure.camera.opencv_camera import OpenCVCameraAdapter
        camera = OpenCVCameraAdapter()
    return CaptureCoordinator(
        machine=CaptureStateMachine(
            match_threshold=settings.match_threshold,
            expiry_window_years=settings.expiry_window_years,
        ),
        camera=camera,
        validate_document=get_validation_use_case(),
        match_faces=get_match_use_case(),
        proof_service=SimulatedProofService(),
        bus=get_message_bus(),
        capture_timeout_seconds=settings.stage_timeout_seconds,
    )


def override(
    face_engine: IFaceEngine | None = None,
    text_recognizer: ITextRecognizer | None = None,
    message_store: IMessageStore | None = None,
    pairing_service: PairingService | None = None,
) -> None:
    """Replace adapters (tests, embedding apps). Resets the derived use case."""
    global _face_engine, _text_recognizer, _message_store, _pairing_service, _validation_use_case
    if face_engine is not None:
        _face_engine = face_engine
    if text_recognizer is not None:
        _text_recognizer = text_recognizer
    if message_store is not None:
        _message_store = message_store
    if pairing_service is not None:
        _pairing_service = pairing_service
    _validation_use_case = None


def reset() -> None:
    global _face_engine, _text_recognizer, _message_store, _pairing_service, _validation_use_case
    _face_engine = None
    _text_recognizer = None
    _message_store = None
    _pairing_service = None
    _validation_use_case = None
