"""
Shared fixtures: frames, MRZ vectors, fake engines.
"""

from datetime import date

import numpy as np
import pytest

from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.errors import CaptureFailed, RecognitionFailed
from passport_capture.core.interfaces.capture_adapter import CameraConstraints, ICaptureAdapter
from passport_capture.core.interfaces.face_engine import FaceBox, IFaceEngine
from passport_capture.core.interfaces.ocr_engine import MRZ_WHITELIST, ITextRecognizer, RecognizedText

# ICAO 9303 specimen. The second line is the one usually quoted, whose
# composite digit (0) does not match its own data; the corrected one ends in 4.
TD3_LINE1 = "P<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<<<<<<<<<"
TD3_LINE2_QUOTED = "L898902C<3UTO6908061F9406236ZE184226B<<<<<10"
TD3_LINE2 = "L898902C<3UTO6908061F9406236ZE184226B<<<<<14"

TD1_LINES = [
    "I<UTOD231458907<<<<<<<<<<<<<<<",
    "7408122F1204159UTO<<<<<<<<<<<6",
    "ERIKSSON<<ANNA<MARIA<<<<<<<<<<",
]

TODAY = date(2026, 10, 19)


def rgb_frame(rgb: np.ndarray) -> RawFrame:
    """RGB (H x W x 3) uint8 array → RawFrame."""
    h, w = rgb.shape[:2]
    alpha = np.full((h, w, 1), 255, dtype=np.uint8)
    return RawFrame(width=w, height=h, pixels=np.concatenate([rgb.astype(np.uint8), alpha], axis=2))


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def gray_frame() -> RawFrame:
    return rgb_frame(np.full((120, 160, 3), 128, dtype=np.uint8))


@pytest.fixture
def noise_frame() -> RawFrame:
    rng = np.random.default_rng(7)
    return rgb_frame(rng.integers(0, 256, size=(120, 160, 3), dtype=np.uint8))


@pytest.fixture
def striped_frame() -> RawFrame:
    rgb = np.zeros((120, 160, 3), dtype=np.uint8)
    rgb[::2] = 255
    return rgb_frame(rgb)


class FakeTextRecognizer(ITextRecognizer):
    """Returns fixed lines; records the images it was given."""

    def __init__(self, lines: list[str] | None = None, confidence: float = 0.9, fail: bool = False):
        self.lines = lines if lines is not None else [TD3_LINE1, TD3_LINE2]
        self.confidence = confidence
        self.fail = fail
        self.calls = 0

    def recognize(self, image: np.ndarray, whitelist: str = MRZ_WHITELIST) -> RecognizedText:
        self.calls += 1
        if self.fail:
            raise RecognitionFailed("engine down")
        return RecognizedText(lines=list(self.lines), confidence=self.confidence, ocr_engine="fake")


class FakeFaceEngine(IFaceEngine):
    """
    One face per image (or none), fixed cosine similarity.

    `error` is raised from detect() to simulate a broken engine.
    """

    def __init__(self, cosine: float = 0.8, faces: bool = True, live_faces: bool | None = None, error=None):
        self.cosine = cosine
        self.faces = faces
        self.live_faces = faces if live_faces is None else live_faces
        self.error = error
        self.detect_calls = 0

    def detect(self, image_bgr: np.ndarray, score_threshold: float | None = None) -> list[FaceBox]:
        self.detect_calls += 1
        if self.error is not None:
            raise self.error
        # Live frames in these tests are square; document crops are not.
        h, w = image_bgr.shape[:2]
        has_face = self.live_faces if h == w else self.faces
        if not has_face:
            return []
        return [FaceBox(box=(w // 4, h // 4, w // 2, h // 2), score=0.9)]

    def embed(self, image_bgr: np.ndarray, face: FaceBox) -> np.ndarray:
        return np.ones(128, dtype=np.float32)

    def similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        return self.cosine


class FakeCamera(ICaptureAdapter):
    """Camera test double recording every start / stop."""

    def __init__(self, frame: RawFrame | None = None, start_error=None):
        self.frame = frame
        self.start_error = start_error
        self.started: list[CameraConstraints] = []
        self.stop_calls = 0
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    async def start(self, constraints: CameraConstraints) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started.append(constraints)
        self._active = True

    async def capture(self) -> RawFrame:
        if not self._active or self.frame is None:
            raise CaptureFailed()
        return self.frame

    async def stop(self) -> None:
        self.stop_calls += 1
        self._active = False


@pytest.fixture
def fake_recognizer() -> FakeTextRecognizer:
    return FakeTextRecognizer()


@pytest.fixture
def fake_face_engine() -> FakeFaceEngine:
    return FakeFaceEngine()


# ─── Pipeline builders ─────────────────────────────────

def make_document(accepted: bool = True, real: bool = True, fields=None):
    """ValidatedDocument stand-in with a fixed checklist outcome."""
    from passport_capture.core.entities.document import DocumentFields
    from passport_capture.core.entities.validation import PassportValidation
    from passport_capture.core.use_cases.validate_document import ValidatedDocument

    frame = rgb_frame(np.full((120, 160, 3), 90, dtype=np.uint8))
    if fields is None:
        fields = DocumentFields(
            document_type="P",
            issuing_country="UTO",
            surname="ERIKSSON",
            given_names="ANNA MARIA",
            document_number="L898902C",
            nationality="UTO",
            date_of_birth="690806",
            sex="F",
            date_of_expiry="300101",
        )
    return ValidatedDocument(
        frame=frame,
        photo_region=np.full((48, 160, 3), 90, dtype=np.uint8),
        validation=PassportValidation(is_valid=accepted, is_real_document=real, elements={}),
        fields=fields if accepted or real else None,
    )
