import errno

import numpy as np
import pytest
import pytesseract

from passport_capture.api.errors import status_for, to_http
from passport_capture.core.errors import (
    CaptureFailed,
    DeviceBusy,
    DeviceUnavailable,
    FaceNotDetected,
    MatchBelowThreshold,
    PermissionDenied,
    RecognitionFailed,
    RecognitionTimeout,
    SessionInvalid,
)
from passport_capture.infrastructure.camera.opencv_camera import classify_camera_error
from passport_capture.infrastructure.ocr.tesseract_mrz_engine import TesseractMRZRecognizer

from conftest import TD3_LINE1, TD3_LINE2


# ─── Camera errors ─────────────────────────────────────

@pytest.mark.parametrize(
    "error,expected",
    [
        ("NotAllowedError", PermissionDenied),
        ("SecurityError", PermissionDenied),
        ("NotFoundError", DeviceUnavailable),
        ("OverconstrainedError", DeviceUnavailable),
        ("NotReadableError", DeviceBusy),
        ("TrackStartError", DeviceBusy),
        (OSError(errno.EACCES, "denied"), PermissionDenied),
        (OSError(errno.ENODEV, "no device"), DeviceUnavailable),
        (OSError(errno.EBUSY, "busy"), DeviceBusy),
        ("SomethingElse", CaptureFailed),
    ],
)
def test_classify_camera_error(error, expected):
    assert type(classify_camera_error(error)) is expected


def test_device_errors_are_not_retryable():
    assert not PermissionDenied().retryable
    assert not DeviceBusy().retryable
    assert CaptureFailed().retryable


# ─── HTTP mapping ──────────────────────────────────────

@pytest.mark.parametrize(
    "error,status",
    [
        (SessionInvalid(), 401),
        (RecognitionTimeout(), 408),
        (FaceNotDetected(), 422),
        (MatchBelowThreshold(0.5, 0.7), 422),
        (RecognitionFailed(), 422),
        (DeviceBusy(), 503),
        (CaptureFailed(), 400),
    ],
)
def test_status_for(error, status):
    assert status_for(error) == status


def test_http_detail_carries_guidance():
    exc = to_http(MatchBelowThreshold(0.55, 0.70))
    assert exc.status_code == 422
    assert exc.detail["code"] == "MATCH_BELOW_THRESHOLD"
    assert "55.0%" in exc.detail["message"]
    assert "70%" in exc.detail["message"]
    assert exc.detail["retryable"] is True


# ─── Tesseract ─────────────────────────────────────────

def test_tesseract_lines_are_grouped(monkeypatch):
    half = TD3_LINE2[:20], TD3_LINE2[20:]
    data = {
        "text": ["", TD3_LINE1, half[1], half[0]],
        "conf": ["-1", "90", "80", "70"],
        "block_num": [1, 1, 1, 1],
        "par_num": [1, 1, 1, 1],
        "line_num": [0, 1, 2, 2],
        "left": [0, 5, 400, 5],
        "top": [0, 10, 60, 61],
    }
    monkeypatch.setattr(pytesseract, "image_to_data", lambda *a, **k: data)

    result = TesseractMRZRecognizer().recognize(np.zeros((40, 400), dtype=np.uint8))

    assert result.lines == [TD3_LINE1, TD3_LINE2]
    assert result.confidence == pytest.approx(0.8)
    assert result.ocr_engine == "Tesseract"


def test_tesseract_missing_binary(monkeypatch):
    def missing(*args, **kwargs):
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(pytesseract, "image_to_data", missing)
    with pytest.raises(RecognitionFailed):
        TesseractMRZRecognizer().recognize(np.zeros((40, 400), dtype=np.uint8))
