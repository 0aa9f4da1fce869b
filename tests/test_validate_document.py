import asyncio
import time

import pytest

from passport_capture.core.entities.document import DocumentFields
from passport_capture.core.errors import RecognitionTimeout
from passport_capture.core.use_cases.validate_document import DocumentValidationUseCase
from passport_capture.infrastructure.face.photo_detector import PassportPhotoDetector
from passport_capture.infrastructure.quality.region_preprocessor import RegionPreprocessor
from passport_capture.infrastructure.quality.screen_replay_detector import ScreenReplayDetector
from passport_capture.infrastructure.rules.mrz_decoder import MRZDecoder
from passport_capture.infrastructure.rules.validation_aggregator import (
    INFERRED_WARNING,
    MRZ_MISSING_ERROR,
    ValidationAggregator,
)

from conftest import TODAY, FakeFaceEngine, FakeTextRecognizer, TD3_LINE1, TD3_LINE2


class SlowRecognizer(FakeTextRecognizer):
    def recognize(self, image, whitelist=""):
        time.sleep(0.3)
        return super().recognize(image)


def build(recognizer, accept_incomplete=True, timeout_seconds=45.0) -> DocumentValidationUseCase:
    return DocumentValidationUseCase(
        spoof_detector=ScreenReplayDetector(),
        preprocessor=RegionPreprocessor(),
        text_recognizer=recognizer,
        decoder=MRZDecoder(today=TODAY),
        photo_detector=PassportPhotoDetector(FakeFaceEngine()),
        aggregator=ValidationAggregator(accept_incomplete=accept_incomplete),
        timeout_seconds=timeout_seconds,
    )


def test_pipeline_decodes_fields(noise_frame, fake_recognizer):
    result = build(fake_recognizer).run(noise_frame)

    assert result.accepted
    assert result.fields.document_number == "L898902C"
    assert result.fields.synthesized == frozenset()
    assert result.decode.composite_verified is True
    assert result.ocr_engine == "fake"
    assert result.photo_region.shape == (48, 160, 3)
    assert set(result.stage_latencies) == {"spoof_ms", "regions_ms", "ocr_ms", "photo_ms"}
    assert result.total_latency_ms >= 0


def test_ocr_failure_is_not_fatal(noise_frame):
    result = build(FakeTextRecognizer(fail=True)).run(noise_frame)

    assert result.accepted
    assert result.decode is None
    assert result.ocr_engine == ""
    assert MRZ_MISSING_ERROR in result.validation.errors
    assert INFERRED_WARNING in result.validation.warnings
    assert "document_number" in result.fields.synthesized


def test_strict_policy_rejects_without_mrz(noise_frame):
    result = build(FakeTextRecognizer(lines=["PASSPORT"]), accept_incomplete=False).run(noise_frame)

    assert not result.accepted
    assert result.fields is None


def test_screen_replay_still_reports_decode(gray_frame, fake_recognizer):
    result = build(fake_recognizer).run(gray_frame)

    assert not result.accepted
    assert not result.validation.is_real_document
    assert result.fields is not None
    assert result.fields.surname == "ERIKSSON"


def test_fallback_fields_fill_gaps(noise_frame):
    fallback = DocumentFields.from_dict({"documentNumber": "X1234567", "issuingCountry": "UTO"})
    result = build(FakeTextRecognizer(lines=[])).run(noise_frame, fallback)

    assert result.fields.document_number == "X1234567"
    assert result.fields.nationality == "UTO"
    assert "document_number" in result.fields.unverified


def test_execute_times_out(noise_frame):
    use_case = build(SlowRecognizer(lines=[TD3_LINE1, TD3_LINE2]), timeout_seconds=0.05)
    with pytest.raises(RecognitionTimeout):
        asyncio.run(use_case.execute(noise_frame))
