import pytest

from passport_capture.core.entities.document import DocumentFields
from passport_capture.core.entities.validation import (
    ElementKey,
    ElementStatus,
    PhotoDetection,
    SpoofVerdict,
)
from passport_capture.core.interfaces.ocr_engine import RecognizedText
from passport_capture.infrastructure.rules.mrz_decoder import MRZDecoder
from passport_capture.infrastructure.rules.validation_aggregator import (
    INFERRED_WARNING,
    MRZ_MISSING_ERROR,
    PHOTO_WARNING,
    SCREEN_WARNING,
    ValidationAggregator,
    synthesize_document_fields,
)

from conftest import TD1_LINES, TD3_LINE1, TD3_LINE2, TODAY

REAL = SpoofVerdict(is_screen_replay=False, indicators=0)
REPLAY = SpoofVerdict(is_screen_replay=True, indicators=2)
PHOTO = PhotoDetection(detected=True, confidence=0.9, method="face_engine")
NO_PHOTO = PhotoDetection(detected=False, confidence=0.0, method="face_engine")


@pytest.fixture
def recognized() -> RecognizedText:
    return RecognizedText(lines=[TD3_LINE1, TD3_LINE2], confidence=0.6, ocr_engine="fake")


@pytest.fixture
def decoded():
    return MRZDecoder(today=TODAY).decode_td3(TD3_LINE1, TD3_LINE2)


# ─── Element normalization ─────────────────────────────

@pytest.mark.parametrize(
    "status,detected,confidence",
    [
        (ElementStatus(detected=True, confidence=1.7), True, 1.0),
        (ElementStatus(detected=True, confidence=0.2), True, 0.85),
        (ElementStatus(value="L898902C", confidence=0.1), True, 0.85),
        (ElementStatus(confidence=-0.3), False, 0.0),
        (ElementStatus(confidence=0.4), False, 0.4),
        (ElementStatus(detected=True), True, 0.85),
    ],
)
def test_normalized(status, detected, confidence):
    out = status.normalized(0.85)
    assert out.detected is detected
    assert out.confidence == pytest.approx(confidence)


def test_every_detected_element_meets_floor(recognized, decoded):
    validation = ValidationAggregator().aggregate(REAL, PHOTO, recognized, decoded)

    for status in validation.elements.values():
        assert 0.0 <= status.confidence <= 1.0
        if status.detected:
            assert status.confidence >= 0.85
    assert validation.element(ElementKey.PASSPORT_NUMBER).value == "L898902C"
    assert validation.element(ElementKey.NAME).value == "ERIKSSON ANNA MARIA"
    assert validation.element(ElementKey.MRZ).value == f"{TD3_LINE1}\n{TD3_LINE2}"


def test_clean_passport_is_valid(recognized, decoded):
    validation = ValidationAggregator(accept_incomplete=False).aggregate(REAL, PHOTO, recognized, decoded)

    assert validation.is_valid
    assert validation.is_real_document
    assert validation.missing_required == []
    assert validation.warnings == ()
    assert validation.errors == ()


# ─── Policy ────────────────────────────────────────────

def test_lenient_accepts_real_document_without_mrz():
    validation = ValidationAggregator(accept_incomplete=True).aggregate(REAL, PHOTO)

    assert validation.is_valid
    assert MRZ_MISSING_ERROR in validation.errors
    assert ElementKey.MRZ in validation.missing_required


def test_strict_requires_every_required_element():
    validation = ValidationAggregator(accept_incomplete=False).aggregate(REAL, PHOTO)

    assert not validation.is_valid
    assert validation.is_real_document


def test_screen_replay_is_never_valid(recognized, decoded):
    validation = ValidationAggregator().aggregate(REPLAY, PHOTO, recognized, decoded)

    assert not validation.is_valid
    assert not validation.is_real_document
    assert SCREEN_WARNING in validation.warnings
    # The rest of the checklist is still reported.
    assert validation.element(ElementKey.MRZ).detected
    assert validation.element(ElementKey.PASSPORT_NUMBER).detected


def test_missing_photo_warns(recognized, decoded):
    validation = ValidationAggregator().aggregate(REAL, NO_PHOTO, recognized, decoded)

    assert PHOTO_WARNING in validation.warnings
    assert validation.is_valid
    assert ElementKey.PHOTO in validation.missing_required


def test_decode_errors_are_reported(recognized):
    decoded = MRZDecoder(today=TODAY).decode_td3(TD3_LINE1, TD3_LINE2[:-1] + "0")
    validation = ValidationAggregator().aggregate(REAL, PHOTO, recognized, decoded)
    assert any(e.startswith("composite") for e in validation.errors)


def test_non_passport_document_type_warns():
    decoded = MRZDecoder(today=TODAY).decode_lines(TD1_LINES)
    recognized = RecognizedText(lines=TD1_LINES, confidence=0.9)
    validation = ValidationAggregator().aggregate(REAL, PHOTO, recognized, decoded)

    assert "Document type detected: I. Expected passport (P)." in validation.warnings


def test_to_dict_uses_wire_keys(recognized, decoded):
    data = ValidationAggregator().aggregate(REAL, PHOTO, recognized, decoded).to_dict()

    assert data["isValid"] is True
    assert set(data["elements"]) == {k.value for k in ElementKey}
    assert data["elements"]["passportNumber"]["value"] == "L898902C"


# ─── Field synthesis ───────────────────────────────────

def test_synthesis_uses_placeholders():
    validation = ValidationAggregator().aggregate(REAL, PHOTO)
    fields, updated = synthesize_document_fields(validation)

    assert fields.document_type == "P"
    assert fields.issuing_country == "XXX"
    assert fields.surname == "UNKNOWN"
    assert fields.date_of_birth == "000000"
    assert fields.sex == "U"
    assert "document_number" in fields.synthesized
    assert fields.unverified >= fields.synthesized
    assert INFERRED_WARNING in updated.warnings
    # Placeholders never turn the checklist green.
    assert not updated.element(ElementKey.PASSPORT_NUMBER).detected


def test_synthesis_prefers_paired_device_fields():
    validation = ValidationAggregator().aggregate(REAL, PHOTO)
    fallback = DocumentFields.from_dict({
        "documentNumber": "X1234567",
        "nationality": "UTO",
        "name": "ANNA ERIKSSON",
    })

    fields, _ = synthesize_document_fields(validation, fallback)

    assert fields.document_number == "X1234567"
    assert fields.nationality == "UTO"
    assert fields.issuing_country == "UTO"
    assert fields.surname == "ANNA ERIKSSON"
    assert "document_number" not in fields.synthesized
    assert "issuing_country" not in fields.synthesized
    assert "date_of_birth" in fields.synthesized
    assert {"document_number", "nationality", "issuing_country"} <= fields.unverified


def test_synthesis_does_not_repeat_warning():
    validation = ValidationAggregator().aggregate(REAL, PHOTO)
    _, once = synthesize_document_fields(validation)
    _, twice = synthesize_document_fields(once)
    assert twice.warnings.count(INFERRED_WARNING) == 1
