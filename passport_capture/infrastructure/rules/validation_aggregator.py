"""
Validation Aggregator — MRZ decode + photo detection + anti-spoofing → one
PassportValidation checklist.

Policy:
  - a screen-replay verdict downgrades is_real_document and adds a warning,
    the rest of the checklist is still filled in
  - accept_incomplete_documents=True: is_valid == is_real_document
  - accept_incomplete_documents=False: is_valid additionally requires every
    required element
"""

import logging
from dataclasses import replace

from passport_capture.core.entities.document import DecodeResult, DocumentFields
from passport_capture.core.entities.validation import (
    ElementKey,
    ElementStatus,
    PassportValidation,
    PhotoDetection,
    SpoofVerdict,
)
from passport_capture.core.interfaces.ocr_engine import RecognizedText

logger = logging.getLogger(__name__)

SCREEN_WARNING = "Document may be a photo of a screen. For best results, use a real passport document."
PHOTO_WARNING = "Passport photo area not clearly detected."
MRZ_MISSING_ERROR = (
    "MRZ (Machine Readable Zone) not detected. "
    "Please ensure the bottom of the passport is clearly visible."
)
INFERRED_WARNING = "MRZ not detected automatically; values inferred."
PASSPORT_TYPES = ("P",)
TRAVEL_DOCUMENT_PREFIXES = ("P", "I", "A")

# Names are harder to read than the fixed-width numeric fields.
NAME_CONFIDENCE_FACTOR = 0.9

PLACEHOLDERS = {
    "document_type": "P",
    "issuing_country": "XXX",
    "surname": "UNKNOWN",
    "document_number": "UNKNOWN",
    "nationality": "XXX",
    "date_of_birth": "000000",
    "sex": "U",
    "date_of_expiry": "000000",
}


class ValidationAggregator:
    """Merges detector outputs into a normalized PassportValidation."""

    def __init__(self, detected_floor: float = 0.85, accept_incomplete: bool = True):
        self.detected_floor = detected_floor
        self.accept_incomplete = accept_incomplete

    def aggregate(
        self,
        spoof: SpoofVerdict,
        photo: PhotoDetection,
        recognized: RecognizedText | None = None,
        decoded: DecodeResult | None = None,
    ) -> PassportValidation:
        elements: dict[ElementKey, ElementStatus] = {k: ElementStatus() for k in ElementKey}
        warnings: list[str] = []
        errors: list[str] = []

        # ── 1. Anti-spoofing ───────────────────────────────
        is_real = not spoof.is_screen_replay
        if not is_real:
            warnings.append(SCREEN_WARNING)

        # ── 2. MRZ ─────────────────────────────────────────
        if decoded is not None and decoded.lines:
            conf = recognized.confidence if recognized is not None else 0.0
            elements[ElementKey.MRZ] = ElementStatus(
                detected=True, confidence=conf, value="\n".join(decoded.lines)
            )
            if decoded.fields is not None:
                elements.update(self._field_elements(decoded.fields, conf))
            errors.extend(decoded.errors)
        else:
            errors.append(MRZ_MISSING_ERROR)

        # ── 3. Photo ───────────────────────────────────────
        elements[ElementKey.PHOTO] = ElementStatus(detected=photo.detected, confidence=photo.confidence)
        if not photo.detected:
            warnings.append(PHOTO_WARNING)

        # ── 4. Document type ───────────────────────────────
        warnings.extend(self._document_type_warnings(elements))

        elements = {k: s.normalized(self.detected_floor) for k, s in elements.items()}
        validation = PassportValidation(
            is_valid=False,
            is_real_document=is_real,
            elements=elements,
            warnings=tuple(warnings),
            errors=tuple(errors),
        )
        is_valid = is_real and (self.accept_incomplete or not validation.missing_required)
        logger.info(
            f"Validation: real={is_real} valid={is_valid} "
            f"missing={[k.value for k in validation.missing_required]}"
        )
        return replace(validation, is_valid=is_valid)

    def _field_elements(self, fields: DocumentFields, conf: float) -> dict[ElementKey, ElementStatus]:
        mapping = {
            ElementKey.PASSPORT_NUMBER: (fields.document_number, conf),
            ElementKey.DOCUMENT_TYPE: (fields.document_type, conf),
            ElementKey.COUNTRY: (fields.issuing_country, conf),
            ElementKey.NAME: (fields.name, conf * NAME_CONFIDENCE_FACTOR),
            ElementKey.DOB: (fields.date_of_birth, conf),
            ElementKey.EXPIRY: (fields.date_of_expiry, conf),
        }
        return {
            key: ElementStatus(detected=True, confidence=c, value=value)
            for key, (value, c) in mapping.items()
            if value
        }

    @staticmethod
    def _document_type_warnings(elements: dict[ElementKey, ElementStatus]) -> list[str]:
        doc_type = elements[ElementKey.DOCUMENT_TYPE]
        if doc_type.detected and doc_type.value:
            value = doc_type.value.upper()
            if value not in PASSPORT_TYPES:
                return [f"Document type detected: {value}. Expected passport (P)."]
            return []

        mrz = elements[ElementKey.MRZ]
        if mrz.detected and mrz.value:
            first = mrz.value.strip()[:1].upper()
            if first and first not in TRAVEL_DOCUMENT_PREFIXES:
                return ["Document type may not be a passport. Please ensure you are scanning a passport."]
        return []


def synthesize_document_fields(
    validation: PassportValidation,
    fallback: DocumentFields | None = None,
) -> tuple[DocumentFields, PassportValidation]:
    """
    Best-effort fields for a real document whose MRZ did not decode.

    Values come from the paired device first, then from the checklist, then
    from placeholders. Every value is unverified; placeholders are also
    marked synthesized. The checklist itself is left as detected, with the
    inferred-values warning appended.
    """
    from_checklist = {
        "document_type": validation.element(ElementKey.DOCUMENT_TYPE).value,
        "issuing_country": validation.element(ElementKey.COUNTRY).value,
        "surname": validation.element(ElementKey.NAME).value,
        "document_number": validation.element(ElementKey.PASSPORT_NUMBER).value,
        "nationality": validation.element(ElementKey.COUNTRY).value,
        "date_of_birth": validation.element(ElementKey.DOB).value,
        "date_of_expiry": validation.element(ElementKey.EXPIRY).value,
    }

    values: dict[str, str] = {}
    synthesized: set[str] = set()
    for name, placeholder in PLACEHOLDERS.items():
        value = getattr(fallback, name, "") if fallback is not None else ""
        if not value and name == "nationality" and fallback is not None:
            value = fallback.issuing_country
        if not value and name == "issuing_country" and fallback is not None:
            value = fallback.nationality
        value = value or from_checklist.get(name) or ""
        if not value:
            value = placeholder
            synthesized.add(name)
        values[name] = value

    given_names = fallback.given_names if fallback is not None else ""
    personal_number = fallback.personal_number if fallback is not None else None
    unverified = set(values)
    if given_names:
        unverified.add("given_names")
    if personal_number:
        unverified.add("personal_number")

    fields = DocumentFields(
        **values,
        given_names=given_names,
        personal_number=personal_number,
        unverified=frozenset(unverified),
        synthesized=frozenset(synthesized),
    )

    warnings = validation.warnings
    if INFERRED_WARNING not in warnings:
        warnings = warnings + (INFERRED_WARNING,)
    logger.warning(f"MRZ fields inferred; placeholders used for {sorted(synthesized)}")
    return fields, replace(validation, warnings=warnings)
