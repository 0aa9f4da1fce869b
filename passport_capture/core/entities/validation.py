"""
Entity: Passport validation

Checklist of required document elements plus the anti-spoofing verdict for
one capture attempt. A retry builds a new instance; nothing mutates it.
"""

from dataclasses import dataclass, field
from enum import Enum


class ElementKey(str, Enum):
    MRZ = "mrz"
    PASSPORT_NUMBER = "passportNumber"
    DOCUMENT_TYPE = "documentType"
    COUNTRY = "country"
    NAME = "name"
    DOB = "dob"
    EXPIRY = "expiry"
    PHOTO = "photo"


# Elements that must be present for a strict (non-lenient) acceptance.
REQUIRED_ELEMENTS = (
    ElementKey.MRZ,
    ElementKey.PASSPORT_NUMBER,
    ElementKey.DOCUMENT_TYPE,
    ElementKey.COUNTRY,
    ElementKey.PHOTO,
)


@dataclass(frozen=True)
class ElementStatus:
    detected: bool = False
    confidence: float = 0.0
    value: str | None = None

    def normalized(self, detected_floor: float) -> "ElementStatus":
        """
        Clamp confidence to [0, 1] and keep `detected` consistent with it.

        A value implies detection; a detected element never reports a
        confidence below `detected_floor`.
        """
        detected = self.detected or bool(self.value)
        confidence = min(max(float(self.confidence), 0.0), 1.0)
        if detected:
            confidence = max(confidence, detected_floor)
        return ElementStatus(detected=detected, confidence=confidence, value=self.value)

    def to_dict(self) -> dict:
        data = {"detected": self.detected, "confidence": round(self.confidence, 4)}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass(frozen=True)
class PassportValidation:
    is_valid: bool
    is_real_document: bool
    elements: dict[ElementKey, ElementStatus]
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    def element(self, key: ElementKey) -> ElementStatus:
        return self.elements.get(key, ElementStatus())

    @property
    def missing_required(self) -> list[ElementKey]:
        return [k for k in REQUIRED_ELEMENTS if not self.element(k).detected]

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "isRealDocument": self.is_real_document,
            "elements": {k.value: s.to_dict() for k, s in self.elements.items()},
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class SpoofVerdict:
    """Anti-spoofing outcome plus the signal values that produced it."""
    is_screen_replay: bool
    indicators: int
    signals: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PhotoDetection:
    detected: bool
    confidence: float
    method: str = ""


@dataclass(frozen=True)
class FaceMatchResult:
    score: float
    threshold: float

    @property
    def matched(self) -> bool:
        return self.score >= self.threshold

    def to_dict(self) -> dict:
        return {"score": round(self.score, 4), "threshold": self.threshold, "matched": self.matched}
