"""
Contract: Text Recognition

Reads raw text lines from an MRZ region. Any engine (Tesseract, PaddleOCR,
EasyOCR, an external API) must implement this contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np


MRZ_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789<"


@dataclass
class RecognizedText:
    """Raw OCR output for one region."""
    lines: list[str]              # top to bottom
    confidence: float             # 0.0 to 1.0
    ocr_engine: str = ""
    details: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class ITextRecognizer(ABC):
    """
    Port: Text Recognizer

    Restricted to a character whitelist and tuned for one block of uniform
    monospaced text. Raises RecognitionFailed on engine errors.
    """

    @abstractmethod
    def recognize(self, image: np.ndarray, whitelist: str = MRZ_WHITELIST) -> RecognizedText:
        """
        Recognize text in a region.

        Args:
            image: Region as a grayscale or BGR array.
            whitelist: Allowed characters.

        Returns:
            RecognizedText with lines and confidence rescaled to 0–1.
        """
        ...
