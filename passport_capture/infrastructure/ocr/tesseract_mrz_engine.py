"""
Tesseract MRZ Recognizer.

Runs Tesseract on the MRZ region with the MRZ character whitelist and
page segmentation mode 6 (one uniform block of text). Tesseract reports word
confidences on a 0–100 scale; they are averaged and rescaled to 0–1.
"""
import logging

import numpy as np
import pytesseract

from passport_capture.core.errors import RecognitionFailed
from passport_capture.core.interfaces.ocr_engine import (
    ITextRecognizer,
    MRZ_WHITELIST,
    RecognizedText,
)

logger = logging.getLogger(__name__)


class TesseractMRZRecognizer(ITextRecognizer):
    """MRZ-only Tesseract adapter (OCR-B monospaced block)."""

    def __init__(self, base_config: str = "--oem 3 --psm 6", lang: str = "eng"):
        self.base_config = base_config
        self.lang = lang

    def recognize(self, image: np.ndarray, whitelist: str = MRZ_WHITELIST) -> RecognizedText:
        config = f"{self.base_config} -c tessedit_char_whitelist={whitelist}"
        try:
            data = pytesseract.image_to_data(
                image, lang=self.lang, config=config, output_type=pytesseract.Output.DICT
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            raise RecognitionFailed(f"Tesseract failed: {e}") from e

        lines, confidences = self._group_lines(data)
        # Tesseract: 0–100, -1 for non-text boxes.
        avg_conf = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0

        logger.debug(f"Tesseract MRZ: {len(lines)} lines, conf={avg_conf:.3f}")
        return RecognizedText(
            lines=lines,
            confidence=round(min(max(avg_conf, 0.0), 1.0), 3),
            ocr_engine="Tesseract",
            details={"config": config},
        )

    @staticmethod
    def _group_lines(data: dict) -> tuple[list[str], list[float]]:
        """Join words per (block, paragraph, line), top to bottom."""
        grouped: dict[tuple[int, int, int], list[tuple[int, str]]] = {}
        tops: dict[tuple[int, int, int], int] = {}
        confidences: list[float] = []

        for i, word in enumerate(data.get("text", [])):
            word = (word or "").strip()
            if not word:
                continue
            try:
                conf = float(data["conf"][i])
            except (TypeError, ValueError):
                conf = -1.0
            if conf >= 0:
                confidences.append(conf)
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            grouped.setdefault(key, []).append((data["left"][i], word))
            tops[key] = min(tops.get(key, data["top"][i]), data["top"][i])

        lines = []
        for key in sorted(grouped, key=lambda k: tops[k]):
            words = [w for _, w in sorted(grouped[key])]
            # MRZ lines carry no spaces; Tesseract splits on wide filler runs.
            lines.append("".join(words))
        return lines, confidences
