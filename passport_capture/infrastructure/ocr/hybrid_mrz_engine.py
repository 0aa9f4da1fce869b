"""
Hybrid MRZ Recognizer — PaddleOCR v5 first, EasyOCR fallback.

PaddleOCR v5 is excellent at MRZ (monospace OCR-B font). EasyOCR, with the
MRZ allowlist, takes over when PaddleOCR returns fewer than two lines.
Both engines report 0–1 scores, so no rescaling is needed.
"""

import os
import logging

import cv2
import numpy as np

os.environ["PADDLE_PDX_DISABLE_MODEL_SOURCE_CHECK"] = "True"

from passport_capture.core.errors import RecognitionFailed
from passport_capture.core.interfaces.ocr_engine import (
    ITextRecognizer,
    MRZ_WHITELIST,
    RecognizedText,
)
from passport_capture.infrastructure.rules.mrz_decoder import clean_mrz_line

logger = logging.getLogger(__name__)


class HybridMRZRecognizer(ITextRecognizer):
    """
    Hybrid OCR: PaddleOCR v5 for MRZ lines + EasyOCR fallback.
    """

    def __init__(self, lang: str = "en", use_gpu: bool = False):
        self.lang = lang
        self.use_gpu = use_gpu
        self._paddle = None
        self._easyocr = None

    def _get_paddle(self):
        if self._paddle is None:
            from paddleocr import PaddleOCR
            self._paddle = PaddleOCR(lang=self.lang)
        return self._paddle

    def _get_easyocr(self):
        if self._easyocr is None:
            import easyocr
            self._easyocr = easyocr.Reader(
                [self.lang], gpu=self.use_gpu, verbose=False
            )
        return self._easyocr

    def recognize(self, image: np.ndarray, whitelist: str = MRZ_WHITELIST) -> RecognizedText:
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

        paddle_error = None
        try:
            lines, conf = self._recognize_paddle(image, whitelist)
        except Exception as e:  # engine internals raise arbitrary types
            logger.warning(f"PaddleOCR MRZ extraction failed: {e}")
            paddle_error = e
            lines, conf = [], 0.0

        if len(lines) >= 2:
            return RecognizedText(lines=lines, confidence=conf, ocr_engine="PaddleOCR v5")

        logger.info("PaddleOCR MRZ incomplete, trying EasyOCR fallback...")
        try:
            easy_lines, easy_conf = self._recognize_easyocr(image, whitelist)
        except Exception as e:
            logger.warning(f"EasyOCR MRZ fallback failed: {e}")
            if paddle_error is not None:
                raise RecognitionFailed(f"Both OCR engines failed: {paddle_error}; {e}") from e
            return RecognizedText(lines=lines, confidence=conf, ocr_engine="PaddleOCR v5")

        if len(easy_lines) > len(lines):
            return RecognizedText(lines=easy_lines, confidence=easy_conf, ocr_engine="EasyOCR")
        return RecognizedText(lines=lines, confidence=conf, ocr_engine="PaddleOCR v5")

    def _recognize_paddle(self, image: np.ndarray, whitelist: str) -> tuple[list[str], float]:
        """
        PaddleOCR v5 predict() API.
        Returns (lines top to bottom, avg_confidence).
        """
        allowed = set(whitelist)
        candidates = []
        for res in self._get_paddle().predict(image):
            if not (hasattr(res, "rec_texts") and hasattr(res, "rec_scores")):
                continue
            texts = res.rec_texts
            scores = res.rec_scores
            polys = res.rec_polys if hasattr(res, "rec_polys") else [None] * len(texts)
            for text, score, poly in zip(texts, scores, polys):
                clean = "".join(c for c in clean_mrz_line(text) if c in allowed)
                if not clean:
                    continue
                y_pos = poly[0][1] if poly is not None and len(poly) > 0 else 0
                candidates.append((float(y_pos), clean, float(score)))

        candidates.sort(key=lambda x: x[0])
        lines = [c[1] for c in candidates]
        conf = sum(c[2] for c in candidates) / len(candidates) if candidates else 0.0
        return lines, round(conf, 3)

    def _recognize_easyocr(self, image: np.ndarray, whitelist: str) -> tuple[list[str], float]:
        results = self._get_easyocr().readtext(
            image, allowlist=whitelist, paragraph=False, width_ths=1.5,
        )
        lines = []
        confs = []
        for r in sorted(results, key=lambda x: x[0][0][1]):
            text = clean_mrz_line(r[1])
            if text:
                lines.append(text)
                confs.append(float(r[2]))
        conf = sum(confs) / len(confs) if confs else 0.0
        return lines, round(conf, 3)
