"""
Passport photo detector.

Looks for a face in the photo region with the face engine. If the engine
itself fails (models missing, OpenCV error) a skin-tone sampling heuristic
gives a coarse answer instead of failing the whole validation.
"""

import logging

import cv2
import numpy as np

from passport_capture.core.entities.validation import PhotoDetection
from passport_capture.core.interfaces.face_engine import IFaceEngine

logger = logging.getLogger(__name__)


def _resize(img: np.ndarray, scale: float) -> np.ndarray:
    if scale == 1.0:
        return img
    h, w = img.shape[:2]
    nw = max(1, int(round(w * scale)))
    nh = max(1, int(round(h * scale)))
    return cv2.resize(img, (nw, nh), interpolation=cv2.INTER_CUBIC if scale > 1 else cv2.INTER_AREA)


class PassportPhotoDetector:
    """Face present in the document photo region?"""

    SCALES = (1.0, 2.0)
    SKIN_SAMPLES = 50
    SKIN_MIN_RATIO = 0.2

    def __init__(self, face_engine: IFaceEngine, seed: int = 1337):
        self._engine = face_engine
        self._seed = seed

    def detect(self, photo_region: np.ndarray) -> PhotoDetection:
        try:
            best = 0.0
            for scale in self.SCALES:
                faces = self._engine.detect(_resize(photo_region, scale))
                if faces:
                    best = max(best, max(f.score for f in faces))
            return PhotoDetection(detected=best > 0.0, confidence=min(best, 1.0), method="face_engine")
        except (cv2.error, RuntimeError, OSError) as e:
            logger.warning(f"Face detection failed, using skin-tone fallback: {e}")
            return self._skin_tone_fallback(photo_region)

    def _skin_tone_fallback(self, photo_region: np.ndarray) -> PhotoDetection:
        """Fraction of sampled pixels in a simplified skin-tone range."""
        h, w = photo_region.shape[:2]
        if h == 0 or w == 0 or photo_region.ndim != 3:
            return PhotoDetection(detected=False, confidence=0.0, method="skin_tone")

        rng = np.random.default_rng(self._seed)
        xs = rng.integers(0, w, size=self.SKIN_SAMPLES)
        ys = rng.integers(0, h, size=self.SKIN_SAMPLES)
        px = photo_region[ys, xs].astype(np.int16)
        b, g, r = px[:, 0], px[:, 1], px[:, 2]
        spread = px.max(axis=1) - px.min(axis=1)
        skin = (r > 95) & (g > 40) & (b > 20) & (spread < 80) & (r > g) & (r > b)

        confidence = min(float(skin.sum()) / self.SKIN_SAMPLES, 1.0)
        return PhotoDetection(
            detected=confidence > self.SKIN_MIN_RATIO,
            confidence=confidence,
            method="skin_tone",
        )
