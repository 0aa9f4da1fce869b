"""
Adapter: Region Preprocessor — OpenCV.

Splits a document frame into:
  1. Photo region → top of the page, denoised + local contrast on luminance
  2. MRZ region   → bottom of the page, grayscale, equalized for dense glyphs

Pure function of the input frame: same frame, byte-identical regions.
"""

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from passport_capture.core.entities.frame import RawFrame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentRegions:
    photo: np.ndarray        # BGR
    mrz: np.ndarray          # grayscale
    photo_enhanced: bool
    mrz_enhanced: bool


class RegionPreprocessor:
    """Crops + enhancement with an unenhanced-crop fallback."""

    def __init__(self, photo_fraction: float = 0.4, mrz_fraction: float = 0.3):
        self._photo_fraction = photo_fraction
        self._mrz_fraction = mrz_fraction

    def split(self, frame: RawFrame) -> DocumentRegions:
        bgr = frame.to_bgr()
        photo_crop, mrz_crop = self._crop(bgr)

        photo_enhanced = True
        try:
            photo = self._enhance_photo(photo_crop)
        except cv2.error as e:
            logger.warning(f"Photo enhancement failed, using raw crop: {e}")
            photo = photo_crop.copy()
            photo_enhanced = False

        mrz_enhanced = True
        try:
            mrz = self._enhance_mrz(mrz_crop)
        except cv2.error as e:
            logger.warning(f"MRZ enhancement failed, using raw crop: {e}")
            # Same geometry, plain luminance average (no OpenCV involved).
            mrz = mrz_crop.mean(axis=2).astype(np.uint8)
            mrz_enhanced = False

        photo.flags.writeable = False
        mrz.flags.writeable = False
        return DocumentRegions(
            photo=photo,
            mrz=mrz,
            photo_enhanced=photo_enhanced,
            mrz_enhanced=mrz_enhanced,
        )

    # ─── Internals ─────────────────────────────────────────

    def _crop(self, bgr: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        h = bgr.shape[0]
        photo_h = max(1, int(h * self._photo_fraction))
        mrz_h = max(1, int(h * self._mrz_fraction))
        return bgr[:photo_h, :], bgr[h - mrz_h:, :]

    def _enhance_photo(self, crop: np.ndarray) -> np.ndarray:
        """Edge-preserving denoise, then CLAHE on the L channel."""
        denoised = cv2.bilateralFilter(crop, 7, 50, 50)
        lab = cv2.cvtColor(denoised, cv2.COLOR_BGR2LAB)
        l_channel, a_channel, b_channel = cv2.split(lab)
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        l_channel = clahe.apply(l_channel)
        return cv2.cvtColor(cv2.merge((l_channel, a_channel, b_channel)), cv2.COLOR_LAB2BGR)

    def _enhance_mrz(self, crop: np.ndarray) -> np.ndarray:
        """Grayscale → median denoise → CLAHE → min/max stretch."""
        gray = cv2.cvtColor(crop, cv2.COLOR_BGR2GRAY)
        gray = cv2.medianBlur(gray, 3)
        clahe = cv2.createCLAHE(clipLimit=3.0, tileGridSize=(8, 8))
        eq = clahe.apply(gray)
        return cv2.normalize(eq, None, 0, 255, cv2.NORM_MINMAX)
