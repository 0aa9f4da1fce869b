"""
Adapter: Screen Replay Detector — pixel heuristics.

Flags frames that look like a photograph of a screen using 3 signals:
  1. Scanlines  → alternating row differences (display refresh)
  2. Uniformity → unnaturally flat brightness
  3. Moiré      → near-identical pixel pairs at a fixed offset (pixel grid)

Each signal must be strongly triggered and at least 2 of 3 must fire, so
glossy or well-lit real documents are not rejected.
"""

import logging

import numpy as np

from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.entities.validation import SpoofVerdict
from passport_capture.core.interfaces.spoof_detector import ISpoofDetector

logger = logging.getLogger(__name__)


class ScreenReplayDetector(ISpoofDetector):
    """
    Numpy-only, deterministic (fixed-seed sampling), auditable.
    """

    def __init__(
        self,
        scanline_channel_delta: int = 50,
        scanline_column_fraction: float = 0.2,
        scanline_row_divisor: float = 5.0,
        brightness_sample_divisor: int = 50,
        brightness_variance_max: float = 20.0,
        moire_sample_divisor: int = 200,
        moire_offset: int = 2,
        moire_pixel_delta: int = 5,
        moire_fraction: float = 0.3,
        min_indicators: int = 2,
        seed: int = 1337,
    ):
        self._scan_delta = scanline_channel_delta
        self._scan_col_fraction = scanline_column_fraction
        self._scan_row_divisor = scanline_row_divisor
        self._bright_divisor = brightness_sample_divisor
        self._bright_var_max = brightness_variance_max
        self._moire_divisor = moire_sample_divisor
        self._moire_offset = moire_offset
        self._moire_delta = moire_pixel_delta
        self._moire_fraction = moire_fraction
        self._min_indicators = min_indicators
        self._seed = seed

    def evaluate(self, frame: RawFrame) -> SpoofVerdict:
        """Run the three signals and combine them."""
        rgb = frame.pixels[:, :, :3].astype(np.int16)
        rng = np.random.default_rng(self._seed)

        # --- 1. Scanlines ---
        scan_rows, scan_threshold = self._check_scanlines(rgb)
        strong_scanlines = scan_rows > scan_threshold

        # --- 2. Uniform brightness ---
        variance = self._check_brightness_variance(rgb, rng)
        strong_uniformity = variance < self._bright_var_max

        # --- 3. Moiré ---
        moire_pairs, moire_samples = self._check_moire(rgb, rng)
        moire_threshold = moire_samples * self._moire_fraction
        strong_moire = moire_samples > 0 and moire_pairs > moire_threshold

        indicators = sum([strong_scanlines, strong_uniformity, strong_moire])
        is_replay = indicators >= self._min_indicators

        signals = {
            "scanline_rows": scan_rows,
            "scanline_threshold": round(scan_threshold, 2),
            "strong_scanlines": bool(strong_scanlines),
            "brightness_variance": round(variance, 2),
            "strong_uniformity": bool(strong_uniformity),
            "moire_pairs": moire_pairs,
            "moire_threshold": round(moire_threshold, 2),
            "strong_moire": bool(strong_moire),
        }
        logger.debug(f"Screen replay signals: {signals} -> replay={is_replay}")

        return SpoofVerdict(is_screen_replay=is_replay, indicators=indicators, signals=signals)

    # ─── Signals ───────────────────────────────────────────

    def _check_scanlines(self, rgb: np.ndarray) -> tuple[int, float]:
        """
        Count row pairs (y, y+1), every other row, whose sampled columns
        differ strongly in more than the configured fraction of columns.
        """
        h, w = rgb.shape[:2]
        threshold = h / self._scan_row_divisor
        if h < 2 or w < 1:
            return 0, threshold

        ys = np.arange(0, h - 1, 2)
        top = rgb[ys, ::2]
        bottom = rgb[ys + 1, ::2]
        diff = np.abs(top - bottom).sum(axis=2)
        differing_cols = (diff > self._scan_delta).sum(axis=1)
        sampled_cols = w / 2
        rows = int((differing_cols / sampled_cols > self._scan_col_fraction).sum())
        return rows, threshold

    def _check_brightness_variance(self, rgb: np.ndarray, rng: np.random.Generator) -> float:
        h, w = rgb.shape[:2]
        n = max(1, (w * h) // self._bright_divisor)
        xs = rng.integers(0, w, size=n)
        ys = rng.integers(0, h, size=n)
        brightness = rgb[ys, xs].sum(axis=1) / 3.0
        return float(brightness.var())

    def _check_moire(self, rgb: np.ndarray, rng: np.random.Generator) -> tuple[int, int]:
        h, w = rgb.shape[:2]
        off = self._moire_offset
        n = (w * h) // self._moire_divisor
        if n == 0 or h <= off or w <= off:
            return 0, 0
        xs = rng.integers(0, w - off, size=n)
        ys = rng.integers(0, h - off, size=n)
        diff = np.abs(rgb[ys, xs] - rgb[ys + off, xs + off]).sum(axis=1)
        return int((diff < self._moire_delta).sum()), n
