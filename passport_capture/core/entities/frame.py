"""
Entity: RawFrame

A still frame from a camera (or an uploaded image): RGBA pixel buffer plus
the capture timestamp. Read-only once built.
"""

import base64
import time
from dataclasses import dataclass, field

import cv2
import numpy as np

from passport_capture.core.errors import CaptureFailed


@dataclass(frozen=True)
class RawFrame:
    """Immutable RGBA frame (H x W x 4, uint8)."""
    width: int
    height: int
    pixels: np.ndarray
    captured_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"pixels shape {self.pixels.shape} does not match {self.height}x{self.width}x4"
            )
        if self.pixels.dtype != np.uint8:
            raise ValueError("pixels must be uint8")
        self.pixels.flags.writeable = False

    @classmethod
    def from_bgr(cls, image: np.ndarray, captured_at: float | None = None) -> "RawFrame":
        """Build a frame from an OpenCV BGR (or grayscale) array."""
        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        elif image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        h, w = rgba.shape[:2]
        return cls(
            width=w,
            height=h,
            pixels=np.ascontiguousarray(rgba),
            captured_at=captured_at if captured_at is not None else time.time(),
        )

    @classmethod
    def from_image_bytes(cls, image_bytes: bytes) -> "RawFrame":
        """Decode JPEG/PNG bytes."""
        img_array = np.frombuffer(image_bytes, dtype=np.uint8)
        img = cv2.imdecode(img_array, cv2.IMREAD_COLOR) if img_array.size else None
        if img is None:
            raise CaptureFailed("Could not decode image. Upload a valid PNG/JPG.")
        return cls.from_bgr(img)

    @classmethod
    def from_base64(cls, data: str) -> "RawFrame":
        """Decode a base64 string, with or without a data-URL prefix."""
        if data.startswith("data:"):
            data = data.split(",", 1)[-1]
        try:
            raw = base64.b64decode(data, validate=False)
        except ValueError as e:
            raise CaptureFailed(f"Invalid base64 image: {e}") from e
        return cls.from_image_bytes(raw)

    def to_bgr(self) -> np.ndarray:
        return cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGR)

    def to_jpeg(self, quality: int = 90) -> bytes:
        ok, buf = cv2.imencode(".jpg", self.to_bgr(), [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not ok:
            raise CaptureFailed("Could not encode frame as JPEG")
        return buf.tobytes()

    def to_base64(self, quality: int = 90) -> str:
        return base64.b64encode(self.to_jpeg(quality)).decode("ascii")
