"""
Adapter: OpenCV YuNet + SFace Face Engine.

Detection with YuNet, embeddings + cosine similarity with SFace, both from
the opencv_zoo ONNX releases. Models are downloaded on first use.
"""

import logging
from pathlib import Path
from typing import Any
from urllib.request import urlretrieve

import cv2
import numpy as np

from passport_capture.core.interfaces.face_engine import FaceBox, IFaceEngine

logger = logging.getLogger(__name__)

YUNET_FILE = "face_detection_yunet_2023mar.onnx"
SFACE_FILE = "face_recognition_sface_2021dec.onnx"

# `raw.githubusercontent.com` serves Git LFS pointers for these models.
YUNET_URL = f"https://media.githubusercontent.com/media/opencv/opencv_zoo/main/models/face_detection_yunet/{YUNET_FILE}"
SFACE_URL = f"https://media.githubusercontent.com/media/opencv/opencv_zoo/main/models/face_recognition_sface/{SFACE_FILE}"


class OpenCVSFaceEngine(IFaceEngine):
    """YuNet detector + SFace recognizer."""

    def __init__(self, models_dir: str | Path = "models/face", score_threshold: float = 0.6):
        self._models_dir = Path(models_dir)
        self._score_threshold = score_threshold
        self._recognizer = None

    @property
    def yunet_path(self) -> Path:
        return self._models_dir / YUNET_FILE

    @property
    def sface_path(self) -> Path:
        return self._models_dir / SFACE_FILE

    def ensure_models(self) -> None:
        self._models_dir.mkdir(parents=True, exist_ok=True)
        for path, url in ((self.yunet_path, YUNET_URL), (self.sface_path, SFACE_URL)):
            if not path.exists():
                logger.info(f"Downloading {path.name}...")
                urlretrieve(url, path)  # noqa: S310

        # Guard against accidentally downloading a Git LFS pointer.
        for path in (self.yunet_path, self.sface_path):
            head = path.read_bytes()[:80]
            if b"git-lfs" in head or head.startswith(b"version https://git-lfs"):
                path.unlink(missing_ok=True)
                raise RuntimeError(
                    f"Downloaded an invalid model pointer for {path.name}. "
                    "Network may be blocking GitHub media downloads."
                )

    def _create_detector(self, input_size: tuple[int, int], score_threshold: float) -> Any:
        # input_size is (w, h)
        return cv2.FaceDetectorYN.create(
            str(self.yunet_path),
            "",
            input_size,
            score_threshold=float(score_threshold),
            nms_threshold=0.3,
            top_k=5000,
        )

    def _get_recognizer(self) -> Any:
        if self._recognizer is None:
            self._recognizer = cv2.FaceRecognizerSF.create(str(self.sface_path), "")
        return self._recognizer

    def detect(self, image_bgr: np.ndarray, score_threshold: float | None = None) -> list[FaceBox]:
        """
        faces rows: [x, y, w, h, score, l0x, l0y, ..., l4x, l4y]
        """
        self.ensure_models()
        h, w = image_bgr.shape[:2]
        detector = self._create_detector((w, h), score_threshold or self._score_threshold)
        _, faces = detector.detect(image_bgr)
        if faces is None or len(faces) == 0:
            return []

        boxes = []
        for row in faces:
            x, y, bw, bh, score = row[:5].tolist()
            boxes.append(FaceBox(box=(int(x), int(y), int(bw), int(bh)), score=float(score), raw=row))
        return boxes

    def embed(self, image_bgr: np.ndarray, face: FaceBox) -> np.ndarray:
        self.ensure_models()
        recognizer = self._get_recognizer()
        aligned = recognizer.alignCrop(image_bgr, face.raw)
        return recognizer.feature(aligned)

    def similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        recognizer = self._get_recognizer()
        return float(recognizer.match(a, b, cv2.FaceRecognizerSF_FR_COSINE))
