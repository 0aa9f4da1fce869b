"""
Use Case: Match Faces

Compares the face in the document photo region with a live-captured face.
Cosine similarity from the face engine is mapped to [0, 1] as (cos + 1) / 2.
"""

import asyncio
import logging
from functools import partial

import cv2
import numpy as np

from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.entities.validation import FaceMatchResult
from passport_capture.core.errors import FaceNotDetected, RecognitionFailed, RecognitionTimeout
from passport_capture.core.interfaces.face_engine import FaceBox, IFaceEngine

logger = logging.getLogger(__name__)


def _resize(img: np.ndarray, scale: float) -> np.ndarray:
    if scale == 1.0:
        return img
    h, w = img.shape[:2]
    return cv2.resize(
        img,
        (max(1, int(round(w * scale))), max(1, int(round(h * scale)))),
        interpolation=cv2.INTER_CUBIC if scale > 1 else cv2.INTER_AREA,
    )


class MatchFacesUseCase:
    """
    Document portraits are small, so the document side is searched at several
    scales and score thresholds; the live side takes the largest face.
    """

    DOCUMENT_SCALES = (1.0, 2.0, 3.0)
    DOCUMENT_THRESHOLDS = (0.6, 0.5, 0.4)

    def __init__(self, face_engine: IFaceEngine, threshold: float = 0.70, timeout_seconds: float = 60.0):
        self._engine = face_engine
        self._threshold = threshold
        self._timeout = timeout_seconds

    @property
    def threshold(self) -> float:
        return self._threshold

    def match(self, document_photo: np.ndarray, live_face: np.ndarray) -> FaceMatchResult:
        """
        Synchronous match.

        Raises:
            FaceNotDetected: no face in one of the two images.
        """
        try:
            doc = self._best_document_face(document_photo)
            if doc is None:
                raise FaceNotDetected("No face detected in the passport photo.")
            doc_img, doc_face = doc

            live_faces = self._engine.detect(live_face)
            if not live_faces:
                raise FaceNotDetected("No face detected in the live capture.")
            live = max(live_faces, key=lambda f: f.area)

            sim = self._engine.similarity(
                self._engine.embed(doc_img, doc_face),
                self._engine.embed(live_face, live),
            )
        except (cv2.error, RuntimeError, OSError) as e:
            raise RecognitionFailed(f"Face engine failed: {e}") from e

        score = max(0.0, min(1.0, (float(sim) + 1.0) / 2.0))
        logger.info(f"Face match: cosine={sim:.3f} score={score:.3f} threshold={self._threshold}")
        return FaceMatchResult(score=score, threshold=self._threshold)

    async def execute(self, document_photo: np.ndarray, live_frame: RawFrame) -> FaceMatchResult:
        """Run the match in the executor, bounded by the stage timeout."""
        loop = asyncio.get_running_loop()
        call = partial(self.match, document_photo, live_frame.to_bgr())
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, call), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise RecognitionTimeout(f"Face matching timed out after {self._timeout:.0f} seconds") from e

    def _best_document_face(self, image: np.ndarray) -> tuple[np.ndarray, FaceBox] | None:
        best: tuple[float, np.ndarray, FaceBox] | None = None
        for scale in self.DOCUMENT_SCALES:
            scaled = _resize(image, scale)
            for st in self.DOCUMENT_THRESHOLDS:
                faces = self._engine.detect(scaled, score_threshold=st)
                if not faces:
                    continue
                face = max(faces, key=lambda f: f.area * f.score)
                metric = float(face.area * face.score)
                if best is None or metric > best[0]:
                    best = (metric, scaled, face)
            if best is not None:
                break
        if best is None:
            return None
        return best[1], best[2]
