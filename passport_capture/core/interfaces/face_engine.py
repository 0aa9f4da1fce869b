"""
Contract: Face Engine

Face detection and face embeddings. The pipeline does not prescribe a model;
any detector/recognizer pair satisfying this contract can be plugged in.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class FaceBox:
    box: tuple[int, int, int, int]   # x, y, w, h
    score: float                     # detector confidence 0.0 to 1.0
    raw: np.ndarray | None = None    # engine-specific row (landmarks etc.)

    @property
    def area(self) -> int:
        _, _, w, h = self.box
        return max(0, int(w)) * max(0, int(h))


class IFaceEngine(ABC):
    """Port: Face Engine"""

    @abstractmethod
    def detect(self, image_bgr: np.ndarray, score_threshold: float | None = None) -> list[FaceBox]:
        """Detect faces; empty list when none."""
        ...

    @abstractmethod
    def embed(self, image_bgr: np.ndarray, face: FaceBox) -> np.ndarray:
        """Embedding vector for one detected face."""
        ...

    @abstractmethod
    def similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        """Cosine similarity in [-1, 1]."""
        ...
