"""
Contract: Spoof Detector

Decides whether a frame shows a physical document or a photograph of a
screen displaying one. Any implementation (pixel heuristics, ML model,
external service) must respect this contract.
"""

from abc import ABC, abstractmethod

from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.entities.validation import SpoofVerdict


class ISpoofDetector(ABC):
    """
    Port: Spoof Detector

    Must be deterministic for a fixed frame.
    """

    @abstractmethod
    def evaluate(self, frame: RawFrame) -> SpoofVerdict:
        """
        Evaluate a frame.

        Args:
            frame: Full document frame.

        Returns:
            SpoofVerdict with the verdict and the contributing signals.
        """
        ...
