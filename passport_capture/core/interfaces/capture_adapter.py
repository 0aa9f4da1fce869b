"""
Contract: Capture Adapter

Acquires still frames from a camera. The adapter owns the camera lifecycle:
nothing else holds the device, and `stop()` must release every track.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from passport_capture.core.entities.frame import RawFrame


@dataclass(frozen=True)
class CameraConstraints:
    facing_mode: str = "environment"   # "environment" (back) | "user" (front)
    ideal_width: int = 1280
    ideal_height: int = 720


DOCUMENT_CAMERA = CameraConstraints(facing_mode="environment")
FACE_CAMERA = CameraConstraints(facing_mode="user")


class ICaptureAdapter(ABC):
    """
    Port: Capture Adapter

    Implementations raise PermissionDenied, DeviceUnavailable or DeviceBusy
    from `start()` and CaptureFailed from `capture()`.
    """

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True while the camera is acquired."""
        ...

    @abstractmethod
    async def start(self, constraints: CameraConstraints) -> None:
        """Acquire the camera with the given constraints."""
        ...

    @abstractmethod
    async def capture(self) -> RawFrame:
        """
        Grab one still frame.

        Returns:
            RawFrame owned by the caller.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Release the camera. Safe to call when already stopped."""
        ...
