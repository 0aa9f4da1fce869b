"""
Adapter: OpenCV Camera — ICaptureAdapter over cv2.VideoCapture.

`facing_mode` picks the device index ("environment" → back camera, "user" →
front camera). Blocking OpenCV calls run in the default executor.
"""

import asyncio
import errno
import logging

import cv2

from passport_capture.core.entities.frame import RawFrame
from passport_capture.core.errors import (
    CaptureError,
    CaptureFailed,
    DeviceBusy,
    DeviceUnavailable,
    PermissionDenied,
)
from passport_capture.core.interfaces.capture_adapter import CameraConstraints, ICaptureAdapter

logger = logging.getLogger(__name__)

_PERMISSION = ("notallowed", "permissiondenied", "securityerror")
_MISSING = ("notfound", "devicesnotfound", "overconstrained")
_BUSY = ("notreadable", "trackstart", "aborterror")


def classify_camera_error(error: BaseException | str) -> CaptureError:
    """
    Map a camera failure to the error taxonomy.

    Accepts browser error names (NotAllowedError, NotFoundError,
    NotReadableError) as sent by a client, or OS errors from a local device.
    """
    if isinstance(error, OSError) and error.errno is not None:
        if error.errno in (errno.EACCES, errno.EPERM):
            return PermissionDenied()
        if error.errno in (errno.ENOENT, errno.ENODEV, errno.ENXIO):
            return DeviceUnavailable()
        if error.errno == errno.EBUSY:
            return DeviceBusy()

    name = (error if isinstance(error, str) else type(error).__name__ + " " + str(error)).lower()
    name = name.replace("_", "").replace(" ", "")
    if any(k in name for k in _PERMISSION):
        return PermissionDenied()
    if any(k in name for k in _MISSING):
        return DeviceUnavailable()
    if any(k in name for k in _BUSY):
        return DeviceBusy()
    return CaptureFailed(str(error) or None)


class OpenCVCameraAdapter(ICaptureAdapter):
    """Local camera through OpenCV."""

    def __init__(self, back_index: int = 0, front_index: int = 0, warmup_frames: int = 3):
        self._indices = {"environment": back_index, "user": front_index}
        self._warmup_frames = warmup_frames
        self._capture = None

    @property
    def is_active(self) -> bool:
        return self._capture is not None

    async def start(self, constraints: CameraConstraints) -> None:
        if self._capture is not None:
            await self.stop()
        index = self._indices.get(constraints.facing_mode, 0)
        loop = asyncio.get_running_loop()
        try:
            cap = await loop.run_in_executor(None, self._open, index, constraints)
        except OSError as e:
            raise classify_camera_error(e) from e
        self._capture = cap
        logger.info(f"Camera {index} started ({constraints.facing_mode})")

    async def capture(self) -> RawFrame:
        if self._capture is None:
            raise CaptureFailed("Camera is not started.")
        loop = asyncio.get_running_loop()
        ok, frame = await loop.run_in_executor(None, self._capture.read)
        if not ok or frame is None:
            raise CaptureFailed()
        return RawFrame.from_bgr(frame)

    async def stop(self) -> None:
        cap, self._capture = self._capture, None
        if cap is not None:
            cap.release()
            logger.info("Camera released")

    def _open(self, index: int, constraints: CameraConstraints):
        cap = cv2.VideoCapture(index)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(f"Camera {index} could not be opened.")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.ideal_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.ideal_height)
        # First frames are often dark while exposure settles.
        for _ in range(self._warmup_frames):
            cap.read()
        return cap
