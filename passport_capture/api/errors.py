"""
CaptureError → HTTPException mapping.
"""

from fastapi import HTTPException

from passport_capture.core.errors import (
    CaptureError,
    CaptureFailed,
    DecodeIncomplete,
    DeviceBusy,
    DeviceUnavailable,
    FaceNotDetected,
    MatchBelowThreshold,
    PairingTimeout,
    PermissionDenied,
    RecognitionFailed,
    RecognitionTimeout,
    SessionInvalid,
    SpoofSuspected,
)

# First match wins: subclasses before their bases.
STATUS_BY_ERROR: list[tuple[type[CaptureError], int]] = [
    (SessionInvalid, 401),
    (RecognitionTimeout, 408),
    (PairingTimeout, 408),
    (FaceNotDetected, 422),
    (DecodeIncomplete, 422),
    (MatchBelowThreshold, 422),
    (RecognitionFailed, 422),
    (SpoofSuspected, 422),
    (PermissionDenied, 503),
    (DeviceUnavailable, 503),
    (DeviceBusy, 503),
    (CaptureFailed, 400),
]


def status_for(error: CaptureError) -> int:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(error, cls):
            return status
    return 500


def to_http(error: CaptureError) -> HTTPException:
    return HTTPException(
        status_code=status_for(error),
        detail={
            "code": error.code,
            "message": error.message,
            "retryable": error.retryable,
            "guidance": error.user_guidance,
        },
    )
