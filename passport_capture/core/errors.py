"""
Error taxonomy of the capture pipeline.

Every failure that can reach the capture flow is a CaptureError carrying a
stable code, whether the stage may simply be retried, and the guidance to
show the user.
"""


class CaptureError(Exception):
    """Base class for pipeline failures."""

    code = "CAPTURE_ERROR"
    retryable = True
    user_guidance = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_guidance)
        self.message = message or self.user_guidance


# ── Camera ─────────────────────────────────────────────

class PermissionDenied(CaptureError):
    code = "PERMISSION_DENIED"
    retryable = False
    user_guidance = "Camera permission denied. Please enable camera access in your browser settings."


class DeviceUnavailable(CaptureError):
    code = "DEVICE_UNAVAILABLE"
    retryable = False
    user_guidance = "No camera found. Please ensure your device has a camera."


class DeviceBusy(CaptureError):
    code = "DEVICE_BUSY"
    retryable = False
    user_guidance = "Camera is already in use by another application."


class CaptureFailed(CaptureError):
    code = "CAPTURE_FAILED"
    user_guidance = "Failed to capture image. Please try again."


class FaceNotDetected(CaptureFailed):
    code = "FACE_NOT_DETECTED"
    user_guidance = "No face detected. Make sure your face and the passport photo are clearly visible."


# ── Recognition ────────────────────────────────────────

class RecognitionTimeout(CaptureError):
    code = "RECOGNITION_TIMEOUT"
    user_guidance = "Validation is taking too long. Please try again with better lighting."


class RecognitionFailed(CaptureError):
    code = "RECOGNITION_FAILED"
    user_guidance = "Text recognition failed. Please try again."


class DecodeIncomplete(CaptureError):
    code = "DECODE_INCOMPLETE"
    user_guidance = (
        "MRZ (Machine Readable Zone) not detected. "
        "Please ensure the bottom of the passport is clearly visible."
    )


class SpoofSuspected(CaptureError):
    code = "SPOOF_SUSPECTED"
    user_guidance = "Document may be a photo of a screen. For best results, use a real passport document."


class MatchBelowThreshold(CaptureError):
    code = "MATCH_BELOW_THRESHOLD"
    user_guidance = "Face match score too low. Please try again."

    def __init__(self, score: float, threshold: float):
        super().__init__(
            f"Face match score too low: {score * 100:.1f}%. "
            f"Minimum required: {threshold * 100:.0f}%. Please try again."
        )
        self.score = score
        self.threshold = threshold


# ── Pairing ────────────────────────────────────────────

class SessionInvalid(CaptureError):
    code = "SESSION_INVALID"
    retryable = False
    user_guidance = "Invalid session. Please scan the QR code again."


class PairingTimeout(CaptureError):
    code = "PAIRING_TIMEOUT"
    retryable = False
    user_guidance = "Desktop unreachable. Make sure both devices use the same address."


class InvalidTransition(ValueError):
    """An event was dispatched in a state that does not accept it."""
