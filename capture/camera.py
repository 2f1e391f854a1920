# =============================================================================
# Interview Snap - Camera Session
# =============================================================================
# Provides the CameraSession class that owns the single live camera feed,
# the LivePreview that plays it, and the mapping from backend acquisition
# failures to user-facing CameraError variants.
#
# Only one feed may be open at a time: starting a session always releases the
# previous one's tracks first so device handles are never leaked.
# =============================================================================

import logging
import threading
from typing import Optional

import numpy as np

from capture.devices import (
    AcquisitionError,
    DeviceErrorReason,
    MediaDevices,
    MediaStream,
    VideoConstraints,
)

logger = logging.getLogger(__name__)

# Ready states, named after HTMLMediaElement.readyState
HAVE_NOTHING = 0
HAVE_ENOUGH_DATA = 4


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class CameraError(Exception):
    """Base class for camera acquisition failures shown to the user."""

    user_message = "An unexpected error occurred while accessing the camera."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


class CameraPermissionDenied(CameraError):
    user_message = (
        "Camera access denied. Please enable camera access in your system "
        "settings and try again."
    )


class CameraNotFound(CameraError):
    user_message = "No camera found on your device."


class CameraInUse(CameraError):
    user_message = "Camera is already in use by another application."


class CameraUnsupported(CameraError):
    user_message = "Your platform doesn't support camera access."


class CameraFailure(CameraError):
    """Unclassified failure; the message carries the underlying detail."""

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.user_message = f"Failed to access camera: {detail}" if detail else CameraError.user_message


_REASON_TO_ERROR = {
    DeviceErrorReason.NOT_ALLOWED: CameraPermissionDenied,
    DeviceErrorReason.NOT_FOUND: CameraNotFound,
    DeviceErrorReason.NOT_READABLE: CameraInUse,
    DeviceErrorReason.NOT_SUPPORTED: CameraUnsupported,
    DeviceErrorReason.UNKNOWN: CameraFailure,
}


def classify_acquisition_error(exc: AcquisitionError) -> CameraError:
    """
    Map a backend AcquisitionError onto its CameraError variant.

    Args:
        exc: The failure raised by ``MediaDevices.get_user_media``.

    Returns:
        A CameraError subclass instance chosen by ``exc.reason``.
    """
    error_cls = _REASON_TO_ERROR.get(exc.reason, CameraFailure)
    return error_cls(exc.message)


# ---------------------------------------------------------------------------
# Live preview
# ---------------------------------------------------------------------------

class LivePreview:
    """
    Plays a MediaStream by continuously pulling its newest video frame.

    A background daemon thread reads the first video track and keeps only the
    most recent frame.  ``ready_state`` becomes HAVE_ENOUGH_DATA once a full
    frame has been received, and drops back to HAVE_NOTHING when detached.

    Args:
        idle_interval: Seconds to wait after a read that produced no frame.
    """

    def __init__(self, idle_interval: float = 0.01):
        self._idle_interval = idle_interval
        self._stream: Optional[MediaStream] = None
        self._frame: Optional[np.ndarray] = None
        self._frame_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def src_object(self) -> Optional[MediaStream]:
        return self._stream

    @property
    def ready_state(self) -> int:
        with self._frame_lock:
            return HAVE_ENOUGH_DATA if self._frame is not None else HAVE_NOTHING

    @property
    def video_width(self) -> int:
        with self._frame_lock:
            return 0 if self._frame is None else int(self._frame.shape[1])

    @property
    def video_height(self) -> int:
        with self._frame_lock:
            return 0 if self._frame is None else int(self._frame.shape[0])

    def current_frame(self) -> Optional[np.ndarray]:
        """Return a copy of the newest frame, or None before the first one."""
        with self._frame_lock:
            return None if self._frame is None else self._frame.copy()

    def attach(self, stream: MediaStream) -> None:
        """Bind a stream to the preview, replacing any previous one."""
        self.detach()
        self._stream = stream

    def play(self) -> None:
        """Start pulling frames from the attached stream in the background."""
        if self._stream is None:
            raise RuntimeError("No stream attached to preview")
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Preview is already playing.")
            return

        tracks = self._stream.get_video_tracks()
        if not tracks:
            raise RuntimeError("Stream has no video track")
        track = tracks[0]
        self._stop_event.clear()

        def _read_loop():
            """Internal loop: read -> keep newest -> repeat."""
            logger.debug("Preview loop started.")
            while not self._stop_event.is_set() and track.live:
                try:
                    frame = track.read()
                except Exception:
                    logger.exception("Error reading camera frame")
                    frame = None

                if frame is None:
                    self._stop_event.wait(timeout=self._idle_interval)
                    continue

                with self._frame_lock:
                    self._frame = frame
            logger.debug("Preview loop stopped.")

        self._thread = threading.Thread(target=_read_loop, daemon=True)
        self._thread.start()

    def detach(self) -> None:
        """Stop playback and forget the stream and its last frame."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        self._stream = None
        with self._frame_lock:
            self._frame = None


# ---------------------------------------------------------------------------
# Camera session
# ---------------------------------------------------------------------------

class CameraSession:
    """
    Lifecycle of the single active camera feed.

    Args:
        devices:     Backend used to open camera streams.
        constraints: Requested facing mode and ideal resolution.
        preview:     LivePreview to bind the feed to (created if omitted).
    """

    def __init__(
        self,
        devices: MediaDevices,
        constraints: Optional[VideoConstraints] = None,
        preview: Optional[LivePreview] = None,
    ):
        self._devices = devices
        self._constraints = constraints or VideoConstraints()
        self.preview = preview or LivePreview()
        self._stream: Optional[MediaStream] = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def start(self) -> MediaStream:
        """
        Open the camera and start the live preview.

        Any feed already open is released first.

        Returns:
            The newly acquired MediaStream.

        Raises:
            CameraError: Classified from the backend's AcquisitionError.
        """
        self.stop()

        try:
            stream = self._devices.get_user_media(self._constraints)
        except AcquisitionError as exc:
            error = classify_acquisition_error(exc)
            logger.error("Camera acquisition failed (%s): %s", exc.reason.value, exc.message)
            raise error from exc

        self._stream = stream
        self.preview.attach(stream)
        self.preview.play()
        logger.info("Camera started (%d track(s)).", len(stream.get_tracks()))
        return stream

    def stop(self) -> None:
        """Stop every track and detach the preview.  No-op when inactive."""
        if self._stream is None:
            return

        for track in self._stream.get_tracks():
            track.stop()
        self._stream = None
        self.preview.detach()
        logger.info("Camera stopped.")
