# =============================================================================
# Interview Snap - Media Device Backend
# =============================================================================
# Platform seam for camera access.  The capture client never talks to a
# camera directly; it asks a MediaDevices backend for a MediaStream of video
# tracks and for a PermissionStatus it can observe.  Acquisition failures are
# reported as AcquisitionError carrying a DeviceErrorReason code, which the
# camera layer maps onto user-facing errors.
#
# OpenCVMediaDevices is the desktop backend.  On Linux it probes the V4L2
# device node first so that the failure reason comes from the OS errno
# (ENOENT, EACCES, EBUSY, ...) rather than from OpenCV's opaque "not opened".
# =============================================================================

import errno
import logging
import os
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import cv2
import numpy as np

from shared.schemas import PermissionState

logger = logging.getLogger(__name__)


class DeviceErrorReason(str, Enum):
    """Platform-reported reason an acquisition failed."""

    NOT_ALLOWED = "not_allowed"
    NOT_FOUND = "not_found"
    NOT_READABLE = "not_readable"
    NOT_SUPPORTED = "not_supported"
    UNKNOWN = "unknown"


class AcquisitionError(Exception):
    """
    Raised by a backend when a camera stream cannot be opened.

    Args:
        reason:  The DeviceErrorReason code reported by the platform.
        message: Underlying detail, shown for unclassified failures.
    """

    def __init__(self, reason: DeviceErrorReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


@dataclass
class VideoConstraints:
    """Requested video properties; backends honour them best-effort."""

    facing_mode: str = "user"
    ideal_width: int = 1280
    ideal_height: int = 720


class MediaTrack(ABC):
    """A single live video track."""

    kind = "video"

    @property
    @abstractmethod
    def live(self) -> bool:
        """Whether the track is still delivering frames."""

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Return the next RGB frame as (height, width, 3) uint8, or None."""

    @abstractmethod
    def stop(self) -> None:
        """Release the underlying device handle.  Safe to call repeatedly."""


class MediaStream:
    """A set of tracks returned by one acquisition."""

    def __init__(self, tracks: List[MediaTrack]):
        self._tracks = list(tracks)

    def get_tracks(self) -> List[MediaTrack]:
        return list(self._tracks)

    def get_video_tracks(self) -> List[MediaTrack]:
        return [track for track in self._tracks if track.kind == "video"]


class PermissionStatus:
    """
    Observable camera permission state.

    Reading ``state`` never prompts the user.  Listeners registered with
    ``add_listener`` are invoked with the new PermissionState on every
    transition, on the thread that caused it.
    """

    def __init__(self, state: PermissionState = PermissionState.PROMPT):
        self._state = state
        self._listeners: List[Callable[[PermissionState], None]] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> PermissionState:
        return self._state

    def add_listener(self, listener: Callable[[PermissionState], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def set_state(self, state: PermissionState) -> None:
        """Record a platform-reported transition and notify listeners."""
        with self._lock:
            if state == self._state:
                return
            self._state = state
            listeners = list(self._listeners)

        logger.info("Camera permission changed -> %s", state.value)
        for listener in listeners:
            listener(state)


class MediaDevices(ABC):
    """Backend interface for camera acquisition and permission queries."""

    @abstractmethod
    def get_user_media(self, constraints: VideoConstraints) -> MediaStream:
        """
        Open a camera stream.

        Raises:
            AcquisitionError: With the platform-reported reason on failure.
        """

    @abstractmethod
    def query_permission(self) -> PermissionStatus:
        """Return the observable permission status without prompting."""


# ---------------------------------------------------------------------------
# OpenCV backend
# ---------------------------------------------------------------------------

# errno -> reason for the V4L2 device-node probe
_ERRNO_REASONS = {
    errno.ENOENT: DeviceErrorReason.NOT_FOUND,
    errno.ENODEV: DeviceErrorReason.NOT_FOUND,
    errno.ENXIO: DeviceErrorReason.NOT_FOUND,
    errno.EACCES: DeviceErrorReason.NOT_ALLOWED,
    errno.EPERM: DeviceErrorReason.NOT_ALLOWED,
    errno.EBUSY: DeviceErrorReason.NOT_READABLE,
}


class OpenCVTrack(MediaTrack):
    """Video track backed by a cv2.VideoCapture handle."""

    def __init__(self, capture: "cv2.VideoCapture", label: str):
        self._capture = capture
        self._lock = threading.Lock()
        self.label = label

    @property
    def live(self) -> bool:
        return self._capture is not None

    @property
    def width(self) -> int:
        return int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)) if self._capture else 0

    @property
    def height(self) -> int:
        return int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) if self._capture else 0

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._capture is None:
                return None
            ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        # OpenCV delivers BGR
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def stop(self) -> None:
        with self._lock:
            if self._capture is None:
                return
            self._capture.release()
            self._capture = None
        logger.debug("Track %s stopped.", self.label)


class OpenCVMediaDevices(MediaDevices):
    """
    Camera backend built on OpenCV's VideoCapture.

    Desktop cameras have no facing mode, so ``facing_mode`` is satisfied by
    the configured camera index.  Resolution is requested via capture
    properties and the driver's choice is accepted as-is.

    Args:
        camera_index: OpenCV device index (0 = default camera).
    """

    def __init__(self, camera_index: int = 0):
        self._camera_index = camera_index
        self._permission = PermissionStatus()

    def query_permission(self) -> PermissionStatus:
        return self._permission

    def _device_node(self) -> Optional[str]:
        if not sys.platform.startswith("linux"):
            return None
        return f"/dev/video{self._camera_index}"

    def _probe_device_node(self) -> None:
        """Open and close the V4L2 node to surface the OS errno, if any."""
        node = self._device_node()
        if node is None:
            return
        try:
            fd = os.open(node, os.O_RDWR | os.O_NONBLOCK)
        except OSError as exc:
            reason = _ERRNO_REASONS.get(exc.errno, DeviceErrorReason.UNKNOWN)
            raise AcquisitionError(reason, f"{node}: {exc.strerror}")
        os.close(fd)

    def get_user_media(self, constraints: VideoConstraints) -> MediaStream:
        if not cv2.videoio_registry.getCameraBackends():
            raise AcquisitionError(
                DeviceErrorReason.NOT_SUPPORTED,
                "this OpenCV build has no camera backends",
            )

        try:
            self._probe_device_node()
        except AcquisitionError as exc:
            if exc.reason is DeviceErrorReason.NOT_ALLOWED:
                self._permission.set_state(PermissionState.DENIED)
            raise

        capture = cv2.VideoCapture(self._camera_index)
        if not capture.isOpened():
            capture.release()
            # The node opened fine above, so something else holds the device.
            reason = (
                DeviceErrorReason.NOT_READABLE
                if self._device_node() is not None
                else DeviceErrorReason.UNKNOWN
            )
            raise AcquisitionError(reason, f"could not open camera {self._camera_index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.ideal_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.ideal_height)

        track = OpenCVTrack(capture, label=f"camera:{self._camera_index}")
        logger.info(
            "Opened camera %d at %dx%d (requested %dx%d, facing=%s)",
            self._camera_index,
            track.width,
            track.height,
            constraints.ideal_width,
            constraints.ideal_height,
            constraints.facing_mode,
        )
        self._permission.set_state(PermissionState.GRANTED)
        return MediaStream([track])
