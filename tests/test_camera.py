"""
Camera Tests
============

Tests for the camera session, live preview, failure classification,
the OpenCV backend's errno probe, and frame capture.
"""

import base64
import errno
import io

import pytest
from PIL import Image

from capture import devices as devices_module
from capture.camera import (
    HAVE_ENOUGH_DATA,
    HAVE_NOTHING,
    CameraFailure,
    CameraInUse,
    CameraNotFound,
    CameraPermissionDenied,
    CameraSession,
    CameraUnsupported,
    LivePreview,
    classify_acquisition_error,
)
from capture.devices import (
    AcquisitionError,
    DeviceErrorReason,
    OpenCVMediaDevices,
    PermissionStatus,
    VideoConstraints,
)
from capture.frame import FrameGrabber, StreamNotReadyError
from conftest import FakeMediaDevices, wait_until
from shared.schemas import PermissionState


class TestClassification:
    """Tests for mapping backend reasons onto camera errors."""

    @pytest.mark.parametrize(
        "reason, error_cls",
        [
            (DeviceErrorReason.NOT_ALLOWED, CameraPermissionDenied),
            (DeviceErrorReason.NOT_FOUND, CameraNotFound),
            (DeviceErrorReason.NOT_READABLE, CameraInUse),
            (DeviceErrorReason.NOT_SUPPORTED, CameraUnsupported),
            (DeviceErrorReason.UNKNOWN, CameraFailure),
        ],
    )
    def test_reason_table(self, reason, error_cls):
        error = classify_acquisition_error(AcquisitionError(reason, "detail"))
        assert type(error) is error_cls

    def test_messages_are_distinct(self):
        messages = {
            classify_acquisition_error(AcquisitionError(reason, "boom")).user_message
            for reason in DeviceErrorReason
        }
        assert len(messages) == len(DeviceErrorReason)

    def test_unknown_failure_carries_detail(self):
        error = classify_acquisition_error(
            AcquisitionError(DeviceErrorReason.UNKNOWN, "driver crashed")
        )
        assert error.user_message == "Failed to access camera: driver crashed"


class TestCameraSession:
    """Tests for acquiring and releasing the camera feed."""

    def test_start_binds_preview(self, video_frame):
        devices = FakeMediaDevices(frame=video_frame)
        session = CameraSession(devices)

        session.start()
        try:
            assert session.active
            assert session.preview.src_object is devices.streams[0]
            assert wait_until(lambda: session.preview.ready_state == HAVE_ENOUGH_DATA)
            assert session.preview.video_width == 1280
            assert session.preview.video_height == 720
        finally:
            session.stop()

    def test_requests_front_camera_at_720p(self):
        devices = FakeMediaDevices()
        session = CameraSession(devices)
        session.start()
        session.stop()

        assert devices.last_constraints == VideoConstraints("user", 1280, 720)

    def test_stop_twice_is_noop(self, video_frame):
        devices = FakeMediaDevices(frame=video_frame)
        session = CameraSession(devices)
        session.start()

        session.stop()
        session.stop()

        track = devices.streams[0].get_tracks()[0]
        assert track.stop_calls == 1
        assert not session.active
        assert session.preview.src_object is None
        assert session.preview.ready_state == HAVE_NOTHING

    def test_stop_without_start(self):
        CameraSession(FakeMediaDevices()).stop()

    def test_restart_releases_previous_tracks(self, video_frame):
        devices = FakeMediaDevices(frame=video_frame)
        session = CameraSession(devices)

        session.start()
        session.start()
        try:
            assert len(devices.streams) == 2
            assert devices.streams[0].get_tracks()[0].stop_calls == 1
            assert len(devices.open_tracks()) == 1
        finally:
            session.stop()
        assert devices.open_tracks() == []

    def test_failure_is_classified(self):
        devices = FakeMediaDevices(
            error=AcquisitionError(DeviceErrorReason.NOT_FOUND, "no device")
        )
        session = CameraSession(devices)

        with pytest.raises(CameraNotFound):
            session.start()
        assert not session.active


class TestPermissionStatus:
    def test_listeners_see_transitions(self):
        status = PermissionStatus()
        seen = []
        status.add_listener(seen.append)

        status.set_state(PermissionState.GRANTED)
        status.set_state(PermissionState.GRANTED)
        status.set_state(PermissionState.DENIED)

        assert seen == [PermissionState.GRANTED, PermissionState.DENIED]
        assert status.state is PermissionState.DENIED


class TestOpenCVProbe:
    """Tests for the errno-based failure reasons of the OpenCV backend."""

    @pytest.fixture
    def backend(self, monkeypatch):
        monkeypatch.setattr(
            devices_module.cv2.videoio_registry, "getCameraBackends", lambda: [200]
        )
        backend = OpenCVMediaDevices(camera_index=9)
        monkeypatch.setattr(backend, "_device_node", lambda: "/dev/video9")
        return backend

    @pytest.mark.parametrize(
        "code, reason",
        [
            (errno.ENOENT, DeviceErrorReason.NOT_FOUND),
            (errno.EACCES, DeviceErrorReason.NOT_ALLOWED),
            (errno.EBUSY, DeviceErrorReason.NOT_READABLE),
            (errno.EIO, DeviceErrorReason.UNKNOWN),
        ],
    )
    def test_errno_mapping(self, backend, monkeypatch, code, reason):
        def fake_open(path, flags):
            raise OSError(code, "probe failed", path)

        monkeypatch.setattr(devices_module.os, "open", fake_open)

        with pytest.raises(AcquisitionError) as excinfo:
            backend.get_user_media(VideoConstraints())
        assert excinfo.value.reason is reason

    def test_denied_updates_permission(self, backend, monkeypatch):
        def fake_open(path, flags):
            raise OSError(errno.EACCES, "Permission denied", path)

        monkeypatch.setattr(devices_module.os, "open", fake_open)
        status = backend.query_permission()

        with pytest.raises(AcquisitionError):
            backend.get_user_media(VideoConstraints())
        assert status.state is PermissionState.DENIED

    def test_no_camera_backends_is_unsupported(self, monkeypatch):
        monkeypatch.setattr(
            devices_module.cv2.videoio_registry, "getCameraBackends", lambda: []
        )

        with pytest.raises(AcquisitionError) as excinfo:
            OpenCVMediaDevices().get_user_media(VideoConstraints())
        assert excinfo.value.reason is DeviceErrorReason.NOT_SUPPORTED


class TestFrameGrabber:
    """Tests for still capture and JPEG data URL encoding."""

    def test_not_ready_preview(self):
        with pytest.raises(StreamNotReadyError, match="Video stream not ready"):
            FrameGrabber().capture(LivePreview())

    def test_capture_native_resolution(self, video_frame):
        devices = FakeMediaDevices(frame=video_frame)
        session = CameraSession(devices)
        session.start()
        try:
            assert wait_until(lambda: session.preview.ready_state == HAVE_ENOUGH_DATA)
            frame = FrameGrabber(quality=80).capture(session.preview)
        finally:
            session.stop()

        assert (frame.width, frame.height) == (1280, 720)
        assert frame.data_url.startswith("data:image/jpeg;base64,")
        decoded = base64.b64decode(frame.data_url.split(",", 1)[1])
        assert decoded == frame.jpeg_bytes
        image = Image.open(io.BytesIO(decoded))
        assert image.format == "JPEG"
        assert image.size == (1280, 720)
