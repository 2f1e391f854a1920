"""
Test Configuration
==================

Pytest fixtures and fakes for Interview Snap.

Nothing here touches the network or a real camera: the upstream model,
the relay's HTTP responses and the camera backend are all replaced by
small in-memory fakes.
"""

import time
from types import SimpleNamespace

import httpx
import numpy as np
import openai
import pytest

from capture.devices import MediaDevices, MediaStream, MediaTrack, PermissionStatus
from shared.schemas import PermissionState

SAMPLE_IMAGE = "data:image/jpeg;base64,AAAA"


# =============================================================================
# Upstream model fakes
# =============================================================================

def make_chunk(text):
    """Build a ChatCompletionChunk-shaped object carrying one delta."""
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=text))]
    )


def upstream_request():
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class FakeUpstreamStream:
    """Async iterator of chunks that can fail after emitting some."""

    def __init__(self, chunks, error=None):
        self._chunks = list(chunks)
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    async def close(self):
        self.closed = True


class FakeCompletions:
    def __init__(self, stream=None, error=None):
        self.stream = stream
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.stream


class FakeUpstream:
    """Stands in for AsyncOpenAI; records every completions call."""

    def __init__(self, fragments=(), stream_error=None, create_error=None):
        self.stream = FakeUpstreamStream(
            [make_chunk(text) for text in fragments], error=stream_error
        )
        self.completions = FakeCompletions(stream=self.stream, error=create_error)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


@pytest.fixture
def provider_error():
    """A provider-level error as raised mid-stream by the OpenAI SDK."""
    return openai.APIError("upstream exploded", request=upstream_request(), body=None)


# =============================================================================
# Relay HTTP fakes (for the requests-based client)
# =============================================================================

class FakeResponse:
    def __init__(self, status_code=200, chunks=(), error=None, json_body=None):
        self.status_code = status_code
        self._chunks = list(chunks)
        self._error = error
        self._json_body = json_body
        self.closed = False

    @property
    def ok(self):
        return self.status_code < 400

    def iter_content(self, chunk_size=None):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    def json(self):
        if self._json_body is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_body

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.closed = True


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


# =============================================================================
# Camera fakes
# =============================================================================

class FakeTrack(MediaTrack):
    def __init__(self, frame=None):
        self._frame = frame
        self.stop_calls = 0

    @property
    def live(self):
        return self.stop_calls == 0

    def read(self):
        time.sleep(0.001)
        if not self.live or self._frame is None:
            return None
        return self._frame.copy()

    def stop(self):
        self.stop_calls += 1


class FakeMediaDevices(MediaDevices):
    def __init__(self, frame=None, error=None):
        self.frame = frame
        self.error = error
        self.streams = []
        self.permission = PermissionStatus()

    def get_user_media(self, constraints):
        self.last_constraints = constraints
        if self.error is not None:
            raise self.error
        stream = MediaStream([FakeTrack(self.frame)])
        self.streams.append(stream)
        self.permission.set_state(PermissionState.GRANTED)
        return stream

    def query_permission(self):
        return self.permission

    def open_tracks(self):
        return [
            track
            for stream in self.streams
            for track in stream.get_tracks()
            if track.live
        ]


def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def video_frame():
    """A 720p RGB frame with a gradient so JPEG encoding has content."""
    frame = np.zeros((720, 1280, 3), dtype=np.uint8)
    frame[:, :, 0] = np.linspace(0, 255, 1280, dtype=np.uint8)
    frame[:, :, 2] = 128
    return frame
