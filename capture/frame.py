# =============================================================================
# Interview Snap - Frame Capture
# =============================================================================
# Provides the FrameGrabber class that turns the live preview's current frame
# into a CaptureFrame: pixels drawn into an offscreen buffer at the feed's
# native resolution, JPEG-encoded, and wrapped as a self-describing data URL
# ready to be posted to the relay.
# =============================================================================

import base64
import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from capture.camera import HAVE_ENOUGH_DATA, LivePreview

logger = logging.getLogger(__name__)


class StreamNotReadyError(Exception):
    """The preview has not buffered enough data to produce a frame."""


@dataclass(frozen=True)
class CaptureFrame:
    """
    A single still image taken from the live feed.

    Attributes:
        width:      Pixel width (the feed's native width).
        height:     Pixel height (the feed's native height).
        jpeg_bytes: Lossy JPEG encoding of the frame.
        data_url:   ``data:image/jpeg;base64,...`` transport form.
    """

    width: int
    height: int
    jpeg_bytes: bytes
    data_url: str


def to_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    """Wrap raw bytes as a base64 data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class FrameGrabber:
    """
    Captures stills from a LivePreview.

    The offscreen buffer is reused between captures and only reallocated
    when the feed's resolution changes.

    Args:
        quality: JPEG quality on Pillow's 1-95 scale (80 ~ 0.8).
    """

    def __init__(self, quality: int = 80):
        self._quality = quality
        self._canvas: Optional[Image.Image] = None

    def capture(self, preview: LivePreview) -> CaptureFrame:
        """
        Capture the preview's current frame.

        Args:
            preview: The live preview bound to the active camera feed.

        Returns:
            CaptureFrame with JPEG bytes and data URL.

        Raises:
            StreamNotReadyError: If no complete frame has been buffered yet.
        """
        pixels = preview.current_frame() if preview.ready_state == HAVE_ENOUGH_DATA else None
        if pixels is None:
            raise StreamNotReadyError("Video stream not ready")

        height, width = pixels.shape[:2]
        if self._canvas is None or self._canvas.size != (width, height):
            self._canvas = Image.new("RGB", (width, height))
        self._canvas.paste(Image.fromarray(pixels).convert("RGB"), (0, 0))

        buffer = io.BytesIO()
        self._canvas.save(buffer, format="JPEG", quality=self._quality)
        jpeg_bytes = buffer.getvalue()

        logger.debug(
            "Captured frame: %dx%d, %d KB JPEG (quality=%d)",
            width, height, len(jpeg_bytes) // 1024, self._quality,
        )
        return CaptureFrame(
            width=width,
            height=height,
            jpeg_bytes=jpeg_bytes,
            data_url=to_data_url(jpeg_bytes),
        )
