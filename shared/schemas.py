# =============================================================================
# Interview Snap - Shared API Schemas
# =============================================================================
# Pydantic models defining the data contracts between the capture client and
# the streaming relay.  These schemas are used for request validation and
# error serialization across the HTTP API boundary.
#
# The client sends exactly one image per request, inlined as a self-describing
# data URL (``data:image/jpeg;base64,...``).  Successful responses are not
# JSON at all: the relay streams raw text, so only the error envelope lives
# here.
# =============================================================================

import base64
import binascii
import re
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator

_DATA_URL_RE = re.compile(
    r"^data:(?P<mime>[a-zA-Z0-9.+-]+/[a-zA-Z0-9.+-]+);base64,(?P<data>.+)$",
    re.DOTALL,
)


class ImageDataUrl(NamedTuple):
    """Parsed form of an inline image data URL."""

    mime_type: str
    data: str


def parse_image_data_url(value: str) -> ImageDataUrl:
    """
    Parse and validate an inline base64 image data URL.

    Args:
        value: String of the form ``data:<mime>;base64,<payload>``.

    Returns:
        ImageDataUrl with the declared MIME type and the base64 payload.

    Raises:
        ValueError: If the prefix is malformed, the MIME type is not an
                    ``image/*`` type, or the payload is not valid base64.
    """
    match = _DATA_URL_RE.match(value.strip())
    if match is None:
        raise ValueError("image must be a base64 data URL")

    mime_type = match.group("mime").lower()
    if not mime_type.startswith("image/"):
        raise ValueError(f"unsupported media type {mime_type!r}")

    data = match.group("data")
    try:
        base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("image payload is not valid base64")

    return ImageDataUrl(mime_type=mime_type, data=data)


class PermissionState(str, Enum):
    """Camera permission as reported by the platform."""

    PROMPT = "prompt"
    GRANTED = "granted"
    DENIED = "denied"


class ErrorCategory(str, Enum):
    """Machine-distinguishable category of a pre-stream relay failure."""

    CONFIGURATION = "configuration"
    INVALID_REQUEST = "invalid_request"
    UPSTREAM = "upstream"


class AnalysisRequest(BaseModel):
    """
    Payload sent from the capture client to the relay.

    Attributes:
        image: The captured frame as an inline base64 data URL with an
               ``image/*`` MIME type.
    """

    image: str = Field(..., description="Captured frame as a base64 data URL")

    @field_validator("image")
    @classmethod
    def check_data_url(cls, value: str) -> str:
        parse_image_data_url(value)
        return value


class ErrorResponse(BaseModel):
    """
    Structured error returned by the relay before any text is streamed.

    Attributes:
        error:    Human-readable message suitable for display.
        category: Which stage rejected the request.
    """

    error: str
    category: Optional[ErrorCategory] = None
