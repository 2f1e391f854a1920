# =============================================================================
# Interview Snap - Relay Error Taxonomy
# =============================================================================
# Every way an analysis request can fail on the relay side.  Errors raised
# before streaming starts carry an HTTP status and an ErrorCategory and are
# rendered as a single JSON ErrorResponse; UpstreamStreamError is raised from
# inside the response body and aborts the chunked transfer instead.
# =============================================================================

from shared.schemas import ErrorCategory, ErrorResponse


class RelayError(Exception):
    """Base class for relay failures with a user-facing message."""

    status_code: int = 500
    category: ErrorCategory = ErrorCategory.UPSTREAM

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.message, category=self.category)


class ConfigurationError(RelayError):
    """The upstream credential is missing; no upstream call was attempted."""

    status_code = 500
    category = ErrorCategory.CONFIGURATION


class InvalidRequestError(RelayError):
    """The request body is missing the image or carries a malformed one."""

    status_code = 400
    category = ErrorCategory.INVALID_REQUEST


class UpstreamError(RelayError):
    """The upstream model rejected the call before producing any output."""

    status_code = 500
    category = ErrorCategory.UPSTREAM


class UpstreamStreamError(Exception):
    """
    The upstream model failed after some output was already relayed.

    Not a RelayError: the 200 headers are already sent, so no JSON body can
    follow.  Raising it out of the response body aborts the chunked transfer.
    """
