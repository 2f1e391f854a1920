# =============================================================================
# Interview Snap - Analysis HTTP Client
# =============================================================================
# Provides the AnalysisClient class responsible for posting a captured frame
# to the relay and reading the streamed answer back as it arrives.  Bytes are
# decoded incrementally so a multi-byte character split across network
# chunks is reassembled rather than corrupted.
# =============================================================================

import codecs
import logging
from typing import Iterator, Optional

import requests

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """Transport, status, or decode failure while analyzing a frame."""


class AnalysisClient:
    """
    HTTP client for the relay's streaming analysis route.

    A single attempt is made per call; failures are raised as AnalysisError
    with a message fit for display.

    Args:
        analyze_url: Full URL of the relay route (e.g. http://127.0.0.1:8000/api/analyze).
        timeout:     Seconds to wait for the connection and between chunks.
        session:     Optional requests.Session to reuse.
    """

    def __init__(
        self,
        analyze_url: str,
        timeout: float = 300.0,
        session: Optional[requests.Session] = None,
    ):
        self._analyze_url = analyze_url
        self._timeout = timeout
        self._session = session or requests.Session()

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"Failed to analyze image (HTTP {response.status_code})"

    def stream_analysis(self, image_data_url: str) -> Iterator[str]:
        """
        Submit one image and yield the answer's text fragments in order.

        The request is sent when iteration starts.  Iteration ends when the
        relay closes the stream cleanly; an interrupted stream raises.

        Args:
            image_data_url: The captured frame as a data URL.

        Yields:
            Decoded text fragments, exactly in arrival order.

        Raises:
            AnalysisError: On network failure, non-success status, a relay
                           error body, a truncated stream, or invalid UTF-8.
        """
        try:
            response = self._session.post(
                self._analyze_url,
                json={"image": image_data_url},
                stream=True,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Analysis request failed: %s", exc)
            raise AnalysisError(f"Network error: {exc}") from exc

        with response:
            if not response.ok:
                message = self._error_message(response)
                logger.error("Relay returned HTTP %d: %s", response.status_code, message)
                raise AnalysisError(message)

            decoder = codecs.getincrementaldecoder("utf-8")()
            received = 0
            try:
                for chunk in response.iter_content(chunk_size=None):
                    received += len(chunk)
                    yield decoder.decode(chunk)
                tail = decoder.decode(b"", final=True)
                if tail:
                    yield tail
            except requests.exceptions.RequestException as exc:
                logger.error("Analysis stream interrupted after %d bytes: %s", received, exc)
                raise AnalysisError("The analysis stream was interrupted") from exc
            except UnicodeDecodeError as exc:
                logger.error("Analysis stream is not valid UTF-8: %s", exc)
                raise AnalysisError("Failed to decode the analysis stream") from exc

        logger.info("Analysis stream completed (%d bytes).", received)
