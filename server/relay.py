# =============================================================================
# Interview Snap - Streaming Relay
# =============================================================================
# Provides the AnalysisRelay class that forwards a single captured image and a
# fixed instruction prompt to the OpenAI chat-completions API with streaming
# enabled, and re-emits each incremental text delta to the caller as soon as
# it arrives.
#
# Per request the relay moves through:
#   Validating -> Rejected                     (ConfigurationError / InvalidRequestError)
#   Validating -> Upstreaming -> Rejected      (UpstreamError, nothing streamed yet)
#   Upstreaming -> Streaming -> Completed      (generator returns)
#   Upstreaming -> Streaming -> StreamError    (UpstreamStreamError mid-body)
#
# There are no retries: exactly one upstream call is made per request.
# =============================================================================

import logging
import time
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from config import DEFAULT_PROMPT, Config
from server.errors import (
    ConfigurationError,
    InvalidRequestError,
    UpstreamError,
    UpstreamStreamError,
)
from shared.schemas import AnalysisRequest

logger = logging.getLogger(__name__)


def extract_delta_text(chunk: Any) -> str:
    """
    Pull the text content out of one streamed completion chunk.

    Chunks without choices or without content (role-only deltas, the final
    finish_reason chunk) map to an empty fragment, which is forwarded as-is.

    Args:
        chunk: A ``ChatCompletionChunk`` from the OpenAI SDK.

    Returns:
        The delta text, or "" when the chunk carries none.
    """
    choices = getattr(chunk, "choices", None)
    if not choices:
        return ""
    delta = choices[0].delta
    if delta is None:
        return ""
    return delta.content or ""


class AnalysisRelay:
    """
    Relay between one analysis request and the upstream multimodal model.

    The upstream client is built lazily on first use so that a missing
    credential is reported per request instead of preventing startup.

    Args:
        api_key:      OpenAI API key; None means the relay is misconfigured.
        model:        Chat-completions model identifier.
        prompt:       Instruction text sent alongside every image.
        max_tokens:   Ceiling on generated tokens per answer.
        image_detail: Vision detail hint ("high", "low" or "auto").
        timeout:      Upstream request timeout in seconds.
        client:       Optional pre-built AsyncOpenAI-compatible client.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        prompt: str = DEFAULT_PROMPT,
        max_tokens: int = 500,
        image_detail: str = "high",
        timeout: float = 120.0,
        client: Optional[Any] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._prompt = prompt
        self._max_tokens = max_tokens
        self._image_detail = image_detail
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config: Config) -> "AnalysisRelay":
        """Build a relay from the global configuration."""
        return cls(
            api_key=config.openai_api_key,
            model=config.openai_model,
            prompt=config.prompt,
            max_tokens=config.max_tokens,
            image_detail=config.image_detail,
            timeout=config.upstream_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        """Whether an upstream credential is available."""
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    def build_messages(self, image_url: str) -> List[Dict[str, Any]]:
        """
        Build the single user turn sent upstream.

        Args:
            image_url: The client's image data URL, forwarded unchanged.

        Returns:
            Chat messages list with one text part and one image part.
        """
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": self._prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": image_url, "detail": self._image_detail},
                    },
                ],
            }
        ]

    def _validate(self, payload: Any) -> AnalysisRequest:
        if not isinstance(payload, dict) or not payload.get("image"):
            raise InvalidRequestError("No image provided")
        try:
            return AnalysisRequest.model_validate(payload)
        except ValidationError as exc:
            reason = exc.errors()[0]["msg"]
            raise InvalidRequestError(f"Invalid image: {reason}")

    async def open(self, payload: Any) -> AsyncIterator[str]:
        """
        Validate a request, start the upstream call and return its text stream.

        All pre-stream failures are raised from here, before any byte is sent
        to the caller.  The returned iterator yields text fragments in upstream
        arrival order.

        Args:
            payload: Decoded JSON request body (expected ``{"image": ...}``).

        Returns:
            Async iterator of text fragments.

        Raises:
            ConfigurationError:  No upstream credential is configured.
            InvalidRequestError: The image is missing or malformed.
            UpstreamError:       The upstream call was rejected outright.
        """
        if not self.is_configured:
            raise ConfigurationError("OpenAI API key is not configured")

        request = self._validate(payload)
        request_id = uuid.uuid4().hex[:8]
        started = time.monotonic()

        logger.info(
            "Request %s: forwarding %d KB image to %s (max_tokens=%d, detail=%s)",
            request_id,
            len(request.image) // 1024,
            self._model,
            self._max_tokens,
            self._image_detail,
        )

        try:
            stream = await self._get_client().chat.completions.create(
                model=self._model,
                messages=self.build_messages(request.image),
                max_tokens=self._max_tokens,
                stream=True,
            )
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            logger.error("Request %s: upstream rejected the call: %s", request_id, exc)
            raise UpstreamError("Failed to analyze image") from exc

        return self._relay(stream, request_id, started)

    async def _relay(self, stream: Any, request_id: str, started: float) -> AsyncIterator[str]:
        """Yield each upstream delta as it arrives, then close the upstream stream."""
        chunk_count = 0
        char_count = 0
        try:
            async for chunk in stream:
                text = extract_delta_text(chunk)
                if chunk_count == 0:
                    logger.debug(
                        "Request %s: first chunk after %.1fms",
                        request_id,
                        (time.monotonic() - started) * 1000.0,
                    )
                chunk_count += 1
                char_count += len(text)
                yield text
        except (openai.OpenAIError, httpx.HTTPError) as exc:
            logger.error(
                "Request %s: upstream failed after %d chunks (%d chars): %s",
                request_id, chunk_count, char_count, exc,
            )
            raise UpstreamStreamError("Upstream stream interrupted") from exc
        finally:
            await stream.close()

        logger.info(
            "Request %s: completed (%d chunks, %d chars, %.1fms)",
            request_id,
            chunk_count,
            char_count,
            (time.monotonic() - started) * 1000.0,
        )
