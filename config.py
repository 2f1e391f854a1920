# =============================================================================
# Interview Snap - Centralized Configuration
# =============================================================================
# Provides a single Config dataclass containing all tunable parameters for
# both the capture client and the streaming relay. Parameters are overridable
# via environment variables with the SNAP_ prefix (e.g., SNAP_SERVER_PORT=9000).
# The upstream credential is read from the conventional OPENAI_API_KEY.
# =============================================================================

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_PROMPT = (
    "Analyze this image as an interview question and answer it as if you "
    "were the candidate giving the interview."
)


def _default_api_key() -> Optional[str]:
    """
    Read the upstream credential from the environment.

    Returns:
        The OPENAI_API_KEY value, or None when unset or blank.
    """
    value = os.environ.get("OPENAI_API_KEY", "").strip()
    return value or None


@dataclass
class Config:
    """
    Centralized configuration for the Interview Snap system.

    All fields can be overridden via environment variables prefixed with SNAP_.
    """

    # -- Networking --
    server_host: str = "127.0.0.1"
    server_port: int = 8000
    analyze_route: str = "/api/analyze"

    # -- Upstream language model --
    openai_api_key: Optional[str] = field(default_factory=_default_api_key)
    openai_model: str = "gpt-4o-mini"
    prompt: str = DEFAULT_PROMPT
    max_tokens: int = 500
    image_detail: str = "high"
    upstream_timeout_seconds: float = 120.0

    # -- Camera --
    camera_index: int = 0
    ideal_width: int = 1280
    ideal_height: int = 720
    jpeg_quality: int = 80

    # -- Client --
    request_timeout_seconds: float = 300.0

    # -- Derived (computed post-init) --
    server_url: str = field(init=False)

    def __post_init__(self):
        """Apply environment variable overrides and compute derived fields."""
        self._apply_env_overrides()
        self.server_url = f"http://{self.server_host}:{self.server_port}"

    @property
    def analyze_url(self) -> str:
        """Full URL of the relay's analysis route."""
        return f"{self.server_url}{self.analyze_route}"

    def _apply_env_overrides(self):
        """
        Override config fields from environment variables.

        Looks for SNAP_<FIELD_NAME_UPPERCASE> environment variables and
        applies them with appropriate type conversion.
        """
        field_types = {
            "server_host": str,
            "server_port": int,
            "analyze_route": str,
            "openai_api_key": str,
            "openai_model": str,
            "prompt": str,
            "max_tokens": int,
            "image_detail": str,
            "upstream_timeout_seconds": float,
            "camera_index": int,
            "ideal_width": int,
            "ideal_height": int,
            "jpeg_quality": int,
            "request_timeout_seconds": float,
        }
        for field_name, field_type in field_types.items():
            env_key = f"SNAP_{field_name.upper()}"
            env_value = os.environ.get(env_key)
            if env_value is not None:
                setattr(self, field_name, field_type(env_value))


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """
    Return the singleton Config instance, creating it on first call.

    Returns:
        Config: The global configuration object.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance
