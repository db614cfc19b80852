"""Central configuration for the FloorPlanGPT services.

A typed Settings object (Pydantic BaseSettings) is injected into the services
and the API. Module-level constants hold the fixed limits shared by the
server-side validation and the client-side gateway.
"""

from dotenv import load_dotenv, find_dotenv
import os
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings

# Load environment variables once for the whole app
load_dotenv(find_dotenv())


def _sanitize_base_url(value: str, default: str) -> str:
    use = (value or "").strip() or default
    if not (use.startswith("http://") or use.startswith("https://")):
        use = "https://" + use
    return use.rstrip("/")


class Settings(BaseSettings):
    """Runtime settings for the API, the services and the client gateway.

    Values are loaded from environment variables and optional .env files.
    """

    APP_NAME: str = "FloorPlanGPT"
    APP_VERSION: str = "1.0.0"
    ENV: str = os.getenv("ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Completion provider
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: Optional[str] = None
    ANALYSIS_MODEL: str = "gpt-4o-mini"
    CHAT_MODEL: str = "gpt-4o"

    # Speech provider
    DEEPGRAM_API_KEY: str = ""
    DEEPGRAM_BASE_URL: str = "https://api.deepgram.com/v1"
    TTS_MODEL: str = "aura-asteria-en"

    # Client gateway
    API_BASE_URL: str = "http://localhost:8000/api"
    REQUEST_TIMEOUT_MS: int = 30_000
    MAX_RETRIES: int = 3

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    CORS_ORIGINS: str = "*"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def is_development(self) -> bool:
        return self.ENV.strip().lower() in DEV_ENVIRONMENTS

    @property
    def api_base_url(self) -> str:
        return _sanitize_base_url(self.API_BASE_URL, "http://localhost:8000/api")

    @property
    def deepgram_base_url(self) -> str:
        return _sanitize_base_url(self.DEEPGRAM_BASE_URL, "https://api.deepgram.com/v1")

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


DEV_ENVIRONMENTS = {"dev", "development", "local", "test"}

# Upload limits (enforced both by the gateway and by the analyze route)
MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")

# Conversation window resent to the chat service on every turn
HISTORY_WINDOW = 5

# Statuses the transport client retries on
RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
TRANSPORT_BACKOFF_MS = 1000

# Provider-side retry policies
ANALYSIS_MAX_RETRIES = 2
ANALYSIS_BACKOFF_MS = 500
ANALYSIS_MAX_TOKENS = 1500
ANALYSIS_TEMPERATURE = 0.1

CHAT_MAX_RETRIES = 3
CHAT_BACKOFF_MS = 1000
CHAT_MAX_TOKENS = 2000
CHAT_TEMPERATURE = 0.7

# Speech synthesis output format (linear PCM-16 in a WAV container)
TTS_ENCODING = "linear16"
TTS_CONTAINER = "wav"

WELCOME_MESSAGE = (
    "Hi, I'm the FloorPlanGPT. I can help you analyze your floor plans. Ask me anything!"
)
APOLOGY_MESSAGE = "Sorry, I couldn't process your request. Please try again."
GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"
