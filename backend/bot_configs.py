"""
Runtime configuration, prompt templates, and fixed reply strings for the gateway.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


# Fixed user-visible strings
GENERATION_APOLOGY = "Sorry, I had trouble generating a response."
IMAGE_APOLOGY = "Sorry, I had trouble processing that image or generating a response."
WITHHELD_NOTICE = "My response contained filtered words and could not be sent."
EMPTY_THOUGHT_FALLBACK = "Hmm, I processed something but it didn't make sense! Can you try again? ✨"
EMPTY_COMPLETION_TEXT = "I'm confused!"
AI_NOT_CONFIGURED_NOTICE = "AI functionality is not configured."
DM_AI_NOT_CONFIGURED_NOTICE = "AI functionality is not configured for DMs."
NO_SEARCH_RESULTS = "No results found."
SEARCH_ERROR_PREFIX = "search_error"

# Role labels used when rendering history into a prompt
USER_LABEL = "User"
ASSISTANT_LABEL = "AI"
ANNOTATION_LABEL = "AI analyzed image"

THOUGHT_OPEN = "<think>"
THOUGHT_CLOSE = "</think>"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int, min_value: int, max_value: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw not in (None, "") else default
    except Exception:
        value = default
    return max(min_value, min(max_value, value))


def _env_float(name: str, default: float, min_value: float, max_value: float) -> float:
    raw = os.getenv(name)
    try:
        value = float(raw) if raw not in (None, "") else default
    except Exception:
        value = default
    return max(min_value, min(max_value, value))


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str]:
    raw = _env(name, "") or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


class GatewayConfig(BaseModel):
    """Everything the gateway reads from the environment."""

    model_config = ConfigDict(protected_namespaces=())

    database_url: str = "sqlite:///./gateway_history.db"
    window_size: int = 50
    max_cached_conversations: int = 1000

    ollama_api_url: Optional[str] = "http://localhost:11434"
    ollama_model: Optional[str] = "llama3.2"
    ollama_vision_model: Optional[str] = "llava"
    generation_timeout_sec: float = 120.0

    google_cse_api_key: Optional[str] = None
    google_cse_id: Optional[str] = None
    search_timeout_sec: float = 10.0

    owner_bypass_id: Optional[str] = None
    bot_name: str = "Assistant"

    triggered_prompt: str = "Respond to the user message based on the conversation history."
    random_prompt: str = "Generate a random message."
    image_prompt: str = "Describe this image."

    channels_to_message: list[str] = Field(default_factory=list)
    random_interval_sec: float = 3600.0

    telemetry_enabled: bool = True
    telemetry_log: str = "turn_telemetry.log"

    @property
    def generation_configured(self) -> bool:
        return bool(self.ollama_api_url and self.ollama_model)

    @property
    def search_configured(self) -> bool:
        return bool(self.google_cse_api_key and self.google_cse_id)


def load_config(env_file: Optional[Path] = None) -> GatewayConfig:
    """Load backend/.env (if present) and build the gateway config."""
    env_path = env_file or Path(__file__).resolve().parent / ".env"
    load_dotenv(dotenv_path=env_path, override=False)

    defaults = GatewayConfig()
    config = GatewayConfig(
        database_url=_env("DATABASE_URL", defaults.database_url),
        window_size=_env_int("RAM_CACHE_SIZE", defaults.window_size, 1, 1000),
        max_cached_conversations=_env_int("MAX_CACHED_CONVERSATIONS", defaults.max_cached_conversations, 0, 1_000_000),
        ollama_api_url=_env("OLLAMA_API_URL", defaults.ollama_api_url),
        ollama_model=_env("OLLAMA_MODEL", defaults.ollama_model),
        ollama_vision_model=_env("OLLAMA_VISION_MODEL", defaults.ollama_vision_model),
        generation_timeout_sec=_env_float("GENERATION_TIMEOUT_SEC", defaults.generation_timeout_sec, 1.0, 600.0),
        google_cse_api_key=_env("GOOGLE_CSE_API_KEY"),
        google_cse_id=_env("GOOGLE_CSE_ID"),
        search_timeout_sec=_env_float("SEARCH_TIMEOUT_SEC", defaults.search_timeout_sec, 1.0, 120.0),
        owner_bypass_id=_env("OWNER_BYPASS_ID"),
        bot_name=_env("BOT_NAME", defaults.bot_name),
        triggered_prompt=_env("AI_TRIGGERED_MESSAGE_PROMPT", defaults.triggered_prompt),
        random_prompt=_env("AI_RANDOM_MESSAGE_PROMPT", defaults.random_prompt),
        image_prompt=_env("AI_IMAGE_PROMPT", defaults.image_prompt),
        channels_to_message=_env_list("CHANNELS_TO_MESSAGE"),
        random_interval_sec=_env_float("SEND_RANDOM_MESSAGES_INTERVAL_SEC", defaults.random_interval_sec, 0.0, 7 * 86400.0),
        telemetry_enabled=_env_bool("TELEMETRY_ENABLED", True),
        telemetry_log=_env("TELEMETRY_LOG", defaults.telemetry_log),
    )
    warn_missing_settings(config)
    return config


def warn_missing_settings(config: GatewayConfig) -> None:
    if not config.generation_configured:
        logger.warning("OLLAMA_API_URL or OLLAMA_MODEL is missing. AI functionality will not work.")
    if not config.search_configured:
        logger.warning("GOOGLE_CSE_API_KEY or GOOGLE_CSE_ID is missing. Search functionality will not work.")
    if not config.owner_bypass_id:
        logger.warning("OWNER_BYPASS_ID is not set. Filters can only be managed by guild owners.")
