"""
Ollama-compatible text and vision generation client.
"""

import base64
from typing import Optional, Union

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict

from bot_configs import EMPTY_COMPLETION_TEXT, GatewayConfig


# --------------- LLM Error helpers ---------------
LLM_ERROR_PREFIX = "__LLM_ERR__"


def _llm_error(error_type: str, detail: str = "") -> str:
    """Return a sentinel string indicating an LLM call failure."""
    return f"{LLM_ERROR_PREFIX}{error_type}|{detail}"


def is_llm_error(content: str) -> bool:
    return bool(content) and content.startswith(LLM_ERROR_PREFIX)


def parse_llm_error(content: str) -> dict:
    """Parse an LLM error sentinel into {type, detail}."""
    if not is_llm_error(content):
        return {}
    rest = content[len(LLM_ERROR_PREFIX):]
    parts = rest.split("|", 1)
    return {"type": parts[0], "detail": parts[1] if len(parts) > 1 else ""}


class LLaMAConfig(BaseModel):
    """Model runtime configuration."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: Optional[str] = "llama3.2"
    vision_model_name: Optional[str] = "llava"
    api_url: Optional[str] = "http://localhost:11434"
    timeout_sec: float = 120.0

    @classmethod
    def from_gateway(cls, config: GatewayConfig) -> "LLaMAConfig":
        return cls(
            model_name=config.ollama_model,
            vision_model_name=config.ollama_vision_model,
            api_url=config.ollama_api_url,
            timeout_sec=config.generation_timeout_sec,
        )


class LLaMAService:
    """Non-streaming generate calls. Failures come back as sentinel strings, never raised."""

    def __init__(self, config: Optional[LLaMAConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or LLaMAConfig()
        self._transport = transport

    @property
    def generate_url(self) -> str:
        base = (self.config.api_url or "").rstrip("/")
        if base.endswith("/api/generate"):
            return base
        return f"{base}/api/generate"

    async def _post_generate(self, stage: str, payload: dict) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_sec, transport=self._transport) as client:
                response = await client.post(self.generate_url, json=payload)
        except httpx.TimeoutException as exc:
            logger.error(f"[{stage}] generation timed out after {self.config.timeout_sec}s: {exc}")
            return _llm_error("timeout", str(exc)[:200])
        except httpx.HTTPError as exc:
            logger.error(f"[{stage}] no response from generation endpoint: {exc}")
            return _llm_error("transport", str(exc)[:200])

        if response.status_code != 200:
            logger.error(f"[{stage}] generation endpoint returned http={response.status_code}: {response.text[:200]}")
            return _llm_error("http_error", f"http={response.status_code}")

        try:
            result = response.json()
        except ValueError as exc:
            return _llm_error("bad_response", str(exc)[:200])
        if not isinstance(result, dict):
            return _llm_error("bad_response", f"expected an object, got {type(result).__name__}")
        text = result.get("response")
        if text is None:
            text = ""
        if not isinstance(text, str):
            logger.error(f"[{stage}] generation endpoint returned a non-text response field: {type(text).__name__}")
            return _llm_error("bad_response", f"response is {type(text).__name__}")
        return text.strip() or EMPTY_COMPLETION_TEXT

    async def generate(self, prompt: str) -> str:
        """Generate text for a fully rendered prompt."""
        if not self.config.api_url or not self.config.model_name:
            return _llm_error("not_configured", "Ollama API URL or Model is not configured.")
        payload = {
            "model": self.config.model_name,
            "prompt": prompt,
            "stream": False,
        }
        return await self._post_generate("generate", payload)

    async def generate_vision(self, prompt: str, image: Union[bytes, str]) -> str:
        """Describe an image; ``image`` is raw bytes or an already base64-encoded string."""
        if not self.config.api_url or not self.config.vision_model_name:
            return _llm_error("not_configured", "Ollama API URL or Vision Model is not configured.")
        image_b64 = base64.b64encode(image).decode("ascii") if isinstance(image, bytes) else image
        payload = {
            "model": self.config.vision_model_name,
            "prompt": prompt,
            "images": [image_b64],
            "stream": False,
        }
        result = await self._post_generate("vision", payload)
        if result == EMPTY_COMPLETION_TEXT:
            return "Could not process image."
        return result
