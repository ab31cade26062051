"""Text-generation backends.

Each provider turns one prompt into one raw text reply. Parsing and schema
validation happen in the client; providers only transport.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import requests
from google import genai
from google.genai import types
from openai import OpenAI

from ..config import AppConfig
from ..errors import ConfigError, GenerationError
from ..logging import get_logger


LOG = get_logger("generation-providers")


class TextProvider:
    """Interface shared by all backends."""

    name = "base"
    supports_grounding = False

    def __init__(self, model: str) -> None:
        self.model = model

    def generate(
        self,
        prompt: str,
        *,
        schema: Optional[Dict[str, Any]] = None,
        grounded: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        raise NotImplementedError


class GeminiProvider(TextProvider):
    """Google Gemini via the google-genai SDK."""

    name = "gemini"
    supports_grounding = True

    def __init__(self, api_key: str, model: str, *, timeout_seconds: int = 120) -> None:
        super().__init__(model)
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout_seconds * 1000),
        )

    def generate(
        self,
        prompt: str,
        *,
        schema: Optional[Dict[str, Any]] = None,
        grounded: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        config: Dict[str, Any] = {}
        if grounded:
            # Search grounding cannot be combined with a JSON mime type.
            config["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        elif schema is not None:
            config["response_mime_type"] = "application/json"
            config["response_schema"] = schema
        if temperature is not None:
            config["temperature"] = temperature

        t0 = time.perf_counter()
        response = self._client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(**config),
        )
        text = response.text or ""
        LOG.info(
            "Gemini call finished in %.2fs model=%s grounded=%s reply=%d chars",
            time.perf_counter() - t0,
            self.model,
            grounded,
            len(text),
        )
        return text.strip()


@dataclass(frozen=True)
class OpenRouterConfig:
    """Configuration set required to talk to the OpenRouter API."""

    api_key: str
    model_name: str
    temperature: float = 0.7
    max_tokens: int = 8000
    timeout_seconds: int = 120


class OpenRouterProvider(TextProvider):
    """Thin wrapper around OpenRouter chat completions with helpful logging."""

    name = "openrouter"
    supports_grounding = True
    ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, config: OpenRouterConfig) -> None:
        super().__init__(config.model_name)
        self.config = config

    def generate(
        self,
        prompt: str,
        *,
        schema: Optional[Dict[str, Any]] = None,
        grounded: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": self.config.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature if temperature is None else temperature,
            "max_tokens": self.config.max_tokens,
        }
        if grounded:
            payload["plugins"] = [{"id": "web"}]
        elif schema is not None and (schema.get("type") or "").upper() == "OBJECT":
            payload["response_format"] = {"type": "json_object"}
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(
                self.ENDPOINT,
                headers=headers,
                json=payload,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            LOG.error("OpenRouter request failed: %s", exc)
            raise GenerationError(f"OpenRouter request failed: {exc}") from exc

        if resp.status_code >= 400:
            LOG.error("OpenRouter HTTP %s: %s", resp.status_code, resp.text[:500])
            raise GenerationError(f"OpenRouter returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise GenerationError("OpenRouter returned a non-JSON body") from exc
        choices: List[Dict[str, Any]] = body.get("choices") or []
        if not choices:
            LOG.error("OpenRouter returned no choices: %s", str(body)[:500])
            raise GenerationError("OpenRouter returned no choices")
        message = choices[0].get("message") or {}
        return (message.get("content") or "").strip()


class OpenAIProvider(TextProvider):
    """OpenAI chat completions; no search grounding."""

    name = "openai"
    supports_grounding = False

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: Optional[str] = None,
        timeout_seconds: int = 120,
    ) -> None:
        super().__init__(model)
        self.timeout_seconds = timeout_seconds
        http_client = httpx.Client(
            timeout=httpx.Timeout(connect=10.0, read=float(timeout_seconds), write=30.0, pool=10.0),
        )
        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            http_client=http_client,
            max_retries=0,
        )

    def generate(
        self,
        prompt: str,
        *,
        schema: Optional[Dict[str, Any]] = None,
        grounded: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        if grounded:
            raise GenerationError("The openai backend cannot ground requests in web search")
        kwargs: Dict[str, Any] = {}
        if schema is not None and (schema.get("type") or "").upper() == "OBJECT":
            kwargs["response_format"] = {"type": "json_object"}
        if temperature is not None:
            kwargs["temperature"] = temperature
        t0 = time.perf_counter()
        completion = self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            timeout=float(self.timeout_seconds),
            **kwargs,
        )
        usage = getattr(completion, "usage", None)
        LOG.info(
            "OpenAI call finished in %.2fs model=%s usage=%s",
            time.perf_counter() - t0,
            self.model,
            {k: getattr(usage, k, None) for k in ("prompt_tokens", "completion_tokens")} if usage else None,
        )
        if not completion.choices:
            raise GenerationError("OpenAI returned no choices")
        return (completion.choices[0].message.content or "").strip()


def build_provider(config: AppConfig, api_key: Optional[str]) -> TextProvider:
    """Create the provider selected by `config.backend`."""
    if not api_key:
        raise ConfigError(f"No API key configured for the {config.backend} backend")
    if config.backend == "openrouter":
        return OpenRouterProvider(
            OpenRouterConfig(api_key=api_key, model_name=config.model, timeout_seconds=config.timeout_seconds)
        )
    if config.backend == "openai":
        return OpenAIProvider(
            api_key,
            config.model,
            base_url=config.openai_base_url,
            timeout_seconds=config.timeout_seconds,
        )
    return GeminiProvider(api_key, config.model, timeout_seconds=config.timeout_seconds)
