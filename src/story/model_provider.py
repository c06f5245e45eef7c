"""
Model provider abstraction for story text generation.

Supports multiple LLM backends:
- Ollama (local models) - default
- DeepInfra (hosted inference API)
- Gemini (Google AI, google-genai SDK)

Usage:
    provider = create_text_provider(TextProviderConfig(provider="ollama"))
    text = await provider.generate_text(prompt, temperature=0.8, max_tokens=2500)

    # Provider selected from LLM_PROVIDER / LLM_MODEL / LLM_TEMPERATURE / LLM_MAX_TOKENS
    provider = get_default_text_provider()
"""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Type

import httpx
from google import genai
from google.genai import types

from .constants import (
    DEEPINFRA_BASE_URL,
    DEEPINFRA_STOP_SEQUENCES,
    DEEPINFRA_TEXT_MODEL,
    DEEPINFRA_TIMEOUT,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    GEMINI_EXTRA_MODELS,
    GEMINI_HEALTH_PROMPT,
    GEMINI_TEXT_MODEL,
    GEMINI_TIMEOUT,
    OLLAMA_BASE_URL,
    OLLAMA_GENERATE_ENDPOINT,
    OLLAMA_OPTIONS,
    OLLAMA_TAGS_ENDPOINT,
    OLLAMA_TEXT_MODEL,
    OLLAMA_TIMEOUT,
)
from .errors import ProviderConfigError, ProviderRequestError, UnsupportedProviderError

logger = logging.getLogger("story_generator")


@dataclass
class TextProviderConfig:
    """Text provider selection and default sampling parameters."""
    provider: str = "ollama"  # "ollama", "deepinfra", "gemini"
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


def get_gemini_api_key() -> str:
    """Gemini accepts either GEMINI_API_KEY or GOOGLE_API_KEY."""
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or ""


def create_gemini_client(api_key: str, timeout: float = GEMINI_TIMEOUT) -> genai.Client:
    """Create a google-genai client with a request timeout in seconds."""
    return genai.Client(
        api_key=api_key,
        http_options=types.HttpOptions(timeout=int(timeout * 1000)),
    )


class HttpProviderMixin:
    """Shared httpx session handling for HTTP-backed providers."""

    timeout: float
    _http_client: Optional[httpx.AsyncClient] = None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        # An injected client is owned by the caller and left open.
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client


class TextProvider(ABC):
    """Abstract base class for text providers."""

    def __init__(
        self,
        model_name: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.model_name = model_name
        self.temperature = DEFAULT_TEMPERATURE if temperature is None else temperature
        self.max_tokens = DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider name for metadata and logs."""
        pass

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        repeat_penalty: Optional[float] = None,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full prompt text
            temperature: Sampling temperature; provider default when None
            max_tokens: Output token budget; provider default when None
            top_p: Nucleus sampling, used by backends that support it
            repeat_penalty: Repetition penalty, used by backends that support it

        Returns:
            Generated text (may be empty)

        Raises:
            ProviderRequestError: On transport or API failure
        """
        pass

    @abstractmethod
    async def check_health(self) -> bool:
        pass

    async def list_models(self) -> List[str]:
        return [self.model_name]

    def _resolve(self, temperature: Optional[float], max_tokens: Optional[int]):
        return (
            self.temperature if temperature is None else temperature,
            self.max_tokens if max_tokens is None else max_tokens,
        )


class OllamaProvider(HttpProviderMixin, TextProvider):
    """Ollama (local) model provider. No credential required."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(
            model_name or os.getenv("OLLAMA_MODEL") or OLLAMA_TEXT_MODEL,
            temperature,
            max_tokens,
        )
        self.base_url = os.getenv("OLLAMA_BASE_URL", OLLAMA_BASE_URL).rstrip("/")
        self.timeout = OLLAMA_TIMEOUT
        self._http_client = http_client

    @property
    def provider_name(self) -> str:
        return "ollama"

    async def generate_text(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        repeat_penalty: Optional[float] = None,
    ) -> str:
        """Generate using Ollama API."""
        temperature, max_tokens = self._resolve(temperature, max_tokens)
        logger.info(f"[OllamaProvider] Generating with {self.model_name}")

        request_body = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
                "top_p": OLLAMA_OPTIONS["top_p"] if top_p is None else top_p,
                "repeat_penalty": (
                    OLLAMA_OPTIONS["repeat_penalty"] if repeat_penalty is None else repeat_penalty
                ),
            },
        }

        try:
            async with self._session() as client:
                response = await client.post(
                    f"{self.base_url}{OLLAMA_GENERATE_ENDPOINT}", json=request_body
                )
        except httpx.HTTPError as e:
            logger.error(f"[OllamaProvider] Connection error: {e}")
            raise ProviderRequestError(self.provider_name, f"Ollama connection failed: {e}") from e

        if response.status_code >= 400:
            raise ProviderRequestError(
                self.provider_name,
                f"Ollama API error: {response.status_code} {response.reason_phrase}",
            )

        try:
            data = response.json()
            if "error" in data:
                raise ProviderRequestError(self.provider_name, f"Ollama error: {data['error']}")
            text = data.get("response") or ""
            if not isinstance(text, str):
                raise TypeError(f"expected text, got {type(text).__name__}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"[OllamaProvider] Malformed response: {e}")
            raise ProviderRequestError(self.provider_name, f"Ollama returned a malformed response: {e}") from e

        logger.info(f"[OllamaProvider] Generated {len(text)} chars")
        return text

    async def check_health(self) -> bool:
        try:
            async with self._session() as client:
                response = await client.get(f"{self.base_url}{OLLAMA_TAGS_ENDPOINT}")
            return response.status_code < 400
        except httpx.HTTPError as e:
            logger.warning(f"[OllamaProvider] Health check failed: {e}")
            return False

    async def list_models(self) -> List[str]:
        """List locally pulled models; empty on any failure."""
        try:
            async with self._session() as client:
                response = await client.get(f"{self.base_url}{OLLAMA_TAGS_ENDPOINT}")
            if response.status_code >= 400:
                return []
            models = response.json().get("models") or []
            return [model["name"] for model in models if "name" in model]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[OllamaProvider] Failed to list models: {e}")
            return []


class DeepInfraProvider(HttpProviderMixin, TextProvider):
    """DeepInfra hosted inference provider. Requires DEEPINFRA_API_KEY."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(
            model_name or os.getenv("DEEPINFRA_MODEL") or DEEPINFRA_TEXT_MODEL,
            temperature,
            max_tokens,
        )
        self.api_key = os.getenv("DEEPINFRA_API_KEY", "")
        if not self.api_key:
            raise ProviderConfigError(
                "deepinfra",
                "DEEPINFRA_API_KEY environment variable is required for DeepInfra provider.",
            )
        self.base_url = os.getenv("DEEPINFRA_BASE_URL", DEEPINFRA_BASE_URL).rstrip("/")
        self.timeout = DEEPINFRA_TIMEOUT
        self._http_client = http_client

    @property
    def provider_name(self) -> str:
        return "deepinfra"

    async def generate_text(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        repeat_penalty: Optional[float] = None,
    ) -> str:
        """Generate using the DeepInfra inference API."""
        temperature, max_tokens = self._resolve(temperature, max_tokens)
        logger.info(f"[DeepInfraProvider] Generating with {self.model_name}")

        try:
            async with self._session() as client:
                response = await client.post(
                    f"{self.base_url}/{self.model_name}",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "input": prompt,
                        "max_tokens": max_tokens,
                        "temperature": temperature,
                        "stop": DEEPINFRA_STOP_SEQUENCES,
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"[DeepInfraProvider] Connection error: {e}")
            raise ProviderRequestError(self.provider_name, f"DeepInfra connection failed: {e}") from e

        if response.status_code >= 400:
            raise ProviderRequestError(
                self.provider_name,
                f"DeepInfra API error: {response.status_code} {response.reason_phrase}",
            )

        try:
            results = response.json().get("results") or []
            text = (results[0].get("generated_text") if results else None) or ""
            if not isinstance(text, str):
                raise TypeError(f"expected text, got {type(text).__name__}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"[DeepInfraProvider] Malformed response: {e}")
            raise ProviderRequestError(self.provider_name, f"DeepInfra returned a malformed response: {e}") from e
        logger.info(f"[DeepInfraProvider] Generated {len(text)} chars")
        return text

    async def check_health(self) -> bool:
        # Credential presence only; no live call.
        return bool(self.api_key)


class GeminiProvider(TextProvider):
    """Gemini (Google AI) text provider. Requires GEMINI_API_KEY or GOOGLE_API_KEY."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Optional[genai.Client] = None,
    ):
        super().__init__(
            model_name or os.getenv("GEMINI_MODEL") or GEMINI_TEXT_MODEL,
            temperature,
            max_tokens,
        )
        api_key = get_gemini_api_key()
        if not api_key and client is None:
            raise ProviderConfigError(
                "gemini",
                "GEMINI_API_KEY or GOOGLE_API_KEY environment variable is required for Gemini provider.",
            )
        self._client = client or create_gemini_client(api_key)

    @property
    def provider_name(self) -> str:
        return "gemini"

    async def generate_text(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
        repeat_penalty: Optional[float] = None,
    ) -> str:
        """Generate using Gemini API."""
        temperature, max_tokens = self._resolve(temperature, max_tokens)
        logger.info(f"[GeminiProvider] Generating with {self.model_name}")

        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                ),
            )
        except Exception as e:
            logger.error(f"[GeminiProvider] Generation failed: {e}")
            raise ProviderRequestError(self.provider_name, f"Gemini generation failed: {e}") from e

        text = response.text or ""
        logger.info(f"[GeminiProvider] Generated {len(text)} chars")
        return text

    async def check_health(self) -> bool:
        # Live generation call; callers should go through ProviderHealthCache.
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model_name,
                contents=GEMINI_HEALTH_PROMPT,
            )
            return bool(response.text)
        except Exception as e:
            logger.warning(f"[GeminiProvider] Health check failed: {e}")
            return False

    async def list_models(self) -> List[str]:
        return [self.model_name] + [m for m in GEMINI_EXTRA_MODELS if m != self.model_name]


TEXT_PROVIDERS: Dict[str, Type[TextProvider]] = {
    "ollama": OllamaProvider,
    "deepinfra": DeepInfraProvider,
    "gemini": GeminiProvider,
}


def _env_number(name: str, cast):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    try:
        return cast(value)
    except ValueError:
        logger.warning(f"[ModelProvider] Ignoring invalid {name}={value!r}")
        return None


def load_text_provider_config() -> TextProviderConfig:
    """Read text provider selection and global overrides from the environment."""
    return TextProviderConfig(
        provider=os.getenv("LLM_PROVIDER", "ollama").strip().lower() or "ollama",
        model=os.getenv("LLM_MODEL") or None,
        temperature=_env_number("LLM_TEMPERATURE", float),
        max_tokens=_env_number("LLM_MAX_TOKENS", int),
    )


def create_text_provider(config: TextProviderConfig) -> TextProvider:
    """
    Create the text provider named by config.provider.

    Raises:
        UnsupportedProviderError: Unknown provider name
        ProviderConfigError: Required credential missing
    """
    provider_cls = TEXT_PROVIDERS.get(config.provider)
    if provider_cls is None:
        raise UnsupportedProviderError("LLM", config.provider)

    return provider_cls(
        model_name=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


def get_default_text_provider() -> TextProvider:
    """Create the text provider configured in the environment."""
    return create_text_provider(load_text_provider_config())
