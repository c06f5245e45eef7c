"""
Image provider abstraction for paragraph illustrations.

Supports:
- mock (deterministic SVG placeholder, no network) - default
- replicate (hosted prediction API with polling)
- gemini (google-genai streaming, IMAGE + TEXT modalities)

Every provider returns a self-contained reference: a data URI or a remote URL.
"""

import asyncio
import base64
import hashlib
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Type
from xml.sax.saxutils import escape

import httpx
from google import genai
from google.genai.types import GenerateContentConfig, Modality

from .constants import (
    DEFAULT_IMAGE_FORMAT,
    GEMINI_IMAGE_MODEL,
    GEMINI_IMAGE_TIMEOUT,
    MOCK_COLORS,
    MOCK_FONT_SIZE,
    MOCK_LINE_HEIGHT,
    MOCK_PADDING,
    MOCK_PROMPT_TRUNCATE_LENGTH,
    MOCK_SVG_HEIGHT,
    MOCK_SVG_WIDTH,
    REPLICATE_BASE_URL,
    REPLICATE_IMAGE_MODEL,
    REPLICATE_INPUT,
    REPLICATE_PENDING_STATUSES,
    REPLICATE_POLL_INTERVAL,
    REPLICATE_TIMEOUT,
)
from .errors import ProviderConfigError, ProviderRequestError, UnsupportedProviderError
from .model_provider import HttpProviderMixin, create_gemini_client, get_gemini_api_key

logger = logging.getLogger("story_generator")


class ImageProvider(ABC):
    """Abstract base class for image providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def generate_image(self, prompt: str) -> str:
        """
        Generate an image for a prompt.

        Returns:
            Data URI or remote URL

        Raises:
            ProviderRequestError: On transport failure or a terminal error state
        """
        pass

    @abstractmethod
    async def check_health(self) -> bool:
        pass


class MockImageProvider(ImageProvider):
    """Placeholder SVG generator for development and demos."""

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name or "mock"

    @property
    def provider_name(self) -> str:
        return "mock"

    @staticmethod
    def pick_color(prompt: str) -> str:
        digest = hashlib.sha256(prompt.encode("utf-8")).digest()
        return MOCK_COLORS[digest[0] % len(MOCK_COLORS)]

    def render_svg(self, prompt: str) -> str:
        color = self.pick_color(prompt)
        caption = prompt[:MOCK_PROMPT_TRUNCATE_LENGTH]
        if len(prompt) > MOCK_PROMPT_TRUNCATE_LENGTH:
            caption += "..."

        content_width = MOCK_SVG_WIDTH - MOCK_PADDING * 2
        content_height = MOCK_SVG_HEIGHT - MOCK_PADDING * 2

        return (
            f'<svg width="{MOCK_SVG_WIDTH}" height="{MOCK_SVG_HEIGHT}" '
            f'xmlns="http://www.w3.org/2000/svg">'
            f'<defs><linearGradient id="grad" x1="0%" y1="0%" x2="100%" y2="100%">'
            f'<stop offset="0%" style="stop-color:{color};stop-opacity:1" />'
            f'<stop offset="100%" style="stop-color:{color}88;stop-opacity:1" />'
            f'</linearGradient></defs>'
            f'<rect width="{MOCK_SVG_WIDTH}" height="{MOCK_SVG_HEIGHT}" fill="url(#grad)" />'
            f'<foreignObject x="{MOCK_PADDING}" y="{MOCK_PADDING}" '
            f'width="{content_width}" height="{content_height}">'
            f'<div xmlns="http://www.w3.org/1999/xhtml" style="font-family: Arial, sans-serif; '
            f'color: white; text-align: center; font-weight: bold; '
            f'font-size: {MOCK_FONT_SIZE}px; line-height: {MOCK_LINE_HEIGHT};">'
            f'{escape(caption)}</div></foreignObject></svg>'
        )

    async def generate_image(self, prompt: str) -> str:
        encoded = base64.b64encode(self.render_svg(prompt).encode("utf-8")).decode("ascii")
        return f"data:image/svg+xml;base64,{encoded}"

    async def check_health(self) -> bool:
        return True


class ReplicateImageProvider(HttpProviderMixin, ImageProvider):
    """Replicate predictions API. Requires REPLICATE_API_TOKEN."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        poll_interval: float = REPLICATE_POLL_INTERVAL,
        max_wait: float = REPLICATE_TIMEOUT,
    ):
        self.api_key = os.getenv("REPLICATE_API_TOKEN", "")
        if not self.api_key:
            raise ProviderConfigError(
                "replicate",
                "REPLICATE_API_TOKEN environment variable is required for Replicate provider.",
            )
        self.model_name = model_name or REPLICATE_IMAGE_MODEL
        self.base_url = os.getenv("REPLICATE_BASE_URL", REPLICATE_BASE_URL).rstrip("/")
        self.timeout = REPLICATE_TIMEOUT
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._http_client = http_client

    @property
    def provider_name(self) -> str:
        return "replicate"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _check_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise ProviderRequestError(
                self.provider_name,
                f"Replicate API error: {response.status_code} {response.reason_phrase}",
            )

    def _decode(self, response: httpx.Response) -> dict:
        try:
            result = response.json()
        except ValueError as e:
            raise ProviderRequestError(
                self.provider_name, f"Replicate returned a malformed response: {e}"
            ) from e
        if not isinstance(result, dict):
            raise ProviderRequestError(
                self.provider_name, "Replicate returned a malformed response: expected an object"
            )
        return result

    async def generate_image(self, prompt: str) -> str:
        logger.info(f"[ReplicateProvider] Submitting prediction to {self.model_name}")

        try:
            async with self._session() as client:
                response = await client.post(
                    f"{self.base_url}/models/{self.model_name}/predictions",
                    headers=self._headers(),
                    json={"input": {"prompt": prompt, **REPLICATE_INPUT}},
                )
                self._check_status(response)
                result = self._decode(response)

                deadline = time.monotonic() + self.max_wait
                while result.get("status") in REPLICATE_PENDING_STATUSES:
                    prediction_id = result.get("id")
                    if not prediction_id:
                        raise ProviderRequestError(
                            self.provider_name, "Replicate prediction has no id to poll"
                        )
                    if time.monotonic() >= deadline:
                        raise ProviderRequestError(
                            self.provider_name,
                            f"Replicate prediction timed out after {self.max_wait}s",
                        )
                    await asyncio.sleep(self.poll_interval)
                    status_response = await client.get(
                        f"{self.base_url}/predictions/{prediction_id}",
                        headers=self._headers(),
                    )
                    self._check_status(status_response)
                    result = self._decode(status_response)
        except httpx.HTTPError as e:
            logger.error(f"[ReplicateProvider] Connection error: {e}")
            raise ProviderRequestError(self.provider_name, f"Replicate connection failed: {e}") from e

        output = result.get("output")
        if isinstance(output, str):
            output = [output]
        if isinstance(output, list) and output and not isinstance(output[0], str):
            output = None
        if result.get("status") == "succeeded" and output:
            logger.info(f"[ReplicateProvider] Prediction {result.get('id')} succeeded")
            return output[0]

        raise ProviderRequestError(
            self.provider_name,
            f"Image generation failed: {result.get('error') or result.get('status')}",
        )

    async def check_health(self) -> bool:
        return bool(self.api_key)


class GeminiImageProvider(ImageProvider):
    """Gemini streaming image generation. Requires GEMINI_API_KEY or GOOGLE_API_KEY."""

    def __init__(self, model_name: Optional[str] = None, client: Optional[genai.Client] = None):
        api_key = get_gemini_api_key()
        if not api_key and client is None:
            raise ProviderConfigError(
                "gemini",
                "GEMINI_API_KEY or GOOGLE_API_KEY environment variable is required for Gemini provider.",
            )
        self.model_name = model_name or GEMINI_IMAGE_MODEL
        self._client = client or create_gemini_client(api_key, GEMINI_IMAGE_TIMEOUT)

    @property
    def provider_name(self) -> str:
        return "gemini"

    async def generate_image(self, prompt: str) -> str:
        logger.info(f"[GeminiImageProvider] Streaming image from {self.model_name}")

        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=self.model_name,
                contents=prompt,
                config=GenerateContentConfig(
                    response_modalities=[Modality.IMAGE, Modality.TEXT]
                ),
            )
            async for chunk in stream:
                if not chunk.candidates or not chunk.candidates[0].content:
                    continue
                for part in chunk.candidates[0].content.parts or []:
                    if getattr(part, "inline_data", None) and part.inline_data.data:
                        mime_type = part.inline_data.mime_type or DEFAULT_IMAGE_FORMAT
                        data = part.inline_data.data
                        if isinstance(data, bytes):
                            data = base64.b64encode(data).decode("ascii")
                        return f"data:{mime_type};base64,{data}"
        except ProviderRequestError:
            raise
        except Exception as e:
            logger.error(f"[GeminiImageProvider] Stream failed: {e}")
            raise ProviderRequestError(self.provider_name, f"Gemini image generation failed: {e}") from e

        raise ProviderRequestError(self.provider_name, "No image generated by Gemini")

    async def check_health(self) -> bool:
        return True


IMAGE_PROVIDERS: Dict[str, Type[ImageProvider]] = {
    "mock": MockImageProvider,
    "replicate": ReplicateImageProvider,
    "gemini": GeminiImageProvider,
}


def create_image_provider(provider: Optional[str] = None, model: Optional[str] = None) -> ImageProvider:
    """
    Create an image provider by name.

    No name selects the mock provider; an unknown name raises
    UnsupportedProviderError.
    """
    name = (provider or "").strip().lower()
    if not name:
        return MockImageProvider()

    provider_cls = IMAGE_PROVIDERS.get(name)
    if provider_cls is None:
        raise UnsupportedProviderError("image", name)
    return provider_cls(model_name=model)


def get_default_image_provider() -> ImageProvider:
    """Create the image provider configured by IMAGE_PROVIDER / IMAGE_MODEL."""
    return create_image_provider(
        os.getenv("IMAGE_PROVIDER"),
        os.getenv("IMAGE_MODEL") or None,
    )
