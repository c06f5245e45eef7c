"""
Pytest configuration and shared fixtures.
"""

import json
import logging
from typing import List, Optional

import pytest

from src.story.errors import ProviderRequestError
from src.story.image_provider import ImageProvider
from src.story.model_provider import TextProvider

# Environment that selects providers or overrides generation parameters
PROVIDER_ENV_VARS = [
    "LLM_PROVIDER",
    "LLM_MODEL",
    "LLM_TEMPERATURE",
    "LLM_MAX_TOKENS",
    "OLLAMA_BASE_URL",
    "OLLAMA_MODEL",
    "DEEPINFRA_API_KEY",
    "DEEPINFRA_BASE_URL",
    "DEEPINFRA_MODEL",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
    "IMAGE_PROVIDER",
    "IMAGE_MODEL",
    "REPLICATE_API_TOKEN",
    "REPLICATE_BASE_URL",
    "ENABLE_IMAGES",
    "RATE_LIMIT_MAX_REQUESTS",
    "RATE_LIMIT_WINDOW_SECONDS",
    "PROVIDER_HEALTH_TTL_SECONDS",
    "STORY_API_URL",
]


@pytest.fixture(autouse=True, scope="function")
def clean_provider_env(monkeypatch):
    """
    Run every test with provider configuration unset.

    Tests that need a provider configured set the variables explicitly.
    """
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True, scope="function")
def reset_shared_state():
    """Reset process-wide limiter, health cache and logger state after each test."""
    yield

    from src.api.dependencies.rate_limit import reset_rate_limiter
    from src.story.provider_health import reset_health_cache

    reset_rate_limiter()
    reset_health_cache()

    story_logger = logging.getLogger("story_generator")
    for handler in list(story_logger.handlers):
        handler.close()
    story_logger.handlers.clear()
    story_logger.propagate = True
    story_logger.setLevel(logging.NOTSET)


class StubTextProvider(TextProvider):
    """Text provider returning a canned response and recording calls."""

    def __init__(self, response: str = "", healthy: bool = True, error: Optional[Exception] = None):
        super().__init__("stub-model")
        self.response = response
        self.healthy = healthy
        self.error = error
        self.calls: List[dict] = []
        self.health_checks = 0

    @property
    def provider_name(self) -> str:
        return "stub"

    async def generate_text(self, prompt, temperature=None, max_tokens=None, top_p=None, repeat_penalty=None):
        self.calls.append({
            "prompt": prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "top_p": top_p,
            "repeat_penalty": repeat_penalty,
        })
        if self.error is not None:
            raise self.error
        return self.response

    async def check_health(self) -> bool:
        self.health_checks += 1
        return self.healthy


class StubImageProvider(ImageProvider):
    """Image provider returning a fixed URL, optionally failing."""

    def __init__(self, url: str = "https://images.example.com/1.png", fail: bool = False):
        self.url = url
        self.fail = fail
        self.prompts: List[str] = []

    @property
    def provider_name(self) -> str:
        return "stub-image"

    async def generate_image(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise ProviderRequestError("stub-image", "image backend down")
        return self.url

    async def check_health(self) -> bool:
        return not self.fail


@pytest.fixture
def make_text_provider():
    """Factory for StubTextProvider instances."""
    return StubTextProvider


@pytest.fixture
def make_image_provider():
    """Factory for StubImageProvider instances."""
    return StubImageProvider


@pytest.fixture
def fantasy_story_json():
    """A well-formed three paragraph fantasy story as the provider would return it."""
    return json.dumps({
        "preface": "Two travelers seek a sleeping dragon.",
        "paragraphs": [
            {
                "text": "Aria rode through the silent valley at dawn. Her armor caught the light. "
                        "Thorne followed close behind. The road climbed toward the mountains.",
                "imagePrompt": "A knight riding through a misty valley at dawn",
            },
            {
                "text": "The enchanted forest whispered around them. Ancient oaks leaned close. "
                        "Thorne traced runes on the bark. Aria kept her sword ready.",
                "imagePrompt": "Two travelers in an ancient rune-carved forest",
            },
            {
                "text": "At the summit they found the dragon asleep. Moonstones glowed beneath it. "
                        "Aria lowered her blade. Thorne began to sing a lullaby.",
                "imagePrompt": "A dragon sleeping on glowing moonstones",
            },
        ],
    })
