"""
Story generation service.

Orchestrates prompt construction, the text provider call, response parsing
and image prompt enhancement for the three text operations (generate,
regenerate one paragraph, continue), plus single image generation.

Provider-level exceptions never leave this module: they are logged with
context and re-raised as AppError subclasses.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .constants import (
    CONTINUE_MAX_TOKENS,
    DEFAULT_ADDITIONAL_PARAGRAPHS,
    REGENERATE_MAX_TOKENS,
)
from .errors import (
    ImageGenerationError,
    InvalidResponseError,
    ProviderConfigError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRequestError,
    ProviderUnavailableError,
    StoryGenerationError,
    UnsupportedProviderError,
    ValidationError,
    log_error,
    log_warning,
)
from .genres import get_genre_config
from .image_prompts import enhance_prompt, prompt_from_paragraph
from .image_provider import ImageProvider, get_default_image_provider
from .model_provider import TextProvider, get_default_text_provider, load_text_provider_config
from .models import Paragraph, Story, StoryRequest, generate_story_id
from .prompt_builder import (
    build_continuation_prompt,
    build_regenerate_prompt,
    build_story_prompt,
)
from .provider_health import ProviderHealthCache, get_health_cache
from .response_parser import (
    ParsedParagraph,
    parse_continuation_response,
    parse_regenerated_paragraph,
    parse_story_response,
)

logger = logging.getLogger("story_generator")


@dataclass
class GenerationOptions:
    """Sampling parameters for one text provider call."""

    temperature: float
    max_tokens: int
    top_p: Optional[float] = None
    repeat_penalty: Optional[float] = None


def resolve_generation_options(genre: str, max_tokens_cap: Optional[int] = None) -> GenerationOptions:
    """
    Resolve sampling parameters for a genre.

    LLM_TEMPERATURE / LLM_MAX_TOKENS, when set, override the genre config.
    max_tokens_cap bounds the token budget for short operations.
    """
    genre_config = get_genre_config(genre)
    overrides = load_text_provider_config()

    temperature = genre_config.temperature if overrides.temperature is None else overrides.temperature
    max_tokens = genre_config.max_tokens if overrides.max_tokens is None else overrides.max_tokens
    if max_tokens_cap is not None:
        max_tokens = min(max_tokens, max_tokens_cap)

    return GenerationOptions(
        temperature=temperature,
        max_tokens=max_tokens,
        top_p=genre_config.top_p,
        repeat_penalty=genre_config.repeat_penalty,
    )


def to_paragraph(paragraph_id: int, parsed: ParsedParagraph, genre: str) -> Paragraph:
    """Build the API paragraph, enhancing the image prompt exactly once."""
    image_prompt = parsed.image_prompt
    if not parsed.prompt_enhanced:
        image_prompt = enhance_prompt(image_prompt, genre)
    return Paragraph(id=paragraph_id, text=parsed.text, image_prompt=image_prompt)


class StoryGenerator:
    """
    Generation service used by the API routers.

    Providers are created lazily from the environment unless injected.
    """

    def __init__(
        self,
        text_provider: Optional[TextProvider] = None,
        image_provider: Optional[ImageProvider] = None,
        health_cache: Optional[ProviderHealthCache] = None,
    ):
        self._text_provider = text_provider
        self._image_provider = image_provider
        self.health_cache = health_cache or get_health_cache()

    @property
    def text_provider(self) -> TextProvider:
        if self._text_provider is None:
            try:
                self._text_provider = get_default_text_provider()
            except (ProviderConfigError, UnsupportedProviderError) as e:
                provider = getattr(e, "provider", "unknown")
                log_error(e, provider=provider, kind="text")
                raise ProviderNotConfiguredError(provider) from e
        return self._text_provider

    @property
    def image_provider(self) -> ImageProvider:
        if self._image_provider is None:
            try:
                self._image_provider = get_default_image_provider()
            except (ProviderConfigError, UnsupportedProviderError) as e:
                provider = getattr(e, "provider", "unknown")
                log_error(e, provider=provider, kind="image")
                raise ProviderNotConfiguredError(provider) from e
        return self._image_provider

    async def _ensure_healthy(self, provider: TextProvider) -> None:
        key = f"text:{provider.provider_name}"
        if not await self.health_cache.check(key, provider):
            error = ProviderUnavailableError(provider.provider_name)
            log_error(error, provider=provider.provider_name)
            raise error

    async def _complete(
        self,
        prompt: str,
        genre: str,
        operation: str,
        max_tokens_cap: Optional[int] = None,
    ) -> str:
        provider = self.text_provider
        await self._ensure_healthy(provider)

        options = resolve_generation_options(genre, max_tokens_cap)
        logger.info(
            f"[StoryGenerator] {operation}: provider={provider.provider_name}, genre={genre}, "
            f"temperature={options.temperature}, max_tokens={options.max_tokens}"
        )

        try:
            raw = await provider.generate_text(
                prompt,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                top_p=options.top_p,
                repeat_penalty=options.repeat_penalty,
            )
        except ProviderRequestError as e:
            log_error(
                e,
                operation=operation,
                provider=provider.provider_name,
                genre=genre,
                prompt_length=len(prompt),
            )
            raise ProviderError(str(e), provider.provider_name) from e

        if not raw or not raw.strip():
            error = InvalidResponseError()
            log_error(error, operation=operation, provider=provider.provider_name, genre=genre)
            raise error

        logger.info(f"[StoryGenerator] {operation}: received {len(raw)} chars")
        return raw

    async def generate_story(self, request: StoryRequest) -> Story:
        """
        Generate a new story.

        Returns:
            Story with exactly request.paragraphs paragraphs, ids 1..N

        Raises:
            ProviderNotConfiguredError, ProviderUnavailableError, ProviderError,
            InvalidResponseError
        """
        prompt = build_story_prompt(request)
        raw = await self._complete(prompt, request.genre, "generate")

        parsed = parse_story_response(raw, request.genre, request.paragraphs)
        if not parsed.paragraphs:
            raise StoryGenerationError()
        if parsed.strategy == "plain_text":
            log_warning(
                "Story response was not valid JSON, used plain-text fallback",
                provider=self.text_provider.provider_name,
                genre=request.genre,
                response_length=len(raw),
            )

        story = Story(
            id=generate_story_id(),
            preface=parsed.preface,
            paragraphs=[
                to_paragraph(index + 1, paragraph, request.genre)
                for index, paragraph in enumerate(parsed.paragraphs)
            ],
            genre=request.genre,
            characters=request.characters,
        )
        logger.info(
            f"[StoryGenerator] Story {story.id} generated: {len(story.paragraphs)} paragraphs "
            f"(parser={parsed.strategy})"
        )
        return story

    async def regenerate_paragraph(
        self,
        paragraph_id: int,
        current_paragraph: str,
        previous_paragraphs: List[str],
        following_paragraphs: List[str],
        genre: str,
    ) -> Paragraph:
        """Rewrite one paragraph in context; the id is preserved."""
        prompt = build_regenerate_prompt(
            paragraph_id, current_paragraph, previous_paragraphs, following_paragraphs, genre
        )
        raw = await self._complete(prompt, genre, "regenerate", REGENERATE_MAX_TOKENS)
        return to_paragraph(paragraph_id, parse_regenerated_paragraph(raw, genre), genre)

    async def continue_story(
        self,
        existing_paragraphs: List[str],
        genre: str,
        additional_paragraphs: int = DEFAULT_ADDITIONAL_PARAGRAPHS,
    ) -> List[Paragraph]:
        """Generate paragraphs whose ids continue from len(existing_paragraphs) + 1."""
        prompt = build_continuation_prompt(existing_paragraphs, genre, additional_paragraphs)
        raw = await self._complete(prompt, genre, "continue", CONTINUE_MAX_TOKENS)

        parsed = parse_continuation_response(raw, genre, additional_paragraphs)
        start_id = len(existing_paragraphs) + 1
        return [
            to_paragraph(start_id + index, paragraph, genre)
            for index, paragraph in enumerate(parsed)
        ]

    async def generate_image(
        self,
        prompt: Optional[str] = None,
        paragraph_text: Optional[str] = None,
        genre: Optional[str] = None,
    ) -> str:
        """
        Generate an illustration.

        An explicit prompt is sent as-is (paragraph image prompts are already
        enhanced). Otherwise a prompt is derived from the paragraph text.
        """
        if not prompt:
            if not paragraph_text:
                raise ValidationError("Missing required fields", field="prompt")
            prompt = prompt_from_paragraph(paragraph_text, genre or "")

        provider = self.image_provider
        try:
            image_url = await provider.generate_image(prompt)
        except ProviderRequestError as e:
            log_error(e, provider=provider.provider_name, genre=genre, prompt_length=len(prompt))
            raise ImageGenerationError() from e

        logger.info(f"[StoryGenerator] Image generated by {provider.provider_name}")
        return image_url


def get_story_generator() -> StoryGenerator:
    """Create a service bound to the environment-configured providers."""
    return StoryGenerator()
