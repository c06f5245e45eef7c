"""
Story API client module.

Drives the HTTP API the way an interactive front end does: generate the
story text first, then illustrate paragraphs concurrently. Illustration is
enabled by ENABLE_IMAGES=true.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from .constants import DEFAULT_ADDITIONAL_PARAGRAPHS
from .models import Paragraph, Story

logger = logging.getLogger("story_generator")

DEFAULT_API_URL = "http://127.0.0.1:8000"
DEFAULT_CLIENT_TIMEOUT = 120.0


def images_enabled() -> bool:
    """Check the ENABLE_IMAGES feature flag (default: disabled)."""
    return os.getenv("ENABLE_IMAGES", "false").strip().lower() == "true"


class StoryApiError(Exception):
    """Raised when the API returns an error response."""

    def __init__(self, status_code: int, error: str, message: str):
        self.status_code = status_code
        self.error = error
        super().__init__(f"{error} ({status_code}): {message}")


class StoryApiClient:
    """
    Async client for the story generation API.

    Usage:
        async with StoryApiClient() as client:
            story = await client.generate_story("fantasy", characters=2, paragraphs=3)
            await client.illustrate_story(story)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_CLIENT_TIMEOUT,
    ):
        self.base_url = (base_url or os.getenv("STORY_API_URL", DEFAULT_API_URL)).rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "StoryApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post(f"{self.base_url}{path}", json=payload)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise StoryApiError(
                response.status_code,
                body.get("error", "HTTP_ERROR"),
                body.get("message", response.reason_phrase),
            )
        try:
            return response.json()
        except ValueError as e:
            raise StoryApiError(response.status_code, "INVALID_RESPONSE", f"Response is not JSON: {e}") from e

    async def generate_story(
        self,
        genre: str,
        characters: int,
        paragraphs: int,
        character_names: Optional[List[str]] = None,
    ) -> Story:
        """
        POST /story/generate.

        The returned Story keeps the request's genre and character count,
        which later regenerate/continue calls need.
        """
        payload: Dict[str, Any] = {
            "genre": genre,
            "characters": characters,
            "paragraphs": paragraphs,
        }
        if character_names:
            payload["characterNames"] = character_names
        data = await self._post("/story/generate", payload)
        try:
            return Story.from_dict({**data, "genre": genre, "characters": characters})
        except (KeyError, TypeError, ValueError) as e:
            raise StoryApiError(200, "INVALID_RESPONSE", f"Malformed story: {e}") from e

    async def regenerate_paragraph(self, story: Story, paragraph_id: int) -> Paragraph:
        """Regenerate one paragraph and replace it in the story (same id)."""
        current = story.get_paragraph(paragraph_id)
        if current is None:
            raise KeyError(f"Paragraph not found: {paragraph_id}")
        index = story.paragraphs.index(current)

        result = await self._post("/story/regenerate-paragraph", {
            "storyId": story.id,
            "paragraphId": paragraph_id,
            "currentParagraph": current.text,
            "previousParagraphs": [p.text for p in story.paragraphs[:index]],
            "followingParagraphs": [p.text for p in story.paragraphs[index + 1:]],
            "genre": story.genre,
        })
        paragraph = Paragraph.from_dict(result["paragraph"])
        story.replace_paragraph(paragraph)
        return paragraph

    async def continue_story(
        self,
        story: Story,
        additional_paragraphs: int = DEFAULT_ADDITIONAL_PARAGRAPHS,
    ) -> List[Paragraph]:
        """Continue a story; the new paragraphs are appended to it."""
        result = await self._post("/story/continue", {
            "storyId": story.id,
            "existingParagraphs": story.paragraph_texts(),
            "genre": story.genre,
            "additionalParagraphs": additional_paragraphs,
        })
        new_paragraphs = [Paragraph.from_dict(p) for p in result["newParagraphs"]]
        story.append_paragraphs(new_paragraphs)
        return new_paragraphs

    async def generate_image(self, prompt: str, paragraph_id: int) -> Dict[str, Any]:
        """POST /images/generate. Returns {imageUrl, paragraphId}."""
        return await self._post("/images/generate", {"prompt": prompt, "paragraphId": paragraph_id})

    async def _illustrate(self, paragraph: Paragraph) -> Optional[str]:
        try:
            result = await self.generate_image(paragraph.image_prompt, paragraph.id)
            image_url = result["imageUrl"]
        except (StoryApiError, httpx.HTTPError, KeyError, TypeError) as e:
            logger.warning(f"[StoryApiClient] Image failed for paragraph {paragraph.id}: {e}")
            return None
        return image_url if isinstance(image_url, str) and image_url else None

    async def illustrate_story(
        self,
        story: Story,
        paragraph_ids: Optional[List[int]] = None,
        enabled: Optional[bool] = None,
    ) -> Dict[int, str]:
        """
        Generate images for paragraphs concurrently.

        Each result is attached to its paragraph by id. A failed image leaves
        that paragraph without image_url and does not affect the others.

        Args:
            story: Story as returned by generate_story
            paragraph_ids: Only illustrate these paragraphs (default: all)
            enabled: Override the ENABLE_IMAGES flag

        Returns:
            Dict of paragraph id -> image URL for the successful images
        """
        if not (images_enabled() if enabled is None else enabled):
            return {}

        targets = [
            p for p in story.paragraphs
            if paragraph_ids is None or p.id in paragraph_ids
        ]
        results = await asyncio.gather(*(self._illustrate(p) for p in targets))

        images: Dict[int, str] = {}
        for paragraph, image_url in zip(targets, results):
            if image_url:
                paragraph.image_url = image_url
                images[paragraph.id] = image_url

        logger.info(f"[StoryApiClient] Illustrated {len(images)}/{len(targets)} paragraphs")
        return images
