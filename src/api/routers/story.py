"""
Story router for generation, paragraph regeneration and continuation.

Endpoints:
- POST /story/generate - Generate a new story
- POST /story/regenerate-paragraph - Rewrite one paragraph in context
- POST /story/continue - Append paragraphs to an existing story

All endpoints are rate limited per client.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from src.story.errors import INVALID_GENRE, ValidationError
from src.story.generator import StoryGenerator, get_story_generator
from src.story.genres import is_valid_genre
from src.story.validation import StoryValidator

from ..schemas.story import (
    ContinueStoryRequest,
    ContinueStoryResponse,
    ParagraphSchema,
    RegenerateParagraphRequest,
    RegenerateParagraphResponse,
    StoryGenerateResponse,
)

logger = logging.getLogger("story_generator")

router = APIRouter()

STORY_REQUEST_EXAMPLE = {
    "genre": "fantasy",
    "characters": 2,
    "characterNames": ["Aria", "Thorne"],
    "paragraphs": 3,
}


def require_valid_genre(genre: str) -> None:
    if not is_valid_genre(genre):
        raise ValidationError(INVALID_GENRE, field="genre")


@router.post(
    "/generate",
    response_model=StoryGenerateResponse,
    response_model_exclude_none=True,
)
async def generate_story(
    payload: Any = Body(..., examples=[STORY_REQUEST_EXAMPLE]),
    generator: StoryGenerator = Depends(get_story_generator),
):
    """
    Generate a story with one image prompt per paragraph.

    Body: {genre, characters, characterNames?, paragraphs}. The response
    always contains exactly `paragraphs` paragraphs with ids 1..N.
    """
    request = StoryValidator.parse_story_request(payload)
    logger.info(
        f"[StoryAPI] Generate: genre={request.genre}, characters={request.characters}, "
        f"paragraphs={request.paragraphs}"
    )

    story = await generator.generate_story(request)
    return StoryGenerateResponse(
        story_id=story.id,
        preface=story.preface,
        paragraphs=[ParagraphSchema(**p.to_dict()) for p in story.paragraphs],
    )


@router.post(
    "/regenerate-paragraph",
    response_model=RegenerateParagraphResponse,
    response_model_exclude_none=True,
)
async def regenerate_paragraph(
    request: RegenerateParagraphRequest,
    generator: StoryGenerator = Depends(get_story_generator),
):
    """Rewrite one paragraph; the returned paragraph keeps the requested id."""
    require_valid_genre(request.genre)
    logger.info(
        f"[StoryAPI] Regenerate: story={request.story_id}, paragraph={request.paragraph_id}"
    )

    paragraph = await generator.regenerate_paragraph(
        paragraph_id=request.paragraph_id,
        current_paragraph=request.current_paragraph,
        previous_paragraphs=request.previous_paragraphs,
        following_paragraphs=request.following_paragraphs,
        genre=request.genre,
    )
    return RegenerateParagraphResponse(paragraph=ParagraphSchema(**paragraph.to_dict()))


@router.post(
    "/continue",
    response_model=ContinueStoryResponse,
    response_model_exclude_none=True,
)
async def continue_story(
    request: ContinueStoryRequest,
    generator: StoryGenerator = Depends(get_story_generator),
):
    """Append paragraphs; new ids start at len(existingParagraphs) + 1."""
    require_valid_genre(request.genre)
    logger.info(
        f"[StoryAPI] Continue: story={request.story_id}, existing={len(request.existing_paragraphs)}, "
        f"additional={request.additional_paragraphs}"
    )

    paragraphs = await generator.continue_story(
        existing_paragraphs=request.existing_paragraphs,
        genre=request.genre,
        additional_paragraphs=request.additional_paragraphs,
    )
    return ContinueStoryResponse(
        new_paragraphs=[ParagraphSchema(**p.to_dict()) for p in paragraphs]
    )
