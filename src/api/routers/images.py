"""
Image router.

Endpoints:
- POST /images/generate - Illustrate one paragraph
"""

import logging

from fastapi import APIRouter, Depends

from src.story.generator import StoryGenerator, get_story_generator

from ..schemas.images import ImageGenerateRequest, ImageGenerateResponse

logger = logging.getLogger("story_generator")

router = APIRouter()


@router.post("/generate", response_model=ImageGenerateResponse)
async def generate_image(
    request: ImageGenerateRequest,
    generator: StoryGenerator = Depends(get_story_generator),
):
    """
    Generate an image for a paragraph.

    The image URL is always a data URI or a remote URL, never raw bytes.
    """
    logger.info(f"[ImageAPI] Generate image for paragraph {request.paragraph_id}")
    image_url = await generator.generate_image(
        prompt=request.prompt,
        paragraph_text=request.paragraph_text,
        genre=request.genre,
    )
    return ImageGenerateResponse(image_url=image_url, paragraph_id=request.paragraph_id)
