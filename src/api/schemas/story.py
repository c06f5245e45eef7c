"""
Story operation schemas.

Wire format is camelCase; fields are declared snake_case with aliases.
The generate endpoint body is validated by StoryValidator rather than a
schema, so numeric strings and floats are coerced the same way everywhere.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from src.story.constants import (
    DEFAULT_ADDITIONAL_PARAGRAPHS,
    MAX_PARAGRAPHS,
)


class CamelModel(BaseModel):
    """Base model accepting both alias and field names."""

    model_config = ConfigDict(populate_by_name=True)


class ParagraphSchema(CamelModel):
    """A single story paragraph."""

    id: int = Field(..., ge=1)
    text: str
    image_prompt: str = Field(..., alias="imagePrompt")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


class StoryGenerateResponse(CamelModel):
    """Response from story generation."""

    story_id: str = Field(..., alias="storyId")
    preface: str
    paragraphs: List[ParagraphSchema]


class RegenerateParagraphRequest(CamelModel):
    """Request to rewrite one paragraph in its story context."""

    story_id: str = Field(..., alias="storyId", min_length=1)
    paragraph_id: int = Field(..., alias="paragraphId", ge=1)
    current_paragraph: str = Field(..., alias="currentParagraph", min_length=1)
    previous_paragraphs: List[str] = Field(default=[], alias="previousParagraphs")
    following_paragraphs: List[str] = Field(default=[], alias="followingParagraphs")
    genre: str = Field(
        ...,
        json_schema_extra={"examples": ["fantasy", "mystery", "sci-fi"]}
    )


class RegenerateParagraphResponse(CamelModel):
    paragraph: ParagraphSchema


class ContinueStoryRequest(CamelModel):
    """Request to append paragraphs to an existing story."""

    story_id: str = Field(..., alias="storyId", min_length=1)
    existing_paragraphs: List[str] = Field(..., alias="existingParagraphs", min_length=1)
    genre: str
    additional_paragraphs: int = Field(
        default=DEFAULT_ADDITIONAL_PARAGRAPHS,
        alias="additionalParagraphs",
        ge=1,
        le=MAX_PARAGRAPHS,
        description="Number of paragraphs to add"
    )


class ContinueStoryResponse(CamelModel):
    new_paragraphs: List[ParagraphSchema] = Field(..., alias="newParagraphs")
