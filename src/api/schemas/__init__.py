"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .story import (
    ParagraphSchema,
    StoryGenerateResponse,
    RegenerateParagraphRequest,
    RegenerateParagraphResponse,
    ContinueStoryRequest,
    ContinueStoryResponse,
)
from .images import (
    ImageGenerateRequest,
    ImageGenerateResponse,
)

__all__ = [
    "ParagraphSchema",
    "StoryGenerateResponse",
    "RegenerateParagraphRequest",
    "RegenerateParagraphResponse",
    "ContinueStoryRequest",
    "ContinueStoryResponse",
    "ImageGenerateRequest",
    "ImageGenerateResponse",
]
