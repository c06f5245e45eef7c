"""
Story module - illustrated story generation pipeline components.

This module provides the complete generation pipeline:
- Request validation and sanitization
- Prompt building
- Text and image provider abstraction
- Response parsing with fallback strategies
- Image prompt enhancement
"""

from .models import Paragraph, Story, StoryRequest

from .validation import InputSanitizer, StoryValidator, ValidationResult

from .prompt_builder import (
    build_story_prompt,
    build_regenerate_prompt,
    build_continuation_prompt,
)

from .response_parser import (
    parse_story_response,
    parse_regenerated_paragraph,
    parse_continuation_response,
)

from .image_prompts import enhance_prompt, fallback_prompt

from .model_provider import (
    TextProvider,
    TextProviderConfig,
    create_text_provider,
    get_default_text_provider,
)

from .image_provider import (
    ImageProvider,
    create_image_provider,
    get_default_image_provider,
)

from .generator import StoryGenerator, get_story_generator

__all__ = [
    # models
    "Paragraph",
    "Story",
    "StoryRequest",
    # validation
    "InputSanitizer",
    "StoryValidator",
    "ValidationResult",
    # prompt_builder
    "build_story_prompt",
    "build_regenerate_prompt",
    "build_continuation_prompt",
    # response_parser
    "parse_story_response",
    "parse_regenerated_paragraph",
    "parse_continuation_response",
    # image_prompts
    "enhance_prompt",
    "fallback_prompt",
    # model_provider
    "TextProvider",
    "TextProviderConfig",
    "create_text_provider",
    "get_default_text_provider",
    # image_provider
    "ImageProvider",
    "create_image_provider",
    "get_default_image_provider",
    # generator
    "StoryGenerator",
    "get_story_generator",
]
