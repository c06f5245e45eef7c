"""
Prompt Builder - story, regeneration and continuation prompts.

All three prompts share one structure: genre guideline, character
instructions, length constraints, prior paragraphs where relevant, and a
strict "JSON only" response format. Providers do not always honor the
format; see response_parser for the recovery path.
"""

import json
import logging
from typing import List, Optional

from .constants import (
    DEFAULT_ADDITIONAL_PARAGRAPHS,
    MAX_SENTENCES_PER_PARAGRAPH,
    MIN_SENTENCES_PER_PARAGRAPH,
)
from .genres import get_genre_guideline
from .models import StoryRequest

logger = logging.getLogger("story_generator")

SENTENCE_RANGE = f"{MIN_SENTENCES_PER_PARAGRAPH}-{MAX_SENTENCES_PER_PARAGRAPH}"

STORY_FORMAT = {
    "preface": "One sentence story summary",
    "paragraphs": [
        {
            "text": f"Paragraph 1 content with exactly {SENTENCE_RANGE} sentences featuring the characters",
            "imagePrompt": "Detailed scene description for AI image generation",
        }
    ],
}

PARAGRAPH_FORMAT = {
    "text": f"New paragraph content with {SENTENCE_RANGE} sentences",
    "imagePrompt": "Detailed scene description for AI image generation",
}

CONTINUATION_FORMAT = {
    "paragraphs": [
        {
            "text": "New paragraph content",
            "imagePrompt": "Detailed visual description for illustration",
        }
    ]
}

JSON_ONLY = "CRITICAL: Return ONLY valid JSON. No additional text before or after."


def _format_json(shape: dict) -> str:
    return json.dumps(shape, indent=2)


def _character_info(characters: int, character_names: Optional[List[str]]) -> str:
    if character_names:
        return f"Named Characters: {', '.join(character_names)}"
    return f"{characters} unique characters (give them names)"


def build_story_prompt(request: StoryRequest) -> str:
    """
    Build the initial story generation prompt.

    Args:
        request: Sanitized story request

    Returns:
        Prompt text asking for {preface, paragraphs[]} JSON
    """
    lines = [
        f"You are a professional storyteller. Create a {request.genre} story "
        "following these EXACT requirements:",
        "",
        "STORY STRUCTURE:",
        f"- Genre: {request.genre} - {get_genre_guideline(request.genre)}",
        f"- Characters: {_character_info(request.characters, request.character_names)}",
        f"- Length: EXACTLY {request.paragraphs} paragraphs (no more, no less)",
        f"- Each paragraph: {SENTENCE_RANGE} sentences with rich descriptive detail",
        "",
        "CHARACTER REQUIREMENTS:",
        f"- Use exactly {request.characters} main characters throughout the story",
        "- Give each character a distinct personality and role",
        "- Each character must contribute meaningfully to the plot",
        "- Reference characters by name consistently",
        "",
        "FORMATTING REQUIREMENTS:",
        "You must return your response in this exact JSON format:",
        _format_json(STORY_FORMAT),
        "",
        JSON_ONLY,
        "",
        "Create the story now:",
    ]

    prompt = "\n".join(lines)
    logger.debug(f"[PromptBuilder] Story prompt built ({len(prompt)} chars)")
    return prompt


def build_regenerate_prompt(
    paragraph_id: int,
    current_paragraph: str,
    previous_paragraphs: List[str],
    following_paragraphs: List[str],
    genre: str,
) -> str:
    """Build the prompt that rewrites one paragraph in its context."""
    context = [
        f"Previous paragraph {i + 1}: {text}" for i, text in enumerate(previous_paragraphs)
    ]
    context.append(f"Current paragraph {paragraph_id}: {current_paragraph}")
    context.extend(
        f"Following paragraph {i + 1}: {text}" for i, text in enumerate(following_paragraphs)
    )

    lines = [
        f"You are rewriting paragraph {paragraph_id} of a {genre} story. "
        "Follow these requirements:",
        "",
        "STORY CONTEXT:",
        "\n\n".join(context),
        "",
        "REWRITE REQUIREMENTS:",
        "- Keep exactly the same characters and maintain their personalities",
        "- Fit seamlessly with the existing narrative flow",
        f"- Write exactly {SENTENCE_RANGE} sentences with rich descriptive detail",
        f"- Maintain the {genre} genre conventions ({get_genre_guideline(genre)})",
        "- Provide a fresh perspective while keeping plot consistency",
        "",
        "FORMATTING:",
        "Return ONLY valid JSON in this exact format:",
        _format_json(PARAGRAPH_FORMAT),
        "",
        JSON_ONLY,
        "",
        "Rewrite the paragraph now:",
    ]
    return "\n".join(lines)


def build_continuation_prompt(
    existing_paragraphs: List[str],
    genre: str,
    additional_paragraphs: int = DEFAULT_ADDITIONAL_PARAGRAPHS,
) -> str:
    """Build the prompt that appends paragraphs to an existing story."""
    story_context = "\n\n".join(
        f"Paragraph {i + 1}: {text}" for i, text in enumerate(existing_paragraphs)
    )

    lines = [
        f"Continue this {genre} story by adding {additional_paragraphs} more paragraphs:",
        "",
        "Existing story:",
        story_context,
        "",
        f"Continue the story with EXACTLY {additional_paragraphs} new paragraphs that:",
        "- Follow naturally from the existing narrative",
        "- Maintain character consistency and story tone",
        f"- Keep to the {genre} genre: {get_genre_guideline(genre)}",
        f"- Each paragraph should be {SENTENCE_RANGE} sentences long",
        "- Include vivid descriptions for visual imagery",
        "- Provide meaningful story progression",
        "",
        "Return JSON format:",
        _format_json(CONTINUATION_FORMAT),
        "",
        JSON_ONLY,
        "",
        "Continue the story:",
    ]
    return "\n".join(lines)
