"""
Image prompt enhancement.

Every prompt sent to an image provider carries the genre's style keywords
and a fixed quality suffix. Enhancement appends unconditionally, so applying
it twice duplicates the suffix.
"""

import re

from .constants import (
    IMAGE_PROMPT_PREVIEW_LENGTH,
    IMAGE_QUALITY,
    VISUAL_SENTENCE_MAX_LENGTH,
)
from .genres import get_image_style

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_VISUAL_WORDS_RE = re.compile(
    r"\b(see|saw|look|watch|appear|visible|glowing|shining|dark|bright|"
    r"color|red|blue|green|large|small)\b",
    re.IGNORECASE,
)


def enhance_prompt(prompt: str, genre: str) -> str:
    """Append genre style keywords and the quality suffix."""
    style = get_image_style(genre)
    return f"{prompt}, {style}, high quality, {IMAGE_QUALITY}"


def fallback_prompt(text: str, genre: str) -> str:
    """Build an enhanced prompt from the start of a paragraph."""
    preview = text[:IMAGE_PROMPT_PREVIEW_LENGTH]
    ellipsis = "..." if len(text) > IMAGE_PROMPT_PREVIEW_LENGTH else ""
    return enhance_prompt(f"{genre} scene: {preview}{ellipsis}", genre)


def prompt_from_paragraph(text: str, genre: str) -> str:
    """
    Derive an enhanced prompt from the most visual sentence of a paragraph.

    Picks the first sentence mentioning a visual keyword, else the first
    sentence. Best effort only.
    """
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    visual = next((s for s in sentences if _VISUAL_WORDS_RE.search(s)), None)
    if visual is None and sentences:
        visual = sentences[0]

    if visual:
        return enhance_prompt(visual.strip()[:VISUAL_SENTENCE_MAX_LENGTH], genre)
    return fallback_prompt(text, genre)
