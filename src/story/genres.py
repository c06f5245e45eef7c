"""
Genre definitions and per-genre generation tuning.

The six genres are fixed. Tables here are read-only lookups shared by the
prompt builder, the image prompt enhancer and the generation service.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class Genre(str, Enum):
    """Supported story genres."""

    FANTASY = "fantasy"
    MYSTERY = "mystery"
    SCI_FI = "sci-fi"
    ROMANCE = "romance"
    HORROR = "horror"
    ADVENTURE = "adventure"


GENRE_VALUES: List[str] = [genre.value for genre in Genre]

@dataclass(frozen=True)
class GenreConfig:
    """Sampling parameters for one genre."""

    temperature: float
    max_tokens: int
    repeat_penalty: Optional[float] = None
    top_p: Optional[float] = None


GENRE_CONFIGS: Dict[str, GenreConfig] = {
    # higher creativity for magical elements
    "fantasy": GenreConfig(temperature=0.8, max_tokens=2500, repeat_penalty=1.1, top_p=0.9),
    # controlled for logical plot progression
    "mystery": GenreConfig(temperature=0.6, max_tokens=2200, repeat_penalty=1.15, top_p=0.85),
    "sci-fi": GenreConfig(temperature=0.75, max_tokens=2400, repeat_penalty=1.1, top_p=0.9),
    "romance": GenreConfig(temperature=0.7, max_tokens=2000, repeat_penalty=1.05, top_p=0.9),
    # suspense and atmosphere
    "horror": GenreConfig(temperature=0.85, max_tokens=2200, repeat_penalty=1.2, top_p=0.9),
    "adventure": GenreConfig(temperature=0.75, max_tokens=2300, repeat_penalty=1.1, top_p=0.9),
}

GENRE_GUIDELINES: Dict[str, str] = {
    "fantasy": "Include magical elements, mythical creatures, or supernatural powers",
    "mystery": "Build suspense with clues, red herrings, and a revelation",
    "sci-fi": "Incorporate futuristic technology, space, or scientific concepts",
    "romance": "Focus on relationships, emotions, and romantic tension",
    "horror": "Create atmosphere of dread, suspense, and frightening elements",
    "adventure": "Include exciting journeys, challenges, and heroic actions",
}
DEFAULT_GUIDELINE = "Follow genre conventions"

IMAGE_STYLES: Dict[str, str] = {
    "fantasy": "magical, ethereal, fantasy art style, detailed",
    "mystery": "noir, shadowy, mysterious atmosphere, dramatic lighting",
    "sci-fi": "futuristic, cyberpunk, sci-fi concept art, neon colors",
    "romance": "soft lighting, romantic, beautiful, artistic",
    "horror": "dark, eerie, gothic, haunting atmosphere",
    "adventure": "dynamic, action-packed, adventurous, cinematic",
}
DEFAULT_IMAGE_STYLE = "detailed, artistic"


def is_valid_genre(genre: object) -> bool:
    """Check whether a value names one of the supported genres."""
    return isinstance(genre, str) and genre in GENRE_VALUES


def get_genre_config(genre: str) -> GenreConfig:
    """Return the tuning for a genre, falling back to fantasy."""
    return GENRE_CONFIGS.get(genre, GENRE_CONFIGS["fantasy"])


def get_genre_guideline(genre: str) -> str:
    return GENRE_GUIDELINES.get(genre, DEFAULT_GUIDELINE)


def get_image_style(genre: str) -> str:
    return IMAGE_STYLES.get(genre, DEFAULT_IMAGE_STYLE)
