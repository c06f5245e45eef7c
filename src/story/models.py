"""
Story domain entities.

Stories live in memory for the duration of a request (or a client session)
and are never persisted. Paragraph ids start at 1 and follow generation order.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def generate_story_id() -> str:
    """Generate a new opaque story id."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Get current UTC time as ISO format string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StoryRequest:
    """Validated and sanitized story generation parameters."""

    genre: str
    characters: int
    paragraphs: int
    character_names: Optional[List[str]] = None


@dataclass
class Paragraph:
    """A single illustrated paragraph."""

    id: int
    text: str
    image_prompt: str
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "imagePrompt": self.image_prompt,
        }
        if self.image_url:
            data["imageUrl"] = self.image_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Paragraph":
        return cls(
            id=int(data["id"]),
            text=data["text"],
            image_prompt=data.get("imagePrompt", ""),
            image_url=data.get("imageUrl"),
        )


@dataclass
class Story:
    """
    A generated story.

    Regeneration replaces a paragraph in place (same id); continuation
    appends paragraphs whose ids continue the existing sequence.
    """

    id: str
    preface: str
    paragraphs: List[Paragraph]
    genre: str
    characters: int
    created_at: str = field(default_factory=now_iso)

    @property
    def next_paragraph_id(self) -> int:
        return len(self.paragraphs) + 1

    def get_paragraph(self, paragraph_id: int) -> Optional[Paragraph]:
        for paragraph in self.paragraphs:
            if paragraph.id == paragraph_id:
                return paragraph
        return None

    def replace_paragraph(self, paragraph: Paragraph) -> None:
        """Replace the paragraph with the same id, keeping its position."""
        for index, existing in enumerate(self.paragraphs):
            if existing.id == paragraph.id:
                self.paragraphs[index] = paragraph
                return
        raise KeyError(f"Paragraph not found: {paragraph.id}")

    def append_paragraphs(self, paragraphs: List[Paragraph]) -> None:
        """Append continuation paragraphs; ids must continue the sequence."""
        expected = self.next_paragraph_id
        for paragraph in paragraphs:
            if paragraph.id != expected:
                raise ValueError(
                    f"Paragraph id {paragraph.id} does not continue the story (expected {expected})"
                )
            self.paragraphs.append(paragraph)
            expected += 1

    def paragraph_texts(self) -> List[str]:
        return [paragraph.text for paragraph in self.paragraphs]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Story":
        """Build a story from its wire form (as returned by /story/generate)."""
        return cls(
            id=data["storyId"],
            preface=data.get("preface", ""),
            paragraphs=[Paragraph.from_dict(p) for p in data.get("paragraphs", [])],
            genre=data.get("genre", ""),
            characters=int(data.get("characters", 0)),
            created_at=data.get("createdAt") or now_iso(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storyId": self.id,
            "preface": self.preface,
            "paragraphs": [paragraph.to_dict() for paragraph in self.paragraphs],
            "genre": self.genre,
            "characters": self.characters,
            "createdAt": self.created_at,
        }
