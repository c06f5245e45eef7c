"""
Story request validation and input sanitization.

Character names are echoed into prompts and may be rendered back to a
browser, so free-text fields are stripped of markup and script vectors
before use.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .constants import (
    MAX_CHARACTER_NAME_LENGTH,
    MAX_CHARACTERS,
    MAX_PARAGRAPHS,
    MAX_SANITIZED_LENGTH,
    MIN_CHARACTERS,
    MIN_PARAGRAPHS,
)
from .errors import INVALID_GENRE, ValidationError
from .genres import is_valid_genre
from .models import StoryRequest

INVALID_CHARACTER_COUNT = f"Character count must be between {MIN_CHARACTERS} and {MAX_CHARACTERS}"
INVALID_PARAGRAPH_COUNT = f"Paragraph count must be between {MIN_PARAGRAPHS} and {MAX_PARAGRAPHS}"
INVALID_CHARACTER_NAMES = "Character names must be non-empty strings"
CHARACTER_NAME_TOO_LONG = f"Character names must be at most {MAX_CHARACTER_NAME_LENGTH} characters"

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_JAVASCRIPT_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class ValidationIssue:
    """A single field-level validation failure."""

    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)

    def to_error(self) -> ValidationError:
        """Convert a failed result into the API-facing exception."""
        return ValidationError(details=[issue.to_dict() for issue in self.errors])


class InputSanitizer:
    """Sanitization helpers for user-supplied values."""

    @staticmethod
    def sanitize_string(value: Any) -> str:
        """Remove markup, script schemes, inline handlers and null bytes."""
        if not isinstance(value, str):
            return ""

        cleaned = value.strip()
        cleaned = _HTML_TAG_RE.sub("", cleaned)
        cleaned = _JAVASCRIPT_SCHEME_RE.sub("", cleaned)
        cleaned = _EVENT_HANDLER_RE.sub("", cleaned)
        cleaned = cleaned.replace("\0", "")
        return cleaned[:MAX_SANITIZED_LENGTH]

    @classmethod
    def sanitize_character_names(cls, names: Any) -> Optional[List[str]]:
        """
        Sanitize a list of character names.

        Non-string, empty and over-long entries are dropped, so the result can
        be shorter than the input.
        """
        if not isinstance(names, list):
            return None

        sanitized = [cls.sanitize_string(name) for name in names if isinstance(name, str)]
        return [
            name for name in sanitized
            if 0 < len(name) <= MAX_CHARACTER_NAME_LENGTH
        ][:MAX_CHARACTERS]

    @staticmethod
    def sanitize_number(value: Any, minimum: int, maximum: int) -> Optional[int]:
        """
        Coerce a value to an int within inclusive bounds.

        Floats are floored; numeric strings are read up to the first
        non-digit. Returns None when the value is not numeric or out of range.
        """
        if isinstance(value, bool):
            return None

        number: Optional[int] = None
        if isinstance(value, (int, float)):
            if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
                return None
            number = math.floor(value)
        elif isinstance(value, str):
            match = _LEADING_INT_RE.match(value)
            if match:
                number = int(match.group(1))

        if number is None or not (minimum <= number <= maximum):
            return None
        return number


class StoryValidator:
    """Validator for story generation requests."""

    @staticmethod
    def validate_story_request(data: Any) -> ValidationResult:
        if not isinstance(data, dict):
            return ValidationResult(
                is_valid=False,
                errors=[ValidationIssue("root", "Request data must be an object")],
            )

        errors: List[ValidationIssue] = []

        if not is_valid_genre(data.get("genre")):
            errors.append(ValidationIssue("genre", INVALID_GENRE))

        characters = InputSanitizer.sanitize_number(
            data.get("characters"), MIN_CHARACTERS, MAX_CHARACTERS
        )
        if characters is None:
            errors.append(ValidationIssue("characters", INVALID_CHARACTER_COUNT))

        paragraphs = InputSanitizer.sanitize_number(
            data.get("paragraphs"), MIN_PARAGRAPHS, MAX_PARAGRAPHS
        )
        if paragraphs is None:
            errors.append(ValidationIssue("paragraphs", INVALID_PARAGRAPH_COUNT))

        names = data.get("characterNames")
        if names is not None:
            errors.extend(StoryValidator._validate_character_names(names, characters))

        return ValidationResult(is_valid=not errors, errors=errors)

    @staticmethod
    def _validate_character_names(names: Any, characters: Optional[int]) -> List[ValidationIssue]:
        if not isinstance(names, list):
            return [ValidationIssue("characterNames", INVALID_CHARACTER_NAMES)]

        errors: List[ValidationIssue] = []
        for name in names:
            cleaned = InputSanitizer.sanitize_string(name)
            if not cleaned:
                errors.append(ValidationIssue("characterNames", INVALID_CHARACTER_NAMES))
                break
            if len(cleaned) > MAX_CHARACTER_NAME_LENGTH:
                errors.append(ValidationIssue("characterNames", CHARACTER_NAME_TOO_LONG))
                break

        sanitized = InputSanitizer.sanitize_character_names(names) or []
        if characters is not None and len(sanitized) != characters:
            errors.append(ValidationIssue(
                "characterNames",
                f"Number of character names ({len(sanitized)}) must match character count ({characters})",
            ))
        return errors

    @classmethod
    def sanitize_story_request(cls, data: Any) -> Optional[StoryRequest]:
        """Return a clean StoryRequest, or None when the data is invalid."""
        if not cls.validate_story_request(data).is_valid:
            return None

        request = StoryRequest(
            genre=data["genre"],
            characters=InputSanitizer.sanitize_number(
                data.get("characters"), MIN_CHARACTERS, MAX_CHARACTERS
            ),
            paragraphs=InputSanitizer.sanitize_number(
                data.get("paragraphs"), MIN_PARAGRAPHS, MAX_PARAGRAPHS
            ),
        )

        names = InputSanitizer.sanitize_character_names(data.get("characterNames"))
        if names:
            if len(names) != request.characters:
                return None
            request.character_names = names

        return request

    @classmethod
    def parse_story_request(cls, data: Any) -> StoryRequest:
        """Validate and sanitize, raising ValidationError on failure."""
        result = cls.validate_story_request(data)
        if not result.is_valid:
            raise result.to_error()

        request = cls.sanitize_story_request(data)
        if request is None:
            raise ValidationError(details=[
                ValidationIssue("characterNames", INVALID_CHARACTER_NAMES).to_dict()
            ])
        return request
