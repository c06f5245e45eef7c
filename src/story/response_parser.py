"""
Response parsing with fallback strategies.

Text providers are asked for strict JSON but often wrap it in prose or
markdown fences, or ignore the format entirely. Parsing therefore runs an
ordered list of strategies, each a pure function from raw text to a parsed
value (or None); the first success wins. If no strategy yields a valid story
structure the raw text is treated as prose.

The paragraph count of a parsed story always equals the requested count:
missing paragraphs are padded and extras are dropped.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .constants import (
    FALLBACK_IMAGE_PROMPT,
    FALLBACK_PARAGRAPH,
    FALLBACK_PREFACE,
    MIN_PARAGRAPH_LENGTH,
)
from .image_prompts import fallback_prompt

logger = logging.getLogger("story_generator")

ParseStrategy = Callable[[str], Optional[Any]]

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")
_BEFORE_FIRST_BRACE_RE = re.compile(r"^[^{]*")
_AFTER_LAST_BRACE_RE = re.compile(r"[^}]*$")
_PREFACE_LABEL_RE = re.compile(
    r"^[\s*#_]*(summary|preface|story)[\s*_]*:[\s*_]*(.*)$", re.IGNORECASE
)
_SENTENCE_END = (".", "!", "?")


@dataclass
class ParsedParagraph:
    """
    A paragraph recovered from provider output.

    prompt_enhanced is True when image_prompt was synthesized with the
    fallback rule and already carries the genre style suffix.
    """

    text: str
    image_prompt: str
    prompt_enhanced: bool = False


@dataclass
class ParsedStory:
    preface: str
    paragraphs: List[ParsedParagraph] = field(default_factory=list)
    strategy: str = "json"


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except ValueError:
        return None


def parse_direct(raw: str) -> Optional[Any]:
    """Parse the whole response."""
    return _loads(raw.strip())


def parse_brace_span(raw: str) -> Optional[Any]:
    """Parse the span from the first '{' to the last '}'."""
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads(raw[start:end + 1])


def parse_cleaned(raw: str) -> Optional[Any]:
    """Strip code fences and any text outside the outermost braces."""
    cleaned = raw.strip()
    cleaned = _FENCE_OPEN_RE.sub("", cleaned)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    cleaned = _BEFORE_FIRST_BRACE_RE.sub("", cleaned)
    cleaned = _AFTER_LAST_BRACE_RE.sub("", cleaned)
    if not cleaned:
        return None
    return _loads(cleaned)


def parse_bracket_span(raw: str) -> Optional[Any]:
    """Parse the span from the first '[' to the last ']' (bare arrays)."""
    start = raw.find("[")
    end = raw.rfind("]")
    if start == -1 or end <= start:
        return None
    return _loads(raw[start:end + 1])


JSON_STRATEGIES: List[Tuple[str, ParseStrategy]] = [
    ("direct", parse_direct),
    ("brace_span", parse_brace_span),
    ("cleaned", parse_cleaned),
    ("bracket_span", parse_bracket_span),
]


def parse_json_with_fallback(
    raw: str,
    strategies: Sequence[Tuple[str, ParseStrategy]] = JSON_STRATEGIES,
) -> Optional[Any]:
    """Run the strategies in order and return the first parsed value."""
    for name, strategy in strategies:
        result = strategy(raw)
        if result is not None:
            logger.debug(f"[Parser] Parsed response with strategy: {name}")
            return result
    return None


def is_valid_story_structure(data: Any) -> bool:
    """Check for {preface: str, paragraphs: [{text: str, imagePrompt: str}]}."""
    if not isinstance(data, dict):
        return False
    if not isinstance(data.get("preface"), str):
        return False
    paragraphs = data.get("paragraphs")
    if not isinstance(paragraphs, list):
        return False
    return all(
        isinstance(p, dict)
        and isinstance(p.get("text"), str)
        and isinstance(p.get("imagePrompt"), str)
        for p in paragraphs
    )


def _split_preface(lines: List[str]) -> Tuple[str, List[str]]:
    for index, line in enumerate(lines):
        match = _PREFACE_LABEL_RE.match(line)
        if match:
            preface = match.group(2).strip().strip("*_").strip()
            return preface or FALLBACK_PREFACE, lines[index + 1:]
    return FALLBACK_PREFACE, lines


def extract_paragraphs(lines: List[str], genre: str) -> List[ParsedParagraph]:
    """
    Group prose lines into paragraphs.

    A paragraph ends at a blank line, or at a line ending in terminal
    punctuation once the paragraph is longer than MIN_PARAGRAPH_LENGTH.
    """
    paragraphs: List[ParsedParagraph] = []
    buffer = ""

    def flush() -> None:
        nonlocal buffer
        if buffer:
            paragraphs.append(ParsedParagraph(
                text=buffer,
                image_prompt=fallback_prompt(buffer, genre),
                prompt_enhanced=True,
            ))
            buffer = ""

    for line in lines:
        stripped = line.strip()
        if not stripped:
            flush()
            continue

        buffer = f"{buffer} {stripped}" if buffer else stripped
        if stripped.endswith(_SENTENCE_END) and len(buffer) > MIN_PARAGRAPH_LENGTH:
            flush()

    flush()
    return paragraphs


def parse_plain_text(raw: str, genre: str) -> ParsedStory:
    """Treat the response as prose, with an optional labeled preface line."""
    preface, story_lines = _split_preface(raw.splitlines())
    return ParsedStory(
        preface=preface,
        paragraphs=extract_paragraphs(story_lines, genre),
        strategy="plain_text",
    )


def reconcile_paragraph_count(
    paragraphs: List[ParsedParagraph],
    count: int,
    genre: str,
) -> List[ParsedParagraph]:
    """Pad with fallback paragraphs or truncate to exactly count items."""
    reconciled = list(paragraphs[:count])
    while len(reconciled) < count:
        reconciled.append(ParsedParagraph(
            text=FALLBACK_PARAGRAPH,
            image_prompt=FALLBACK_IMAGE_PROMPT.format(genre=genre),
        ))
    return reconciled


def _paragraph_from_item(item: dict, genre: str) -> ParsedParagraph:
    text = item["text"] if item["text"].strip() else FALLBACK_PARAGRAPH
    prompt = item.get("imagePrompt")
    if isinstance(prompt, str) and prompt.strip():
        return ParsedParagraph(text=text, image_prompt=prompt)
    return ParsedParagraph(
        text=text,
        image_prompt=fallback_prompt(text, genre),
        prompt_enhanced=True,
    )


def parse_story_response(raw: str, genre: str, paragraphs: int) -> ParsedStory:
    """
    Turn raw provider output into a story with exactly `paragraphs` items.

    Args:
        raw: Raw text returned by the text provider
        genre: Story genre, used for synthesized image prompts
        paragraphs: Requested paragraph count

    Returns:
        ParsedStory; strategy is "json" or "plain_text"
    """
    data = parse_json_with_fallback(raw)

    if is_valid_story_structure(data):
        story = ParsedStory(
            preface=data["preface"],
            paragraphs=[_paragraph_from_item(item, genre) for item in data["paragraphs"]],
            strategy="json",
        )
    else:
        logger.warning(
            f"[Parser] No valid story JSON in response ({len(raw)} chars), using plain-text fallback"
        )
        story = parse_plain_text(raw, genre)

    if len(story.paragraphs) != paragraphs:
        logger.info(
            f"[Parser] Reconciling paragraph count: got {len(story.paragraphs)}, requested {paragraphs}"
        )
    story.paragraphs = reconcile_paragraph_count(story.paragraphs, paragraphs, genre)
    return story


def parse_regenerated_paragraph(raw: str, genre: str) -> ParsedParagraph:
    """Parse a single rewritten paragraph; falls back to the raw text."""
    data = parse_json_with_fallback(raw)

    if isinstance(data, dict) and isinstance(data.get("paragraphs"), list) and data["paragraphs"]:
        data = data["paragraphs"][0]

    if isinstance(data, dict) and isinstance(data.get("text"), str) and data["text"].strip():
        return _paragraph_from_item(data, genre)

    logger.warning(
        f"[Parser] Failed to parse paragraph response ({len(raw)} chars), using fallback"
    )
    text = raw.strip() or FALLBACK_PARAGRAPH
    return ParsedParagraph(
        text=text,
        image_prompt=fallback_prompt(text, genre),
        prompt_enhanced=True,
    )


def parse_continuation_response(raw: str, genre: str, count: int) -> List[ParsedParagraph]:
    """Parse continuation paragraphs, reconciled to `count` items."""
    data = parse_json_with_fallback(raw)

    items: Optional[list] = None
    if isinstance(data, dict) and isinstance(data.get("paragraphs"), list):
        items = data["paragraphs"]
    elif isinstance(data, list):
        items = data
    elif isinstance(data, dict) and "text" in data:
        # single paragraph object, e.g. one array item surrounded by prose
        items = [data]

    paragraphs: List[ParsedParagraph] = []
    if items is not None:
        paragraphs = [
            _paragraph_from_item(item, genre)
            for item in items
            if isinstance(item, dict) and isinstance(item.get("text"), str) and item["text"].strip()
        ]

    if not paragraphs:
        logger.warning(
            f"[Parser] Failed to parse continuation response ({len(raw)} chars), using fallback"
        )
        paragraphs = extract_paragraphs(raw.splitlines(), genre)

    return reconcile_paragraph_count(paragraphs, count, genre)
