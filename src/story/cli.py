"""
Story CLI - command-line client for the story generation API.

Usage:
    python -m src.story.cli generate --genre fantasy --characters 2 --paragraphs 3
    python -m src.story.cli generate --genre mystery --characters 2 --names Ada Finn --images
    python -m src.story.cli continue --story story.json --additional 2
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from dotenv import load_dotenv

from src.infra.logging_config import setup_logging

from .api_client import StoryApiClient, StoryApiError, images_enabled
from .constants import DEFAULT_ADDITIONAL_PARAGRAPHS
from .genres import GENRE_VALUES
from .models import Story


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Illustrated Story Generation CLI")
    parser.add_argument(
        "--api-url",
        type=str,
        default=None,
        help="API base URL (default: STORY_API_URL or http://127.0.0.1:8000)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    generate_parser = subparsers.add_parser("generate", help="Generate a story")
    generate_parser.add_argument("--genre", choices=GENRE_VALUES, required=True)
    generate_parser.add_argument("--characters", type=int, required=True, help="Number of characters (1-6)")
    generate_parser.add_argument("--paragraphs", type=int, required=True, help="Number of paragraphs (3-10)")
    generate_parser.add_argument(
        "--names",
        nargs="+",
        default=None,
        help="Character names; count must match --characters"
    )
    generate_parser.add_argument(
        "--images",
        action="store_true",
        default=False,
        help="Illustrate paragraphs (also enabled by ENABLE_IMAGES=true)"
    )

    continue_parser = subparsers.add_parser("continue", help="Continue a saved story")
    continue_parser.add_argument("--story", type=str, required=True, help="Story JSON file from 'generate'")
    continue_parser.add_argument(
        "--additional",
        type=int,
        default=DEFAULT_ADDITIONAL_PARAGRAPHS,
        help=f"Paragraphs to add (default: {DEFAULT_ADDITIONAL_PARAGRAPHS})"
    )
    continue_parser.add_argument("--images", action="store_true", default=False)

    return parser


async def run_generate(args, api_url: Optional[str]) -> dict:
    async with StoryApiClient(base_url=api_url) as client:
        story = await client.generate_story(
            args.genre, args.characters, args.paragraphs, character_names=args.names
        )
        if args.images or images_enabled():
            await client.illustrate_story(story, enabled=True)
        return story.to_dict()


async def run_continue(args, api_url: Optional[str]) -> dict:
    with open(args.story, "r", encoding="utf-8") as f:
        story = Story.from_dict(json.load(f))

    async with StoryApiClient(base_url=api_url) as client:
        new_paragraphs = await client.continue_story(story, args.additional)
        if args.images or images_enabled():
            await client.illustrate_story(
                story, paragraph_ids=[p.id for p in new_paragraphs], enabled=True
            )
        return story.to_dict()


def main(argv=None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "generate":
        runner = run_generate
    elif args.command == "continue":
        runner = run_continue
    else:
        parser.print_help()
        return 1

    logger = setup_logging()
    try:
        story = asyncio.run(runner(args, args.api_url))
    except StoryApiError as e:
        logger.error(f"[CLI] {e}")
        return 1

    print(json.dumps(story, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
