"""
Tests for api_client module.
"""

import json

import httpx
import pytest

from src.story.api_client import StoryApiClient, StoryApiError, images_enabled
from src.story.models import Story

STORY = {
    "storyId": "story_abc",
    "preface": "A story unfolds",
    "paragraphs": [
        {"id": 1, "text": "One.", "imagePrompt": "p1"},
        {"id": 2, "text": "Two.", "imagePrompt": "p2"},
        {"id": 3, "text": "Three.", "imagePrompt": "p3"},
    ],
}


def make_client(handler) -> StoryApiClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StoryApiClient(base_url="http://api.test/", http_client=http_client)


def make_story() -> Story:
    return Story.from_dict({**STORY, "genre": "fantasy", "characters": 2})


def image_reply(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={
        "imageUrl": f"https://img.test/{body['paragraphId']}.png",
        "paragraphId": body["paragraphId"],
    })


class TestImagesEnabled:
    """Tests for the ENABLE_IMAGES flag."""

    def test_disabled_by_default(self):
        assert images_enabled() is False

    def test_enabled(self, monkeypatch):
        monkeypatch.setenv("ENABLE_IMAGES", "TRUE")
        assert images_enabled() is True


class TestStoryCalls:
    """Tests for story generation calls."""

    @pytest.mark.asyncio
    async def test_generate_story_keeps_request_fields(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=STORY)

        client = make_client(handler)
        story = await client.generate_story("fantasy", characters=2, paragraphs=3, character_names=["Aria", "Thorne"])

        assert isinstance(story, Story)
        assert story.id == "story_abc"
        assert story.genre == "fantasy"
        assert story.characters == 2
        assert [p.id for p in story.paragraphs] == [1, 2, 3]
        assert str(requests[0].url) == "http://api.test/story/generate"
        assert json.loads(requests[0].content) == {
            "genre": "fantasy",
            "characters": 2,
            "paragraphs": 3,
            "characterNames": ["Aria", "Thorne"],
        }

    @pytest.mark.asyncio
    async def test_regenerate_replaces_paragraph(self):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={"paragraph": {"id": 2, "text": "New two.", "imagePrompt": "n2"}})

        story = make_story()
        paragraph = await make_client(handler).regenerate_paragraph(story, 2)

        assert sent["currentParagraph"] == "Two."
        assert sent["previousParagraphs"] == ["One."]
        assert sent["followingParagraphs"] == ["Three."]
        assert sent["genre"] == "fantasy"
        assert paragraph.text == "New two."
        assert story.paragraphs[1] is paragraph
        assert [p.id for p in story.paragraphs] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_regenerate_unknown_paragraph(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(KeyError):
            await make_client(handler).regenerate_paragraph(make_story(), 9)

    @pytest.mark.asyncio
    async def test_continue_appends(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["existingParagraphs"] == ["One.", "Two.", "Three."]
            return httpx.Response(200, json={"newParagraphs": [
                {"id": 4, "text": "Four.", "imagePrompt": "p4"},
                {"id": 5, "text": "Five.", "imagePrompt": "p5"},
            ]})

        story = make_story()
        new_paragraphs = await make_client(handler).continue_story(story, 2)

        assert [p.id for p in new_paragraphs] == [4, 5]
        assert [p.id for p in story.paragraphs] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_error_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "RATE_LIMIT_EXCEEDED", "message": "Slow down"})

        with pytest.raises(StoryApiError) as exc_info:
            await make_client(handler).generate_story("fantasy", 2, 3)

        assert exc_info.value.status_code == 429
        assert exc_info.value.error == "RATE_LIMIT_EXCEEDED"

    @pytest.mark.asyncio
    async def test_non_json_error_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(StoryApiError) as exc_info:
            await make_client(handler).generate_story("fantasy", 2, 3)

        assert exc_info.value.error == "HTTP_ERROR"

    @pytest.mark.asyncio
    async def test_non_json_success_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(StoryApiError) as exc_info:
            await make_client(handler).generate_story("fantasy", 2, 3)

        assert exc_info.value.error == "INVALID_RESPONSE"

    @pytest.mark.asyncio
    async def test_malformed_story(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"preface": "no id here"})

        with pytest.raises(StoryApiError) as exc_info:
            await make_client(handler).generate_story("fantasy", 2, 3)

        assert exc_info.value.error == "INVALID_RESPONSE"


class TestIllustrateStory:
    """Tests for concurrent paragraph illustration."""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        story = make_story()
        assert await make_client(handler).illustrate_story(story) == {}
        assert all(p.image_url is None for p in story.paragraphs)

    @pytest.mark.asyncio
    async def test_failed_image_isolated(self):
        """One failed image leaves only that paragraph without an image."""

        def handler(request: httpx.Request) -> httpx.Response:
            if json.loads(request.content)["paragraphId"] == 2:
                return httpx.Response(422, json={"error": "IMAGE_GENERATION_ERROR", "message": "Failed"})
            return image_reply(request)

        story = make_story()
        images = await make_client(handler).illustrate_story(story, enabled=True)

        assert images == {1: "https://img.test/1.png", 3: "https://img.test/3.png"}
        assert story.paragraphs[0].image_url == "https://img.test/1.png"
        assert story.paragraphs[1].image_url is None
        assert story.paragraphs[2].image_url == "https://img.test/3.png"

    @pytest.mark.asyncio
    async def test_non_json_image_reply_isolated(self):
        """A 200 that is not JSON fails only its own paragraph."""

        def handler(request: httpx.Request) -> httpx.Response:
            if json.loads(request.content)["paragraphId"] == 2:
                return httpx.Response(200, text="not json")
            return image_reply(request)

        story = make_story()
        images = await make_client(handler).illustrate_story(story, enabled=True)

        assert images == {1: "https://img.test/1.png", 3: "https://img.test/3.png"}
        assert story.paragraphs[1].image_url is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [
        {"paragraphId": 2},
        {"imageUrl": None, "paragraphId": 2},
        {"imageUrl": 42, "paragraphId": 2},
        ["https://img.test/2.png"],
    ])
    async def test_malformed_image_reply_isolated(self, reply):
        def handler(request: httpx.Request) -> httpx.Response:
            if json.loads(request.content)["paragraphId"] == 2:
                return httpx.Response(200, json=reply)
            return image_reply(request)

        story = make_story()
        images = await make_client(handler).illustrate_story(story, enabled=True)

        assert list(images) == [1, 3]
        assert story.paragraphs[1].image_url is None

    @pytest.mark.asyncio
    async def test_selected_paragraphs(self, monkeypatch):
        monkeypatch.setenv("ENABLE_IMAGES", "true")
        prompts = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            prompts.append(body["prompt"])
            return httpx.Response(200, json={"imageUrl": "data:image/png;base64,AA==", "paragraphId": body["paragraphId"]})

        story = make_story()
        images = await make_client(handler).illustrate_story(story, paragraph_ids=[3])

        assert prompts == ["p3"]
        assert list(images) == [3]
        assert story.paragraphs[2].image_url == "data:image/png;base64,AA=="

    @pytest.mark.asyncio
    async def test_transport_error_isolated(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        story = make_story()
        assert await make_client(handler).illustrate_story(story, enabled=True) == {}
