"""Tests for image_provider module."""

import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.story.constants import MOCK_COLORS
from src.story.errors import ProviderConfigError, ProviderRequestError, UnsupportedProviderError
from src.story.image_provider import (
    GeminiImageProvider,
    MockImageProvider,
    ReplicateImageProvider,
    create_image_provider,
    get_default_image_provider,
)


def decode_svg(data_uri: str) -> str:
    prefix = "data:image/svg+xml;base64,"
    assert data_uri.startswith(prefix)
    return base64.b64decode(data_uri[len(prefix):]).decode("utf-8")


def chunk_with_parts(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def stream_of(*chunks):
    async def generator():
        for chunk in chunks:
            yield chunk
    return generator()


class TestMockImageProvider:
    """Tests for MockImageProvider."""

    @pytest.mark.asyncio
    async def test_returns_svg_data_uri(self):
        provider = MockImageProvider()
        svg = decode_svg(await provider.generate_image("A castle on a hill"))

        assert svg.startswith('<svg width="400" height="300"')
        assert "A castle on a hill" in svg

    @pytest.mark.asyncio
    async def test_deterministic(self):
        provider = MockImageProvider()
        assert await provider.generate_image("same prompt") == await provider.generate_image("same prompt")

    @pytest.mark.asyncio
    async def test_color_from_palette(self):
        provider = MockImageProvider()
        svg = decode_svg(await provider.generate_image("any prompt"))
        assert provider.pick_color("any prompt") in MOCK_COLORS
        assert f"stop-color:{provider.pick_color('any prompt')};" in svg

    @pytest.mark.asyncio
    async def test_long_prompt_truncated(self):
        prompt = "a" * 200
        svg = decode_svg(await MockImageProvider().generate_image(prompt))
        assert "a" * 150 + "..." in svg
        assert "a" * 151 not in svg

    @pytest.mark.asyncio
    async def test_prompt_is_escaped(self):
        svg = decode_svg(await MockImageProvider().generate_image("<script>x</script> & co"))
        assert "<script>" not in svg
        assert "&lt;script&gt;x&lt;/script&gt; &amp; co" in svg

    @pytest.mark.asyncio
    async def test_always_healthy(self):
        assert await MockImageProvider().check_health() is True


class TestReplicateImageProvider:
    """Tests for ReplicateImageProvider."""

    def test_missing_token_raises(self):
        with pytest.raises(ProviderConfigError):
            ReplicateImageProvider()

    @pytest.mark.asyncio
    async def test_polls_until_succeeded(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "r8-token")
        requests = []
        statuses = iter(["processing", "succeeded"])

        def handler(request):
            requests.append((request.method, request.url.path))
            assert request.headers["authorization"] == "Bearer r8-token"
            if request.method == "POST":
                body = json.loads(request.content)
                assert body["input"]["prompt"] == "A dragon"
                assert body["input"]["num_inference_steps"] == 4
                return httpx.Response(201, json={"id": "pred-1", "status": "starting"})
            status = next(statuses)
            output = ["https://replicate.delivery/out.png"] if status == "succeeded" else None
            return httpx.Response(200, json={"id": "pred-1", "status": status, "output": output})

        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            poll_interval=0,
        )
        url = await provider.generate_image("A dragon")

        assert url == "https://replicate.delivery/out.png"
        assert requests == [
            ("POST", "/v1/models/black-forest-labs/flux-schnell/predictions"),
            ("GET", "/v1/predictions/pred-1"),
            ("GET", "/v1/predictions/pred-1"),
        ]

    @pytest.mark.asyncio
    async def test_failed_prediction_raises(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")

        def handler(request):
            return httpx.Response(200, json={"id": "p", "status": "failed", "error": "NSFW"})

        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), poll_interval=0
        )
        with pytest.raises(ProviderRequestError, match="NSFW"):
            await provider.generate_image("prompt")

    @pytest.mark.asyncio
    async def test_polling_timeout(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")

        def handler(request):
            return httpx.Response(200, json={"id": "p", "status": "processing"})

        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            poll_interval=0,
            max_wait=0,
        )
        with pytest.raises(ProviderRequestError, match="timed out"):
            await provider.generate_image("prompt")

    @pytest.mark.asyncio
    async def test_submit_error(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")
        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(401)))
        )
        with pytest.raises(ProviderRequestError, match="401"):
            await provider.generate_image("prompt")

    @pytest.mark.asyncio
    async def test_non_json_submit_response(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")
        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda r: httpx.Response(201, text="<html>oops</html>"))
            )
        )
        with pytest.raises(ProviderRequestError, match="malformed response"):
            await provider.generate_image("prompt")

    @pytest.mark.asyncio
    async def test_pending_prediction_without_id(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")
        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda r: httpx.Response(201, json={"status": "starting"}))
            ),
            poll_interval=0,
        )
        with pytest.raises(ProviderRequestError, match="no id"):
            await provider.generate_image("prompt")

    @pytest.mark.asyncio
    async def test_poll_http_error(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")

        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={"id": "p", "status": "starting"})
            return httpx.Response(503, text="Service Unavailable")

        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), poll_interval=0
        )
        with pytest.raises(ProviderRequestError, match="Replicate API error: 503"):
            await provider.generate_image("prompt")

    @pytest.mark.asyncio
    async def test_non_string_output(self, monkeypatch):
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")
        provider = ReplicateImageProvider(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(
                lambda r: httpx.Response(201, json={"id": "p", "status": "succeeded", "output": [{"url": "x"}]})
            ))
        )
        with pytest.raises(ProviderRequestError, match="succeeded"):
            await provider.generate_image("prompt")


class TestGeminiImageProvider:
    """Tests for GeminiImageProvider."""

    def test_missing_key_raises(self):
        with pytest.raises(ProviderConfigError):
            GeminiImageProvider()

    @pytest.mark.asyncio
    async def test_returns_first_inline_image(self):
        text_part = SimpleNamespace(inline_data=None, text="Here is your image")
        image_part = SimpleNamespace(inline_data=SimpleNamespace(data=b"\x89PNG", mime_type="image/png"))
        other_image = SimpleNamespace(inline_data=SimpleNamespace(data=b"other", mime_type="image/png"))

        client = MagicMock()
        client.aio.models.generate_content_stream = AsyncMock(return_value=stream_of(
            SimpleNamespace(candidates=None),
            chunk_with_parts(text_part),
            chunk_with_parts(image_part),
            chunk_with_parts(other_image),
        ))

        provider = GeminiImageProvider(client=client)
        url = await provider.generate_image("A moonlit lake")

        assert url == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode("ascii")
        config = client.aio.models.generate_content_stream.call_args.kwargs["config"]
        assert len(config.response_modalities) == 2

    @pytest.mark.asyncio
    async def test_default_mime_type(self):
        image_part = SimpleNamespace(inline_data=SimpleNamespace(data=b"jpg", mime_type=None))
        client = MagicMock()
        client.aio.models.generate_content_stream = AsyncMock(return_value=stream_of(chunk_with_parts(image_part)))

        url = await GeminiImageProvider(client=client).generate_image("p")
        assert url.startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_no_image_raises(self):
        client = MagicMock()
        client.aio.models.generate_content_stream = AsyncMock(
            return_value=stream_of(chunk_with_parts(SimpleNamespace(inline_data=None, text="sorry")))
        )

        with pytest.raises(ProviderRequestError, match="No image"):
            await GeminiImageProvider(client=client).generate_image("p")


class TestImageFactory:
    """Tests for image provider selection."""

    def test_default_is_mock(self):
        assert isinstance(get_default_image_provider(), MockImageProvider)

    def test_empty_name_is_mock(self):
        assert isinstance(create_image_provider(""), MockImageProvider)

    def test_unknown_name_raises(self):
        with pytest.raises(UnsupportedProviderError, match="Unsupported image provider: dalle"):
            create_image_provider("dalle")

    def test_selects_replicate_from_env(self, monkeypatch):
        monkeypatch.setenv("IMAGE_PROVIDER", "replicate")
        monkeypatch.setenv("REPLICATE_API_TOKEN", "t")
        monkeypatch.setenv("IMAGE_MODEL", "stability-ai/sdxl")

        provider = get_default_image_provider()

        assert isinstance(provider, ReplicateImageProvider)
        assert provider.model_name == "stability-ai/sdxl"
