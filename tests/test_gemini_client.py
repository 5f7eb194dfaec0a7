"""
Tests for the Gemini client wrapper and provider error translation

The SDK client is replaced by an object exposing ``aio.models.generate_content``.
"""

from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors as genai_errors
from pydantic import BaseModel

from nanodirector_core_schemas import ProviderError, ProviderErrorKind, Session
from nanodirector_gemini_client import GeminiClient, ResponseCache, request_key
from nanodirector_generators import as_provider_error


class Answer(BaseModel):
    title: str
    count: int


def text_response(text, finish_reason=None):
    candidate = SimpleNamespace(finish_reason=finish_reason, content=None)
    return SimpleNamespace(candidates=[candidate], text=text, usage_metadata=None)


def image_response(data):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data), text=None)
    candidate = SimpleNamespace(finish_reason="STOP", content=SimpleNamespace(parts=[part]))
    return SimpleNamespace(candidates=[candidate], text=None, usage_metadata=None)


class FakeModels:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append((model, contents, config))
        return self.responses.pop(0)


def make_client(*responses, **kwargs) -> tuple[GeminiClient, FakeModels]:
    models = FakeModels(responses)
    client = GeminiClient(Session(api_key="test-key"), **kwargs)
    client._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    client._client_key = "test-key"
    return client, models


class TestResponseCache:
    """Tests for ResponseCache."""

    def test_evicts_least_recently_used(self):
        cache = ResponseCache(max_size=2)
        cache.put("a", "1")
        cache.put("b", "2")
        cache.get("a")

        cache.put("c", "3")

        assert "a" in cache and "c" in cache
        assert "b" not in cache

    def test_persists_to_json_file(self, temp_dir):
        path = temp_dir / "responses.json"
        ResponseCache(path=path).put("key", "value")

        reloaded = ResponseCache(path=path)

        assert reloaded.get("key") == "value"

    def test_unreadable_file_starts_empty(self, temp_dir):
        path = temp_dir / "responses.json"
        path.write_text("not json")

        assert len(ResponseCache(path=path)) == 0

    def test_request_key_hashes_image_bytes(self):
        assert request_key("f", [b"one"]) == request_key("f", [b"one"])
        assert request_key("f", [b"one"]) != request_key("f", [b"two"])


class TestGeminiClient:
    """Tests for GeminiClient against a fake SDK."""

    @pytest.mark.asyncio
    async def test_text_is_cached(self):
        client, models = make_client(text_response("hello"))

        first = await client.generate_text("prompt")
        second = await client.generate_text("prompt")

        assert first == second == "hello"
        assert len(models.calls) == 1

    @pytest.mark.asyncio
    async def test_overwrite_cache_makes_fresh_call(self):
        client, models = make_client(text_response("one"), text_response("two"))

        await client.generate_text("prompt")
        fresh = await client.generate_text("prompt", overwrite_cache=True)

        assert fresh == "two"
        assert len(models.calls) == 2

    @pytest.mark.asyncio
    async def test_structured_output_strips_fences(self):
        client, _ = make_client(text_response('```json\n{"title": "Rain", "count": 4}\n```'))

        answer = await client.generate_structured("prompt", Answer)

        assert answer == Answer(title="Rain", count=4)

    @pytest.mark.asyncio
    async def test_structured_output_must_match_schema(self):
        client, _ = make_client(text_response('{"title": "Rain"}'))

        with pytest.raises(ProviderError) as exc_info:
            await client.generate_structured("prompt", Answer)

        assert exc_info.value.kind == ProviderErrorKind.MALFORMED_OUTPUT

    @pytest.mark.asyncio
    async def test_safety_block_is_content_filtered(self):
        client, _ = make_client(text_response(None, finish_reason="SAFETY"))

        with pytest.raises(ProviderError) as exc_info:
            await client.generate_text("prompt")

        assert exc_info.value.kind == ProviderErrorKind.CONTENT_FILTERED

    @pytest.mark.asyncio
    async def test_images_are_never_cached(self):
        client, models = make_client(image_response(b"img-1"), image_response(b"img-2"))

        first = await client.generate_image("sheet", aspect_ratio="16:9")
        second = await client.generate_image("sheet", aspect_ratio="16:9")

        assert (first, second) == (b"img-1", b"img-2")
        assert models.calls[0][0] == GeminiClient.IMAGE_MODEL

    @pytest.mark.asyncio
    async def test_response_without_image(self):
        client, _ = make_client(text_response("I cannot draw that"))

        with pytest.raises(ProviderError):
            await client.generate_image("sheet")

    def test_missing_api_key(self):
        client = GeminiClient(Session())

        with pytest.raises(ProviderError) as exc_info:
            client.client

        assert exc_info.value.kind == ProviderErrorKind.PERMISSION_DENIED
        assert "GOOGLE_API_KEY" in exc_info.value.message


class TestAsProviderError:
    """Tests for as_provider_error."""

    @pytest.mark.parametrize(
        "code,kind",
        [
            (429, ProviderErrorKind.RATE_LIMITED),
            (403, ProviderErrorKind.PERMISSION_DENIED),
            (400, ProviderErrorKind.INVALID_REQUEST),
            (503, ProviderErrorKind.SERVER_ERROR),
        ],
    )
    def test_api_errors_by_status(self, code, kind):
        exc = genai_errors.APIError(code, {"error": {"code": code, "message": "nope"}})

        error = as_provider_error(exc, "Script")

        assert error.kind == kind
        assert error.message.startswith(f"Script Error: API Error {code}")

    def test_transport_error_is_network(self):
        error = as_provider_error(httpx.ConnectError("connection refused"))

        assert error.kind == ProviderErrorKind.NETWORK

    def test_provider_error_keeps_kind(self):
        original = ProviderError("blocked", kind=ProviderErrorKind.CONTENT_FILTERED)

        error = as_provider_error(original, "Remaster")

        assert error.kind == ProviderErrorKind.CONTENT_FILTERED
        assert error.message == "Remaster Error: blocked"
