"""Tests for the httpx generation providers."""

import json
from typing import Optional

import httpx
import pytest

from modules.generations import (
    FalProvider,
    GoogleProvider,
    IGenerationProvider,
    ProviderError,
    ReplicateProvider,
    get_providers,
)
from shared.config import Settings
from shared.model_config import parse_model_list


CATALOG = parse_model_list([
    {
        "model_name": "veo3-fast",
        "provider": "fal",
        "endpoint": "fal-ai/veo3/fast",
        "cost_per_generation": "0.15",
        "generation_type": "video",
    },
    {
        "model_name": "seedance-pro",
        "provider": "replicate",
        "model_ref": "bytedance/seedance-1-pro",
        "cost_per_generation": "2.52",
    },
    {
        "model_name": "seedance-pinned",
        "provider": "replicate",
        "model_ref": "bytedance/seedance-1-pro",
        "version": "abc123",
        "cost_per_generation": "2.52",
    },
    {
        "model_name": "nano-banana",
        "provider": "google",
        "model_id": "gemini-2.5-flash-image-preview",
        "cost_per_generation": "0.0398",
    },
])


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class RecordingHandler:
    """MockTransport handler that records requests and returns a fixed response."""

    def __init__(self, status_code: int = 200, body: Optional[dict] = None):
        self.status_code = status_code
        self.body = body if body is not None else {"ok": True}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


class TestFalProvider:
    @pytest.mark.asyncio
    async def test_posts_payload_to_endpoint(self):
        handler = RecordingHandler(body={"video": {"url": "https://cdn/v.mp4"}})
        provider = FalProvider("fal-key", client=make_client(handler))

        output = await provider.generate(CATALOG["veo3-fast"], {"prompt": "a cat"})

        request = handler.requests[0]
        assert str(request.url) == "https://fal.run/fal-ai/veo3/fast"
        assert request.headers["Authorization"] == "Key fal-key"
        assert handler.last_json == {"prompt": "a cat"}
        assert output == {"video": {"url": "https://cdn/v.mp4"}}

    @pytest.mark.asyncio
    async def test_http_error_raises_provider_error(self):
        handler = RecordingHandler(status_code=500, body={"detail": "boom"})
        provider = FalProvider("fal-key", client=make_client(handler))

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(CATALOG["veo3-fast"], {"prompt": "a cat"})

        assert exc_info.value.details == {"status": 500, "service": "fal"}
        assert "fal" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_raises_provider_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        provider = FalProvider("fal-key", client=make_client(handler))

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(CATALOG["veo3-fast"], {})

        assert "connection refused" in exc_info.value.message


class TestReplicateProvider:
    @pytest.mark.asyncio
    async def test_model_endpoint_without_version(self):
        handler = RecordingHandler(body={"status": "succeeded", "output": ["https://x"]})
        provider = ReplicateProvider("r8-token", client=make_client(handler))

        output = await provider.generate(CATALOG["seedance-pro"], {"prompt": "waves"})

        request = handler.requests[0]
        assert str(request.url) == (
            "https://api.replicate.com/v1/models/bytedance/seedance-1-pro/predictions"
        )
        assert request.headers["Authorization"] == "Bearer r8-token"
        assert request.headers["Prefer"] == "wait"
        assert handler.last_json == {"input": {"prompt": "waves"}}
        assert output["output"] == ["https://x"]

    @pytest.mark.asyncio
    async def test_pinned_version(self):
        handler = RecordingHandler(body={"status": "succeeded"})
        provider = ReplicateProvider("r8-token", client=make_client(handler))

        await provider.generate(CATALOG["seedance-pinned"], {"prompt": "waves"})

        assert str(handler.requests[0].url) == "https://api.replicate.com/v1/predictions"
        assert handler.last_json == {"version": "abc123", "input": {"prompt": "waves"}}

    @pytest.mark.asyncio
    async def test_failed_prediction_raises(self):
        handler = RecordingHandler(body={"status": "failed", "error": "NSFW content"})
        provider = ReplicateProvider("r8-token", client=make_client(handler))

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(CATALOG["seedance-pro"], {})

        assert "NSFW content" in exc_info.value.message


class TestGoogleProvider:
    @pytest.mark.asyncio
    async def test_generate_content(self):
        handler = RecordingHandler(body={"candidates": []})
        provider = GoogleProvider("g-key", client=make_client(handler))
        payload = {"contents": [{"parts": [{"text": "a banana"}]}]}

        output = await provider.generate(CATALOG["nano-banana"], payload)

        request = handler.requests[0]
        assert request.url.path == "/v1beta/models/gemini-2.5-flash-image-preview:generateContent"
        assert request.headers["x-goog-api-key"] == "g-key"
        assert handler.last_json == payload
        assert output == {"candidates": []}


class TestMismatchedConfig:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider_cls,model_name",
        [
            (FalProvider, "nano-banana"),
            (ReplicateProvider, "veo3-fast"),
            (GoogleProvider, "seedance-pro"),
        ],
    )
    async def test_other_family_config_rejected_without_request(self, provider_cls, model_name):
        handler = RecordingHandler()
        provider = provider_cls("key", client=make_client(handler))

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(CATALOG[model_name], {"prompt": "x"})

        assert exc_info.value.details["service"] == provider.name
        assert model_name in exc_info.value.message
        assert handler.requests == []


class TestGetProviders:
    @pytest.fixture(autouse=True)
    def clear_provider_env(self, monkeypatch):
        for name in ("FAL_API_KEY", "REPLICATE_API_TOKEN", "GOOGLE_AI_API_KEY"):
            monkeypatch.delenv(name, raising=False)

    def test_only_configured_providers(self):
        settings = Settings(_env_file=None, fal_api_key="fal-key", google_ai_api_key="g-key")

        providers = get_providers(settings)

        assert set(providers) == {"fal", "google"}
        assert all(isinstance(p, IGenerationProvider) for p in providers.values())

    def test_none_configured(self):
        assert get_providers(Settings(_env_file=None)) == {}
