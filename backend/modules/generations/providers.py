"""
Generation providers.

Thin httpx passthroughs to FAL, Replicate and the Google Generative
Language API. Inputs and outputs are passed through as JSON; no prompt
handling happens here.
"""

import logging
from typing import Any, Optional

import httpx

from shared.config import Settings
from shared.model_config import (
    FalModelConfig,
    GoogleModelConfig,
    ModelConfig,
    ReplicateModelConfig,
)

from .exceptions import ProviderError
from .interfaces import IGenerationProvider

logger = logging.getLogger(__name__)


class _HttpProvider:
    """Shared request handling for the httpx providers."""

    name = "http"

    def __init__(
        self,
        api_key: str,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_key: Provider credential
            timeout: Request timeout in seconds
            client: Optional shared client. When None, a client is
                    opened per request.
        """
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    async def _post(
        self,
        url: str,
        json: dict[str, Any],
        headers: dict[str, str],
        params: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, json=json, headers=headers, params=params, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        url, json=json, headers=headers, params=params, timeout=self._timeout
                    )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"{self.name} returned {e.response.status_code} for {url}")
            raise ProviderError(self.name, e.response.text[:500], e.response.status_code)
        except httpx.HTTPError as e:
            logger.error(f"{self.name} request to {url} failed: {e}")
            raise ProviderError(self.name, str(e) or e.__class__.__name__)

    def _wrong_config(self, config: ModelConfig) -> ProviderError:
        logger.error(f"{self.name} provider got {config.provider} model {config.model_name}")
        return ProviderError(
            self.name,
            f"Model {config.model_name} is configured for {config.provider}, not {self.name}",
        )


class FalProvider(_HttpProvider):
    """FAL synchronous run endpoint: POST https://fal.run/{endpoint}."""

    name = "fal"
    BASE_URL = "https://fal.run"

    async def generate(self, config: ModelConfig, payload: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(config, FalModelConfig):
            raise self._wrong_config(config)
        return await self._post(
            f"{self.BASE_URL}/{config.endpoint}",
            json=payload,
            headers={"Authorization": f"Key {self._api_key}"},
        )


class ReplicateProvider(_HttpProvider):
    """
    Replicate predictions.

    Uses the official model endpoint when no version is pinned, and the
    versioned predictions endpoint otherwise. "Prefer: wait" asks
    Replicate to hold the request until the prediction finishes.
    """

    name = "replicate"
    BASE_URL = "https://api.replicate.com/v1"

    async def generate(self, config: ModelConfig, payload: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(config, ReplicateModelConfig):
            raise self._wrong_config(config)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Prefer": "wait",
        }
        if config.version:
            url = f"{self.BASE_URL}/predictions"
            body = {"version": config.version, "input": payload}
        else:
            url = f"{self.BASE_URL}/models/{config.model_ref}/predictions"
            body = {"input": payload}

        prediction = await self._post(url, json=body, headers=headers)
        if prediction.get("status") in ("failed", "canceled"):
            raise ProviderError(self.name, prediction.get("error") or prediction["status"])
        return prediction


class GoogleProvider(_HttpProvider):
    """Gemini generateContent on the Generative Language API."""

    name = "google"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    async def generate(self, config: ModelConfig, payload: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(config, GoogleModelConfig):
            raise self._wrong_config(config)
        return await self._post(
            f"{self.BASE_URL}/models/{config.model_id}:generateContent",
            json=payload,
            headers={"x-goog-api-key": self._api_key},
        )


def get_providers(settings: Settings) -> dict[str, IGenerationProvider]:
    """
    Build the providers that have credentials configured.

    Returns:
        Dictionary mapping provider family ("fal", "replicate", "google")
        to provider instance. Families without an API key are omitted.
    """
    providers: dict[str, IGenerationProvider] = {}
    if settings.fal_api_key:
        providers["fal"] = FalProvider(settings.fal_api_key, settings.provider_timeout)
    if settings.replicate_api_token:
        providers["replicate"] = ReplicateProvider(
            settings.replicate_api_token, settings.provider_timeout
        )
    if settings.google_ai_api_key:
        providers["google"] = GoogleProvider(
            settings.google_ai_api_key, settings.provider_timeout
        )
    return providers
