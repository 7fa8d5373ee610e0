"""httpx client for the remote ranking model."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from pydantic import BaseModel, Field

from game_recommender.application.interfaces.model_serving import ModelServingClient
from game_recommender.config.settings import ModelServingSettings
from game_recommender.domain.shared.exceptions import TransientInfrastructureError
from game_recommender.domain.shared.messages import ErrorMessages

_RESOURCE = "model serving"
PREDICT_PATH = "/predict"
HEALTH_PATH = "/health"


class PredictionResponse(BaseModel):
    """The model server returns this structure from ``POST /predict``."""

    scores: list[float] = Field(default_factory=list)
    model_version: str | None = None


class HttpModelServingClient(ModelServingClient):
    """Scores items by calling the model server over HTTP.

    Network failures, non-2xx responses and malformed bodies all surface as
    ``TransientInfrastructureError`` so the strategy can score locally.
    """

    def __init__(
        self,
        settings: ModelServingSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or ModelServingSettings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client

        if not self._settings.enabled:
            raise TransientInfrastructureError(_RESOURCE, ErrorMessages.MODEL_SERVING_DISABLED)

        self._client = httpx.AsyncClient(
            base_url=self._settings.url,
            timeout=self._settings.timeout_s,
            transport=self._transport,
        )
        return self._client

    async def predict(
        self,
        player: Mapping[str, Any],
        items: Sequence[Mapping[str, Any]],
    ) -> list[float]:
        if not items:
            return []

        client = self._get_client()
        payload = {
            "model_version": self._settings.model_version,
            "player": dict(player),
            "items": [dict(item) for item in items],
        }
        try:
            response = await client.post(PREDICT_PATH, json=payload)
            response.raise_for_status()
            parsed = PredictionResponse.model_validate(response.json())
        except httpx.HTTPError as exc:
            raise TransientInfrastructureError(_RESOURCE, f"{exc.__class__.__name__}: {exc}") from exc
        except ValueError as exc:
            # Covers JSON decoding and pydantic validation errors.
            raise TransientInfrastructureError(_RESOURCE, str(exc)) from exc

        if len(parsed.scores) != len(items):
            raise TransientInfrastructureError(
                _RESOURCE,
                ErrorMessages.MODEL_SERVING_BAD_RESPONSE.format(
                    count=len(parsed.scores), expected=len(items)
                ),
            )
        return [min(1.0, max(0.0, score)) for score in parsed.scores]

    async def is_available(self) -> bool:
        if not self._settings.enabled:
            return False
        try:
            response = await self._get_client().get(HEALTH_PATH)
        except httpx.HTTPError:
            return False
        return response.is_success

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
