"""
Unit Tests for the Model Serving Client

Tests for:
- HttpModelServingClient request payloads and score parsing
- Error translation to TransientInfrastructureError
- DeepLearningStrategy fallback to local scoring
"""

import json

import httpx
import pytest
from conftest import make_item

from game_recommender.config.settings import ModelServingSettings
from game_recommender.domain.players.entities import PlayerFeatures
from game_recommender.domain.shared.exceptions import TransientInfrastructureError
from game_recommender.infrastructure.model_serving import HttpModelServingClient

ENDPOINT = "http://models.test"


def client_for(handler, **settings):
    return HttpModelServingClient(
        ModelServingSettings(url=ENDPOINT, **settings),
        transport=httpx.MockTransport(handler),
    )


# =============================================================================
# HttpModelServingClient Tests
# =============================================================================


class TestHttpModelServingClient:
    """Unit tests for HttpModelServingClient."""

    @pytest.mark.asyncio
    async def test_predict_posts_features(self):
        """Should send player and item vectors and return one score per item."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"scores": [0.25, 0.75], "model_version": "2.1"})

        client = client_for(handler, model_version="2.1")
        scores = await client.predict({"vip_level": 1}, [{"item_id": 1}, {"item_id": 2}])
        await client.close()

        assert scores == [0.25, 0.75]
        assert seen["path"] == "/predict"
        assert seen["body"]["model_version"] == "2.1"
        assert seen["body"]["player"] == {"vip_level": 1}
        assert [i["item_id"] for i in seen["body"]["items"]] == [1, 2]

    @pytest.mark.asyncio
    async def test_scores_are_clamped(self):
        client = client_for(lambda request: httpx.Response(200, json={"scores": [-0.5, 1.5]}))

        assert await client.predict({}, [{}, {}]) == [0.0, 1.0]

    @pytest.mark.asyncio
    async def test_no_items_skips_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert await client_for(handler).predict({}, []) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(503, text="overloaded"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"scores": "high"}),
            httpx.Response(200, json={"scores": [0.5]}),
        ],
        ids=["server-error", "bad-json", "bad-schema", "wrong-count"],
    )
    async def test_bad_responses_are_transient(self, response):
        client = client_for(lambda request: response)

        with pytest.raises(TransientInfrastructureError):
            await client.predict({}, [{}, {}])

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransientInfrastructureError):
            await client_for(handler).predict({}, [{}])

    @pytest.mark.asyncio
    async def test_unconfigured_client(self):
        """Without a URL the client is disabled and never connects."""
        client = HttpModelServingClient(ModelServingSettings())

        assert await client.is_available() is False
        with pytest.raises(TransientInfrastructureError):
            await client.predict({}, [{}])

    @pytest.mark.asyncio
    async def test_health_check(self):
        def handler(request):
            assert request.url.path == "/health"
            return httpx.Response(200, json={"status": "ok"})

        assert await client_for(handler).is_available() is True
        assert await client_for(lambda r: httpx.Response(500)).is_available() is False


# =============================================================================
# DeepLearningStrategy Integration Tests
# =============================================================================


class TestDeepLearningWithModelServer:
    """DeepLearningStrategy backed by the HTTP client."""

    @pytest.fixture
    def player(self):
        return PlayerFeatures(player_id=1, total_games_played=10, preferred_categories=("slots",))

    @pytest.mark.asyncio
    async def test_remote_scores_are_used(self, player):
        from game_recommender.domain.strategies.deep_learning import DeepLearningStrategy

        client = client_for(lambda request: httpx.Response(200, json={"scores": [0.9, 0.2]}))
        strategy = DeepLearningStrategy(model_client=client, model_version="3.0")

        state = await strategy.prepare(player, [make_item(1), make_item(2)], "lobby")

        assert state == {1: 0.9, 2: 0.2}

    @pytest.mark.asyncio
    async def test_outage_falls_back_to_local_scoring(self, player):
        """An unreachable model server should not fail the request."""
        from game_recommender.domain.recommendations.entities import RecommendationRequest
        from game_recommender.domain.strategies.deep_learning import DeepLearningStrategy

        client = client_for(lambda request: httpx.Response(502))
        strategy = DeepLearningStrategy(model_client=client, model_version="3.0")
        items = [make_item(i) for i in range(1, 6)]

        recs = await strategy.generate_recommendations(
            RecommendationRequest(player_id=1, count=3), player, items
        )

        assert len(recs) == 3
        assert {r.model_version for r in recs} == {"3.0"}
        expected = sorted((strategy.local_score(player, i) for i in items), reverse=True)[:3]
        assert [r.score for r in recs] == pytest.approx(expected)
