"""Remote model serving clients."""

from game_recommender.infrastructure.model_serving.http_client import HttpModelServingClient

__all__ = ["HttpModelServingClient"]
