"""Pipeline engine and the recommendation pipeline built on it."""

from .engine import ConditionalStep, Pipeline, PipelineBuilder, PipelineContext, PipelineStep
from .factory import build_recommendation_pipeline

__all__ = [
    "ConditionalStep",
    "Pipeline",
    "PipelineBuilder",
    "PipelineContext",
    "PipelineStep",
    "build_recommendation_pipeline",
]
