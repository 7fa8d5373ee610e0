"""
Application Layer

Contains use cases, command/query handlers, and application services.
This layer orchestrates domain objects and infrastructure to fulfill use cases.

Structure:
- cqrs.py: Command/Query markers, handler registry and dispatcher
- commands/: write operations (TrackInteractionCommand, UpdateItemOverrideSettingsCommand, etc.)
- queries/: read operations (GetRecommendationsQuery, GetStrategyRankingQuery, etc.)
- pipeline/: step-based pipeline engine and the recommendation pipeline
- services/: strategy selection, performance metrics and cache invalidation
- interfaces/: Port interfaces for infrastructure adapters
"""
