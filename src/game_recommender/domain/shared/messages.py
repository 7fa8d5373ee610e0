"""Centralized message constants for error messages, validation, and log output."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Identifier Validation Errors
    INVALID_PLAYER_ID = "Player ID must be positive"
    INVALID_ITEM_ID = "Item ID must be positive"
    EMPTY_RECOMMENDATION_ID = "Recommendation ID cannot be empty"
    INVALID_WINDOW = "Window end must be after window start"
    INVALID_SCORE = "Score must be between 0 and 1"
    INVALID_POSITION = "Position must be positive"
    EMPTY_ALGORITHM = "Algorithm name cannot be empty"
    EMPTY_CONTEXT = "Context cannot be empty"
    INVALID_BET_RANGE = "Minimum bet cannot exceed maximum bet"
    NO_OVERRIDE_CHANGES = "No override settings were provided"
    UNKNOWN_OVERRIDE_FIELDS = "Unknown override fields: {fields}"

    # Dispatcher Errors
    NO_HANDLER = "No handler found for {request_type}"
    NOT_A_REQUEST = "{request_type} is neither a Command nor a Query"
    DISPATCH_FAILED = "{request_type} dispatch failed: {error}"
    DISPATCH_TIMED_OUT = "{request_type} did not complete within {timeout}s"
    DUPLICATE_HANDLER = "A handler is already registered for {request_type}"

    # Pipeline Errors
    PLAYER_INVALID = "Invalid player ID"
    PLAYER_NOT_FOUND = "Player not found"
    PLAYER_INACTIVE = "Player account is inactive"
    STEP_FAILED = "Pipeline step '{step}' failed: {error}"
    PIPELINE_NO_OUTPUT = "Pipeline completed but did not produce expected output type"
    PIPELINE_TYPE_MISMATCH = "Pipeline step '{step}' cannot accept {value_type}"
    PIPELINE_TIMED_OUT = "Pipeline '{pipeline}' did not complete within {timeout}s"
    CONDITIONAL_TYPE_MISMATCH = "Skipped step '{step}' cannot pass through {value_type}"
    EMPTY_PIPELINE = "Pipeline '{pipeline}' has no steps"

    # Unit of Work Errors
    TRANSACTION_ALREADY_OPEN = "A transaction is already open"
    UNIT_OF_WORK_CLOSED = "Unit of work is {state}"
    UNIT_OF_WORK_NOT_ENTERED = "Unit of work has no open connection"
    UNKNOWN_REPOSITORY = "No repository registered for {repository}"
    STALE_VERSION = "{entity} {identifier} was modified by another writer"
    DATABASE_BUSY = "Database is locked by another writer"

    # Specification Errors
    ORDERING_ALREADY_SET = "Ordering has already been applied to this specification"
    INVALID_PAGING = "Paging requires skip >= 0 and take > 0"

    # Recommendation Errors
    RECOMMENDATION_NOT_FOUND = "Recommendation {recommendation_id} not found"
    RECOMMENDATION_PLAYER_MISMATCH = "Recommendation {recommendation_id} does not belong to player {player_id}"
    ITEM_NOT_FOUND = "Item {item_id} not found"
    DUPLICATE_POSITION = "Rank positions must be unique within a result set"

    # Strategy Errors
    NO_METRICS = "No performance data for strategy {name}"
    MODEL_SERVING_DISABLED = "Model serving endpoint is not configured"
    MODEL_SERVING_BAD_RESPONSE = "Model serving returned {count} scores for {expected} items"

    # Time/Date Validation Errors
    TIMEZONE_REQUIRED_UTC_DATETIME = "UtcDateTime requires a timezone-aware datetime"

    # Settings Errors
    INVALID_DATABASE_URL = "Database URL must start with sqlite://"
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"
    INVALID_WEIGHTS = "Weights must be non-negative and sum to a positive value"


class LogTemplates:
    """Logging message templates using %-style formatting for lazy evaluation."""

    # Application Lifecycle
    APP_STARTING = "Starting game recommender (environment=%s)"
    APP_STOPPED = "Game recommender stopped"
    APP_FATAL_ERROR = "Fatal error: %s"
    CONTAINER_SHUTDOWN_FAILED = "Failed stopping %s: %r"
    LOGGING_CONFIG_FALLBACK = "Could not load %s, falling back to basic config"

    # Database
    DATABASE_INITIALIZED = "Database initialized: %s"
    DATABASE_CLOSED = "Database closed"
    TABLE_MIGRATED = "Migrated %s: added column %s"

    # Unit of Work
    TRANSACTION_BEGUN = "Transaction begun (uow=%s)"
    TRANSACTION_COMMITTED = "Transaction committed (uow=%s)"
    TRANSACTION_ROLLED_BACK = "Transaction rolled back (uow=%s)"
    ROLLBACK_FAILED = "Rollback failed (uow=%s): %s"
    TRANSACTION_FAILED = "Transaction failed (uow=%s): %s"
    TRANSACTION_CANCELLED = "Transaction cancelled, rolling back (uow=%s)"
    CHANGES_SAVED = "Saved %d change(s) affecting %d row(s) (uow=%s)"
    EVENTS_DISPATCHED = "Dispatched %d domain event(s) (uow=%s)"

    # Events
    EVENT_SUBSCRIBED = "Subscribed handler to: %s"
    EVENT_UNSUBSCRIBED = "Unsubscribed handler from %s"
    EVENT_NO_HANDLERS = "No handlers for %s"
    EVENT_PUBLISHING = "Publishing %s to %d handlers"
    EVENT_HANDLER_ERROR = "Error in handler for %s: %s"
    EVENT_HANDLERS_CLEARED = "Cleared all event handlers"

    # Dispatcher
    DISPATCH_COMPLETED = "Dispatched %s (success=%s, %.1fms)"
    DISPATCH_NO_HANDLER = "No handler registered for %s"
    DISPATCH_HANDLER_ERROR = "Handler for %s raised: %s"
    DISPATCH_TIMEOUT = "Dispatch of %s timed out after %ss"

    # Pipeline
    PIPELINE_STARTED = "Pipeline %s started (context=%s)"
    PIPELINE_COMPLETED = "Pipeline %s completed in %.1fms"
    PIPELINE_STEP_COMPLETED = "Step %s finished in %.1fms (success=%s)"
    PIPELINE_STEP_SKIPPED = "Step %s skipped (disabled)"
    PIPELINE_STEP_FAILED = "Step %s failed: %s"
    PIPELINE_STEP_RAISED = "Step %s raised: %s"
    PIPELINE_STEP_RECOVERED = "Step %s recovered from failure"
    PIPELINE_EARLY_EXIT = "Pipeline %s reached its output at step %s"
    PIPELINE_TIMEOUT = "Pipeline %s timed out after %ss"
    CONDITION_SKIPPED = "Condition false, skipping %s"

    # Recommendation Steps
    FEATURES_SYNTHESIZED = "No feature row for player %s, using new-player defaults"
    RECOMMENDATIONS_GENERATED = "Strategy %s produced %d candidate(s) for player %s"
    BUSINESS_RULES_APPLIED = "Business rules kept %d of %d candidate(s)"
    DIVERSIFIED = "Diversification kept %d of %d candidate(s)"
    RESULT_CACHED = "Cached %d recommendation(s) under %s"
    CACHE_WRITE_FAILED = "Could not cache recommendations under %s: %s"
    RECOMMENDATION_CACHE_HIT = "Serving cached recommendations for player %s"

    # Strategy Selection
    STRATEGY_OVERRIDE = "Using algorithm override %s for player %s"
    STRATEGY_EXPERIMENT = "Player %s is in experiment %s variant %s using %s"
    STRATEGY_HEURISTIC = "Selected %s for player %s (%s)"
    STRATEGY_SELECTION_FAILED = "Strategy selection failed for player %s, falling back to %s: %s"
    STRATEGY_UNKNOWN = "Unknown strategy %r, falling back to %s"
    STRATEGY_METRICS_UNAVAILABLE = "Omitting %s from ranking: %s"
    MODEL_SERVING_FALLBACK = "Model serving unavailable, scoring locally: %s"

    # Cache
    CACHE_HIT = "Cache hit: %s"
    CACHE_MISS = "Cache miss: %s"
    CACHE_INVALIDATED = "Invalidated %d cache entr(y/ies) matching %s"

    # Experiments
    EXPERIMENT_ASSIGNED = "Assigned player %s to %s/%s"
    EXPERIMENT_CREATED = "Created experiment %s for context %s"

    # Commands
    RECOMMENDATION_CREATED = "Created recommendation %s for player %s item %s"
    RECOMMENDATIONS_RECORDED = "Recorded %d served recommendation(s) for player %s"
    INTERACTION_RECORDED = "Recorded %s interaction on %s (session=%s)"
    INTERACTION_DUPLICATE = "Ignored duplicate %s interaction on %s (session=%s)"
    OVERRIDES_UPDATED = "Updated override settings for item %s (fields=%s)"
