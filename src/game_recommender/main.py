#!/usr/bin/env python3
"""Command-line entry point for the game recommender."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from game_recommender.domain.shared.constants import ContextTags
from game_recommender.domain.shared.messages import LogTemplates
from game_recommender.domain.shared.result import Result

if TYPE_CHECKING:
    from game_recommender.config.container import Container

logger = logging.getLogger(__name__)

DEMO_CATEGORIES = ("slots", "table", "live", "crash", "jackpot")
DEMO_PROVIDERS = ("NetEnt", "Pragmatic", "Evolution", "Playtech", "Microgaming")
DEMO_EXPERIMENT = "lobby-ranking"


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list | tuple):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if hasattr(value, "__dataclass_fields__"):
        return {name: _to_jsonable(getattr(value, name)) for name in value.__dataclass_fields__}
    if isinstance(value, Enum):
        return value.value
    return value


def _emit(result: Result[Any], data: Any = None) -> int:
    if result.is_success:
        payload: dict[str, Any] = {
            "success": True,
            "data": data if data is not None else _to_jsonable(result.value),
        }
    else:
        code = result.code.value if result.code else None
        payload = {"success": False, "error": {"code": code, "message": result.message}}
    print(json.dumps(payload, indent=2, default=str))
    return 0 if result.is_success else 1


# === Commands ===


async def _init_db(container: Container, args: argparse.Namespace) -> int:
    print(json.dumps({"success": True, "data": {"database": container.database.db_path}}))
    return 0


async def _seed_demo(container: Container, args: argparse.Namespace) -> int:
    from game_recommender.domain.catalog.entities import ItemFeatures
    from game_recommender.domain.catalog.repository import ItemFeatureRepository
    from game_recommender.domain.players.entities import Player, PlayerFeatures
    from game_recommender.domain.players.repository import (
        PlayerFeatureRepository,
        PlayerRepository,
    )
    from game_recommender.domain.strategies.base import StrategyKind
    from game_recommender.infrastructure.experiments.sqlite_experiment_service import (
        ExperimentDefinition,
        VariantAllocation,
    )

    rng = random.Random(args.seed)

    async with container.uow_factory() as uow:
        players = uow.get_repository(PlayerRepository)
        player_features = uow.get_repository(PlayerFeatureRepository)
        items = uow.get_repository(ItemFeatureRepository)

        for item_id in range(1, args.items + 1):
            await items.upsert(
                ItemFeatures(
                    item_id=item_id,
                    name=f"Game {item_id}",
                    category=rng.choice(DEMO_CATEGORIES),
                    provider=rng.choice(DEMO_PROVIDERS),
                    volatility=rng.choice(("low", "medium", "high")),
                    average_rtp=round(rng.uniform(0.92, 0.98), 4),
                    popularity_score=round(rng.random(), 4),
                    revenue_score=round(rng.random(), 4),
                    is_new=rng.random() < 0.15,
                )
            )

        existing = await players.count()
        for player_id in range(existing + 1, existing + args.players + 1):
            await players.add(Player(player_id=player_id, username=f"player{player_id}"))
            games = rng.choice((0, 2, 12, 40, 80, 150))
            await player_features.upsert(
                PlayerFeatures(
                    player_id=player_id,
                    total_games_played=games,
                    session_count=games // 3,
                    average_session_minutes=round(rng.uniform(5, 60), 1),
                    average_bet_size=round(rng.uniform(0.2, 20), 2),
                    vip_level=rng.randint(0, 5),
                    preferred_categories=tuple(rng.sample(DEMO_CATEGORIES, rng.randint(1, 4))),
                    preferred_providers=tuple(rng.sample(DEMO_PROVIDERS, 2)),
                    win_rate=round(rng.uniform(0.2, 0.6), 3),
                    is_new_player=games < 5,
                )
            )

        await uow.save_changes()

    await container.experiment_service.create_experiment(
        ExperimentDefinition(
            name=DEMO_EXPERIMENT,
            context=ContextTags.AB_TEST,
            variants=(
                VariantAllocation(name="control", algorithm=StrategyKind.HYBRID.value),
                VariantAllocation(name="bandit", algorithm=StrategyKind.BANDIT.value),
            ),
        )
    )

    print(json.dumps({"success": True, "data": {"players": args.players, "items": args.items}}))
    return 0


async def _recommend(container: Container, args: argparse.Namespace) -> int:
    from game_recommender.application.commands import RecordServedRecommendationsCommand
    from game_recommender.application.queries import GetRecommendationsQuery

    query = GetRecommendationsQuery(
        player_id=args.player,
        count=args.count,
        context=args.context,
        algorithm=args.algorithm,
        excluded_item_ids=frozenset(args.exclude or ()),
        session_id=args.session,
        use_cache=not args.no_cache,
    )
    result = await container.dispatcher.dispatch(query)
    if result.is_success and not args.no_record:
        recorded = await container.dispatcher.dispatch(
            RecordServedRecommendationsCommand(player_id=args.player, recommendations=result.value)
        )
        if recorded.is_failure:
            return _emit(recorded)
    return _emit(result)


async def _track(container: Container, args: argparse.Namespace) -> int:
    from game_recommender.application.commands import TrackInteractionCommand

    command = TrackInteractionCommand(
        recommendation_id=args.recommendation,
        player_id=args.player,
        interaction_type=args.type,
        value=args.value,
        session_id=args.session,
        platform=args.platform,
    )
    return _emit(await container.dispatcher.dispatch(command))


async def _history(container: Container, args: argparse.Namespace) -> int:
    from game_recommender.application.queries import GetRecommendationHistoryQuery

    query = GetRecommendationHistoryQuery(
        player_id=args.player,
        page=args.page,
        page_size=args.page_size,
        algorithm=args.algorithm,
        context=args.context,
        include_interactions=args.interactions,
    )
    result = await container.dispatcher.dispatch(query)
    if result.is_failure or not args.interactions:
        return _emit(result)

    # Interactions are excluded from the default serialization.
    page = result.value
    data = _to_jsonable(page)
    for item, rec in zip(data["items"], page.items, strict=True):
        item["interactions"] = _to_jsonable(rec.interactions)
    return _emit(result, data)


async def _ranking(container: Container, args: argparse.Namespace) -> int:
    from game_recommender.application.queries import GetStrategyRankingQuery

    query = GetStrategyRankingQuery(days=args.days, context=args.context)
    return _emit(await container.dispatcher.dispatch(query))


COMMANDS: dict[str, Callable[[Container, argparse.Namespace], Awaitable[int]]] = {
    "init-db": _init_db,
    "seed-demo": _seed_demo,
    "recommend": _recommend,
    "track": _track,
    "history": _history,
    "ranking": _ranking,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="game-recommender", description=__doc__)
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create or migrate the database schema")

    seed = sub.add_parser("seed-demo", help="Insert demo players, games and an experiment")
    seed.add_argument("--players", type=int, default=20)
    seed.add_argument("--items", type=int, default=60)
    seed.add_argument("--seed", type=int, default=7)

    recommend = sub.add_parser("recommend", help="Generate recommendations for a player")
    recommend.add_argument("--player", type=int, required=True)
    recommend.add_argument("--count", type=int, default=10)
    recommend.add_argument("--context", default=ContextTags.LOBBY)
    recommend.add_argument("--algorithm", default=None)
    recommend.add_argument("--exclude", type=int, nargs="*", default=None)
    recommend.add_argument("--session", default=None)
    recommend.add_argument("--no-cache", action="store_true")
    recommend.add_argument("--no-record", action="store_true", help="Do not persist the result")

    track = sub.add_parser("track", help="Record an interaction with a recommendation")
    track.add_argument("--recommendation", required=True)
    track.add_argument("--player", type=int, required=True)
    track.add_argument("--type", required=True, help="view, click, play, dismiss, like, dislike")
    track.add_argument("--value", type=float, default=0.0)
    track.add_argument("--session", default=None)
    track.add_argument("--platform", default=None)

    history = sub.add_parser("history", help="Show a player's recommendation history")
    history.add_argument("--player", type=int, required=True)
    history.add_argument("--page", type=int, default=1)
    history.add_argument("--page-size", type=int, default=20)
    history.add_argument("--algorithm", default=None)
    history.add_argument("--context", default=None)
    history.add_argument("--interactions", action="store_true")

    ranking = sub.add_parser("ranking", help="Rank strategies by recent performance")
    ranking.add_argument("--days", type=int, default=None)
    ranking.add_argument("--context", default=None)

    return parser


async def run(args: argparse.Namespace) -> int:
    from game_recommender.config.container import create_container
    from game_recommender.config.settings import get_settings

    container = create_container(get_settings())
    await container.initialize()
    try:
        return await COMMANDS[args.command](container, args)
    except ValueError as exc:
        # Invalid command or query arguments; pydantic errors included.
        return _emit(Result.from_exception(exc))
    finally:
        await container.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    from game_recommender.config.settings import get_settings
    from game_recommender.utils.logging import setup_logging

    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level)
    logger.debug(LogTemplates.APP_STARTING, settings.environment)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.exception(LogTemplates.APP_FATAL_ERROR, e)
        return 1
    finally:
        logger.debug(LogTemplates.APP_STOPPED)


def cli() -> None:
    """Console script entry point (used by pyproject.toml [project.scripts])."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
