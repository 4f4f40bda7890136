import asyncio
import os

import pytest

from conftest import TEST_JWT_SECRET, bracket_rows
from matchpoint.config import Settings
from matchpoint.context import AppContext
from matchpoint.db import Base, Database
from matchpoint.exceptions import AlreadySettled
from matchpoint.models import (
    MATCH_STATUS_PENDING,
    TOURNAMENT_TYPE_BRACKET,
    Match,
    Player,
    Tournament,
)
from matchpoint.services import settle_match


def _three_players_two_matches() -> list:
    """p1 faces p2 in m1 and p3 in m2, both in ranked tournament t1."""

    return [
        Player(id="p1", display_name="Ana"),
        Player(id="p2", display_name="Bea"),
        Player(id="p3", display_name="Cris"),
        Tournament(
            id="t1",
            name="Autumn Cup",
            tournament_type=TOURNAMENT_TYPE_BRACKET,
            is_ranked=True,
        ),
        Match(id="m1", tournament_id="t1", player1_id="p1", player2_id="p2",
              status=MATCH_STATUS_PENDING),
        Match(id="m2", tournament_id="t1", player1_id="p1", player2_id="p3",
              status=MATCH_STATUS_PENDING),
    ]


async def _settle_many(context, *calls):
    return await asyncio.gather(
        *(settle_match(context, match_id, winner_id) for match_id, winner_id in calls),
        return_exceptions=True,
    )


@pytest.mark.anyio
async def test_disjoint_matches_settle_independently(context, seed, fetch):
    rows = bracket_rows(match_id="m1") + [
        Player(id="p3", display_name="Cris"),
        Player(id="p4", display_name="Dani"),
        Match(id="m2", tournament_id="t1", player1_id="p3", player2_id="p4",
              status=MATCH_STATUS_PENDING),
    ]
    await seed(*rows)

    results = await _settle_many(context, ("m1", "p1"), ("m2", "p4"))

    assert not [r for r in results if isinstance(r, Exception)]
    ratings = {pid: (await fetch(Player, pid)).rank_points for pid in ("p1", "p2", "p3", "p4")}
    assert ratings == {"p1": 1016, "p2": 984, "p3": 984, "p4": 1016}


@pytest.mark.anyio
async def test_same_match_settles_exactly_once(context, seed, fetch):
    await seed(*bracket_rows())

    results = await _settle_many(context, ("m1", "p1"), ("m1", "p2"))

    failures = [r for r in results if isinstance(r, Exception)]
    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], AlreadySettled)

    winner_id = successes[0].winner_id
    loser_id = successes[0].loser_id
    match = await fetch(Match, "m1")
    assert match.winner_id == winner_id
    winner = await fetch(Player, winner_id)
    loser = await fetch(Player, loser_id)
    assert (winner.global_wins, winner.global_losses, winner.rank_points) == (1, 0, 1016)
    assert (loser.global_wins, loser.global_losses, loser.rank_points) == (0, 1, 984)


@pytest.mark.anyio
async def test_shared_player_sees_both_updates(context, seed, fetch):
    await seed(*_three_players_two_matches())

    results = await _settle_many(context, ("m1", "p1"), ("m2", "p1"))

    assert not [r for r in results if isinstance(r, Exception)]
    p1 = await fetch(Player, "p1")
    assert p1.global_wins == 2
    # Serialized in either order: 1000 -> 1016 -> 1031.
    assert p1.rank_points == 1031
    losers = {(await fetch(Player, pid)).rank_points for pid in ("p2", "p3")}
    assert losers == {984, 985}


POSTGRES_URL = os.getenv("MATCHPOINT_TEST_POSTGRES_URL")


@pytest.mark.postgres
@pytest.mark.skipif(not POSTGRES_URL, reason="MATCHPOINT_TEST_POSTGRES_URL not set")
def test_postgres_shared_player_settlement():
    async def run():
        settings = Settings(database_url=POSTGRES_URL, jwt_secret=TEST_JWT_SECRET)
        ctx = AppContext(settings=settings, database=Database(settings.database_url))
        async with ctx.database.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        try:
            async with ctx.database.session() as session:
                session.add_all(_three_players_two_matches())
                await session.commit()

            results = await _settle_many(ctx, ("m1", "p1"), ("m2", "p1"), ("m1", "p1"))
            assert sum(isinstance(r, AlreadySettled) for r in results) == 1

            async with ctx.database.session() as session:
                p1 = await session.get(Player, "p1")
                assert p1.global_wins == 2
                assert p1.rank_points == 1031
        finally:
            await ctx.dispose()

    asyncio.run(run())
