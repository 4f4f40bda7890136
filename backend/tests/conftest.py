import os
import sys
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Every request in the suite comes from the same TestClient address.
os.environ.setdefault("DISABLE_RATE_LIMITS", "true")

from matchpoint.config import Settings  # noqa: E402
from matchpoint.context import AppContext  # noqa: E402
from matchpoint.db import Database  # noqa: E402
from matchpoint.models import (  # noqa: E402
    CHALLENGE_STATUS_ACCEPTED,
    MATCH_STATUS_COMPLETED,
    MATCH_STATUS_PENDING,
    ROLE_ADMIN,
    ROLE_PLAYER,
    TOURNAMENT_TYPE_BRACKET,
    TOURNAMENT_TYPE_LADDER,
    Challenge,
    Inscription,
    Match,
    Player,
    Tournament,
)
from matchpoint.routers.auth import create_access_token  # noqa: E402

# A sufficiently long JWT secret for tests
TEST_JWT_SECRET = "x" * 32
TEST_JOB_SECRET = "scheduler-shared-secret"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """File-backed SQLite so concurrent sessions get their own connections."""

    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'matchpoint.db'}",
        jwt_secret=TEST_JWT_SECRET,
        rankings_job_secret=TEST_JOB_SECRET,
        settlement_retry_backoff=0.01,
    )


@pytest.fixture
def context(settings):
    ctx = AppContext(settings=settings, database=Database(settings.database_url))
    asyncio.run(ctx.database.create_all())
    yield ctx
    asyncio.run(ctx.dispose())


@pytest.fixture
def seed(context):
    async def _seed(*objects):
        async with context.database.session() as session:
            session.add_all(objects)
            await session.commit()

    return _seed


@pytest.fixture
def fetch(context):
    async def _fetch(model, ident):
        async with context.database.session() as session:
            return await session.get(model, ident)

    return _fetch


@pytest.fixture
def statements(context):
    """Every SQL statement sent to the store while the test runs."""

    seen: list[str] = []

    def _record(conn, cursor, statement, parameters, exec_context, executemany):
        seen.append(statement)

    sync_engine = context.database.engine.sync_engine
    event.listen(sync_engine, "before_cursor_execute", _record)
    yield seen
    event.remove(sync_engine, "before_cursor_execute", _record)


@pytest.fixture
def admin_token():
    return create_access_token(TEST_JWT_SECRET, "admin-1", ROLE_ADMIN)


@pytest.fixture
def player_token():
    return create_access_token(TEST_JWT_SECRET, "p1", ROLE_PLAYER)


@pytest.fixture
def client(context):
    from fastapi.testclient import TestClient
    from matchpoint.main import create_app

    app = create_app(context=context)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def bracket_rows(
    *,
    ranked: bool = True,
    ratings: tuple[int, int] = (1000, 1000),
    match_id: str = "m1",
    tournament_id: str = "t1",
) -> list:
    """Two players, a bracket tournament and one pending match between them."""

    return [
        Player(id="p1", display_name="Ana", rank_points=ratings[0]),
        Player(id="p2", display_name="Bea", rank_points=ratings[1]),
        Tournament(
            id=tournament_id,
            name="Spring Open",
            tournament_type=TOURNAMENT_TYPE_BRACKET,
            is_ranked=ranked,
        ),
        Match(
            id=match_id,
            tournament_id=tournament_id,
            player1_id="p1",
            player2_id="p2",
            status=MATCH_STATUS_PENDING,
        ),
    ]


def ladder_rows(
    *,
    tournament_type: str = TOURNAMENT_TYPE_LADDER,
    inscribed: tuple[str, ...] = ("p1", "p2", "p3"),
    ranked: bool = False,
) -> list:
    """Ladder event e1: p3 at 1, p2 at 2, p1 at 3; p1 has challenged p2."""

    positions = {"p3": 1, "p2": 2, "p1": 3}
    rows = [
        Player(id="p1", display_name="Ana"),
        Player(id="p2", display_name="Bea"),
        Player(id="p3", display_name="Cris"),
        Tournament(
            id="t1",
            name="Club Ladder",
            tournament_type=tournament_type,
            is_ranked=ranked,
        ),
        Challenge(
            id="c1",
            tournament_id="t1",
            event_id="e1",
            challenger_id="p1",
            challenged_id="p2",
            status=CHALLENGE_STATUS_ACCEPTED,
        ),
        Match(
            id="m1",
            tournament_id="t1",
            player1_id="p1",
            player2_id="p2",
            challenge_id="c1",
            status=MATCH_STATUS_PENDING,
        ),
    ]
    for pid in inscribed:
        rows.append(
            Inscription(
                id=f"i-{pid}",
                tournament_id="t1",
                event_id="e1",
                player_id=pid,
                initial_position=positions[pid],
                current_position=positions[pid],
            )
        )
    return rows


HISTORY_START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def completed_match(match_id, p1, p2, winner, *, minutes, tournament_id="t1"):
    """A match completed outside settlement, so its ratings are still unapplied."""

    return Match(
        id=match_id,
        tournament_id=tournament_id,
        player1_id=p1,
        player2_id=p2,
        status=MATCH_STATUS_COMPLETED,
        winner_id=winner,
        score="6-4 6-4",
        completed_at=HISTORY_START + timedelta(minutes=minutes),
        rankings_processed=False,
    )


def imported_history_rows(*, ranked: bool = True) -> list:
    # Inserted m2 first; by completion time p1 beat p2 before p3.
    return [
        Player(id="p1", display_name="Ana"),
        Player(id="p2", display_name="Bea"),
        Player(id="p3", display_name="Cris"),
        Tournament(
            id="t1",
            name="Winter League",
            tournament_type=TOURNAMENT_TYPE_BRACKET,
            is_ranked=ranked,
        ),
        completed_match("m2", "p1", "p3", "p1", minutes=30),
        completed_match("m1", "p1", "p2", "p1", minutes=0),
    ]
