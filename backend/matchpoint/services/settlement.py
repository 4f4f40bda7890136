"""Canonical match-result settlement.

Every entry point (the interactive action, the HTTP route) funnels into
:func:`settle_match`, which runs in two stages:

1. One store transaction that claims the match, bumps the win/loss counters
   and, for ranked tournaments, applies the ELO update. All or nothing.
2. For ladder challenges only, a best-effort follow-up that closes the
   challenge and swaps ladder positions. Its failures are reported as
   warnings and never roll back stage 1.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    AlreadySettled,
    DomainException,
    InvalidMatchResult,
    MatchNotFound,
    PlayerNotFound,
    TournamentNotFound,
)
from ..models import (
    MATCH_STATUS_COMPLETED,
    RETIREMENT_SUFFIX,
    Match,
    Player,
    Tournament,
)
from ..schemas import MatchResultIn, SettlementResult
from .ladder import LadderOutcome, apply_challenge_outcome
from .rating import DEFAULT_RATING, EloPolicy, settle_ratings

if TYPE_CHECKING:
    from ..context import AppContext

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Match result saved."
FAILURE_MESSAGE = "The match result could not be saved."


@dataclass
class SettlementOutcome:
    match_id: str
    winner_id: str
    loser_id: str
    score: str
    ranked: bool
    # player id -> (rating before, rating after); empty for unranked events
    ratings: dict[str, tuple[int, int]] = field(default_factory=dict)
    ladder: LadderOutcome | None = None

    @property
    def warnings(self) -> list[str]:
        return list(self.ladder.warnings) if self.ladder else []

    def to_result(self) -> SettlementResult:
        message = SUCCESS_MESSAGE
        if self.ladder and self.ladder.swapped:
            message = f"{SUCCESS_MESSAGE} Ladder positions updated."
        return SettlementResult(success=True, message=message, warnings=self.warnings)


@dataclass
class _CommittedResult:
    outcome: SettlementOutcome
    tournament_id: str
    challenge_id: str | None
    is_ladder: bool


def format_score(score: str | None, is_retirement: bool) -> str:
    score = (score or "").strip()
    if is_retirement and not score.endswith(RETIREMENT_SUFFIX.strip()):
        score = f"{score}{RETIREMENT_SUFFIX}".strip()
    return score


async def _apply_result(
    session: AsyncSession,
    match_id: str,
    winner_id: str,
    score: str,
    is_retirement: bool,
    policy: EloPolicy,
) -> _CommittedResult:
    match = (
        await session.execute(
            select(Match).where(Match.id == match_id).with_for_update()
        )
    ).scalar_one_or_none()
    if match is None:
        raise MatchNotFound(match_id)
    if match.status == MATCH_STATUS_COMPLETED:
        raise AlreadySettled(match_id)

    if match.player1_id == match.player2_id:
        raise InvalidMatchResult(f"match '{match_id}' has the same player on both sides")
    if winner_id not in (match.player1_id, match.player2_id):
        raise InvalidMatchResult(f"player '{winner_id}' did not play match '{match_id}'")
    loser_id = match.player2_id if winner_id == match.player1_id else match.player1_id

    # Claim before reading players: the claim is the first write, so on SQLite
    # it takes the database write lock and every later read is current.
    claimed = await session.execute(
        update(Match)
        .where(Match.id == match_id, Match.status != MATCH_STATUS_COMPLETED)
        .values(
            status=MATCH_STATUS_COMPLETED,
            winner_id=winner_id,
            score=score,
            is_retirement=is_retirement,
            completed_at=datetime.now(timezone.utc),
            rankings_processed=True,
        )
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        raise AlreadySettled(match_id)

    players = (
        await session.execute(
            select(Player)
            .where(Player.id.in_([winner_id, loser_id]))
            .order_by(Player.id)
            .with_for_update()
        )
    ).scalars().all()
    by_id = {p.id: p for p in players}
    winner = by_id.get(winner_id)
    if winner is None:
        raise PlayerNotFound(winner_id)
    loser = by_id.get(loser_id)
    if loser is None:
        raise PlayerNotFound(loser_id)

    tournament = await session.get(Tournament, match.tournament_id)
    if tournament is None:
        raise TournamentNotFound(match.tournament_id)

    outcome = SettlementOutcome(
        match_id=match_id,
        winner_id=winner_id,
        loser_id=loser_id,
        score=score,
        ranked=bool(tournament.is_ranked),
    )

    winner_values: dict = {"global_wins": Player.global_wins + 1}
    loser_values: dict = {"global_losses": Player.global_losses + 1}
    if tournament.is_ranked:
        winner_before = winner.rank_points if winner.rank_points is not None else DEFAULT_RATING
        loser_before = loser.rank_points if loser.rank_points is not None else DEFAULT_RATING
        winner_after, loser_after = settle_ratings(winner_before, loser_before, policy)
        winner_values["rank_points"] = winner_after
        loser_values["rank_points"] = loser_after
        outcome.ratings = {
            winner_id: (winner_before, winner_after),
            loser_id: (loser_before, loser_after),
        }

    await session.execute(
        update(Player)
        .where(Player.id == winner_id)
        .values(**winner_values)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        update(Player)
        .where(Player.id == loser_id)
        .values(**loser_values)
        .execution_options(synchronize_session=False)
    )

    return _CommittedResult(
        outcome=outcome,
        tournament_id=tournament.id,
        challenge_id=match.challenge_id,
        is_ladder=tournament.is_ladder,
    )


async def settle_match(
    context: AppContext,
    match_id: str,
    winner_id: str,
    score: str = "",
    *,
    is_retirement: bool = False,
) -> SettlementOutcome:
    """Record the result of ``match_id`` and propagate its consequences.

    Raises a :class:`~matchpoint.exceptions.DomainException` subclass when a
    precondition fails; nothing is written in that case. ``AlreadySettled`` is
    terminal: callers must re-read the match rather than retry. Ladder
    problems after the commit do not raise; they come back in
    ``SettlementOutcome.warnings``.
    """

    match_id = (match_id or "").strip()
    winner_id = (winner_id or "").strip()
    if not match_id or not winner_id:
        raise InvalidMatchResult("matchId and winnerId are required")

    settings = context.settings
    stored_score = format_score(score, is_retirement)

    async def work(session: AsyncSession) -> _CommittedResult:
        return await _apply_result(
            session, match_id, winner_id, stored_score, is_retirement, context.elo_policy
        )

    committed = await context.database.run_transaction(
        work,
        attempts=settings.settlement_max_attempts,
        backoff=settings.settlement_retry_backoff,
        label=f"settlement of match {match_id}",
    )
    outcome = committed.outcome
    logger.info(
        "Settled match %s: winner=%s loser=%s ranked=%s",
        match_id,
        outcome.winner_id,
        outcome.loser_id,
        outcome.ranked,
    )

    if committed.is_ladder and committed.challenge_id:
        outcome.ladder = await apply_challenge_outcome(
            context,
            tournament_id=committed.tournament_id,
            challenge_id=committed.challenge_id,
            winner_id=outcome.winner_id,
            loser_id=outcome.loser_id,
        )
    return outcome


async def register_match_result(
    context: AppContext, request: MatchResultIn
) -> SettlementResult:
    """Interactive-action adapter: always answers, never raises."""

    try:
        outcome = await settle_match(
            context,
            request.matchId,
            request.winnerId,
            request.score,
            is_retirement=request.isRetirement,
        )
    except DomainException as exc:
        logger.info("Match %s not settled: %s", request.matchId, exc.message)
        return SettlementResult(success=False, message=exc.message, code=exc.code)
    except Exception:  # callers render a uniform failure instead of a traceback
        logger.exception("Unexpected error settling match %s", request.matchId)
        return SettlementResult(
            success=False, message=FAILURE_MESSAGE, code="internal_server_error"
        )
    return outcome.to_result()
