"""Scheduled re-derivation of ELO for matches completed outside settlement."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_errors import WriteConflict
from ..models import MATCH_STATUS_COMPLETED, Match, Player, Tournament
from .rating import DEFAULT_RATING, LOSS, WIN, EloPolicy, elo_rating, round_rating

if TYPE_CHECKING:
    from ..context import AppContext

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    matches_processed: int = 0
    players_updated: int = 0
    skipped_match_ids: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.matches_processed:
            return "No new matches to process."
        return (
            f"Updated rankings for {self.players_updated} players "
            f"from {self.matches_processed} matches."
        )


async def _pending_matches(session: AsyncSession) -> list[Match]:
    ranked_tournaments = select(Tournament.id).where(Tournament.is_ranked.is_(True))
    return list(
        (
            await session.execute(
                select(Match)
                .where(
                    Match.tournament_id.in_(ranked_tournaments),
                    Match.status == MATCH_STATUS_COMPLETED,
                    Match.rankings_processed.is_(False),
                )
                .order_by(Match.completed_at.asc().nulls_first(), Match.id)
            )
        ).scalars().all()
    )


async def _reconcile(session: AsyncSession, policy: EloPolicy) -> ReconciliationReport:
    report = ReconciliationReport()
    matches = await _pending_matches(session)
    if not matches:
        return report

    player_ids = {pid for m in matches for pid in (m.player1_id, m.player2_id)}
    players = {
        p.id: p
        for p in (
            await session.execute(
                select(Player)
                .where(Player.id.in_(player_ids))
                .order_by(Player.id)
                .with_for_update()
            )
        ).scalars()
    }
    before = {
        pid: p.rank_points if p.rank_points is not None else DEFAULT_RATING
        for pid, p in players.items()
    }
    # Chained sequentially: each match sees the ratings left by earlier ones.
    running: dict[str, float] = {}

    for match in matches:
        winner_id = match.winner_id
        if not winner_id:
            report.skipped_match_ids.append(match.id)
            continue
        if match.player1_id == match.player2_id:
            logger.warning(
                "Skipping match %s: same player %s on both sides", match.id, match.player1_id
            )
            report.skipped_match_ids.append(match.id)
            continue
        if winner_id not in (match.player1_id, match.player2_id):
            logger.warning(
                "Skipping match %s: winner %s is not a participant", match.id, winner_id
            )
            report.skipped_match_ids.append(match.id)
            continue
        loser_id = match.player2_id if winner_id == match.player1_id else match.player1_id
        if winner_id not in players or loser_id not in players:
            logger.warning(
                "Skipping match %s: could not find one or more players", match.id
            )
            report.skipped_match_ids.append(match.id)
            continue

        winner_rating = running.get(winner_id, before[winner_id])
        loser_rating = running.get(loser_id, before[loser_id])
        running[winner_id] = elo_rating(winner_rating, loser_rating, WIN, policy)
        running[loser_id] = elo_rating(loser_rating, winner_rating, LOSS, policy)

        marked = await session.execute(
            update(Match)
            .where(Match.id == match.id, Match.rankings_processed.is_(False))
            .values(rankings_processed=True)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            raise WriteConflict(f"match {match.id} was processed concurrently")
        report.matches_processed += 1

    for player_id, rating in running.items():
        written = await session.execute(
            update(Player)
            .where(Player.id == player_id, Player.rank_points == before[player_id])
            .values(rank_points=round_rating(rating))
            .execution_options(synchronize_session=False)
        )
        if written.rowcount != 1:
            raise WriteConflict(f"rating of player {player_id} changed concurrently")
        report.players_updated += 1

    return report


async def reconcile_rankings(context: AppContext) -> ReconciliationReport:
    """Apply ELO for completed ranked matches not yet marked as processed.

    Matches settled through :func:`~matchpoint.services.settlement.settle_match`
    are marked in the same transaction that moved their ratings, so this is a
    no-op for them. The whole run commits atomically and restarts from scratch
    if another writer touches the same rows.
    """

    settings = context.settings
    policy = context.elo_policy

    async def work(session: AsyncSession) -> ReconciliationReport:
        return await _reconcile(session, policy)

    logger.info("Starting ranking reconciliation")
    report = await context.database.run_transaction(
        work,
        attempts=settings.settlement_max_attempts,
        backoff=settings.settlement_retry_backoff,
        label="ranking reconciliation",
    )
    logger.info(
        "Ranking reconciliation finished: %d matches, %d players, %d skipped",
        report.matches_processed,
        report.players_updated,
        len(report.skipped_match_ids),
    )
    return report
