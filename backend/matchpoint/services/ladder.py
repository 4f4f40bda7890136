"""Ladder positions and challenge bookkeeping.

Inscriptions are a separate aggregate from match results: once a result is
committed, updates here run as a single best-effort attempt and are never
allowed to undo it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    ChallengeNotFound,
    DomainException,
    InconsistentState,
    InscriptionNotFound,
)
from ..models import CHALLENGE_STATUS_PLAYED, Challenge, Inscription

if TYPE_CHECKING:
    from ..context import AppContext

logger = logging.getLogger(__name__)


@dataclass
class LadderSwap:
    winner_id: str
    loser_id: str
    winner_position: int
    loser_position: int

    def as_positions(self) -> dict[str, int]:
        return {self.winner_id: self.winner_position, self.loser_id: self.loser_position}


@dataclass
class LadderOutcome:
    challenge_id: str
    challenge_marked: bool = False
    swap: LadderSwap | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def swapped(self) -> bool:
        return self.swap is not None


async def get_ladder(
    session: AsyncSession, tournament_id: str, event_id: str
) -> Sequence[Inscription]:
    return (
        await session.execute(
            select(Inscription)
            .where(
                Inscription.tournament_id == tournament_id,
                Inscription.event_id == event_id,
            )
            .order_by(Inscription.current_position, Inscription.id)
        )
    ).scalars().all()


async def _find_inscription(
    session: AsyncSession, tournament_id: str, event_id: str, player_id: str
) -> Inscription:
    inscription = (
        await session.execute(
            select(Inscription)
            .where(
                Inscription.tournament_id == tournament_id,
                Inscription.event_id == event_id,
                Inscription.player_id == player_id,
            )
            .with_for_update()
        )
    ).scalars().first()
    if inscription is None:
        raise InscriptionNotFound(player_id, event_id)
    return inscription


async def swap_ladder_positions(
    context: AppContext,
    *,
    tournament_id: str,
    event_id: str,
    winner_id: str,
    loser_id: str,
    require_climb: bool = True,
) -> LadderSwap | None:
    """Exchange the ladder positions of ``winner_id`` and ``loser_id``.

    Both inscriptions are written in one transaction, so either both
    positions change or neither does. With ``require_climb`` the swap is
    skipped (``None`` is returned) when the winner already holds the better,
    numerically lower, position. Raises :class:`InscriptionNotFound` if either
    player is not inscribed in the event.
    """

    async with context.database.session() as session:
        async with session.begin():
            winner_entry = await _find_inscription(session, tournament_id, event_id, winner_id)
            loser_entry = await _find_inscription(session, tournament_id, event_id, loser_id)

            winner_position = winner_entry.current_position
            loser_position = loser_entry.current_position
            if require_climb and winner_position <= loser_position:
                logger.info(
                    "Player %s already ranked above %s in event %s; ladder unchanged",
                    winner_id,
                    loser_id,
                    event_id,
                )
                return None

            logger.info(
                "Swapping ladder positions in event %s: %s (%s) <-> %s (%s)",
                event_id,
                winner_id,
                winner_position,
                loser_id,
                loser_position,
            )
            winner_entry.current_position = loser_position
            loser_entry.current_position = winner_position

    return LadderSwap(
        winner_id=winner_id,
        loser_id=loser_id,
        winner_position=loser_position,
        loser_position=winner_position,
    )


async def _mark_challenge_played(
    context: AppContext, tournament_id: str, challenge_id: str
) -> Challenge:
    async with context.database.session() as session:
        async with session.begin():
            challenge = await session.get(Challenge, challenge_id)
            if challenge is None:
                raise ChallengeNotFound(challenge_id)
            if challenge.tournament_id != tournament_id:
                raise InconsistentState(
                    f"challenge '{challenge_id}' belongs to tournament "
                    f"'{challenge.tournament_id}', not '{tournament_id}'"
                )
            challenge.status = CHALLENGE_STATUS_PLAYED
    return challenge


async def apply_challenge_outcome(
    context: AppContext,
    *,
    tournament_id: str,
    challenge_id: str,
    winner_id: str,
    loser_id: str,
) -> LadderOutcome:
    """Close the challenge behind a settled match and move the ladder.

    Never raises: failures are logged and returned in ``warnings``.
    """

    outcome = LadderOutcome(challenge_id=challenge_id)
    try:
        challenge = await _mark_challenge_played(context, tournament_id, challenge_id)
        outcome.challenge_marked = True

        if challenge.challenger_id != winner_id:
            logger.info(
                "Challenged player %s won challenge %s; no position change",
                winner_id,
                challenge_id,
            )
            return outcome
        if challenge.challenged_id != loser_id:
            raise InconsistentState(
                f"challenge '{challenge_id}' was issued to '{challenge.challenged_id}', "
                f"but the match was lost by '{loser_id}'"
            )

        outcome.swap = await swap_ladder_positions(
            context,
            tournament_id=tournament_id,
            event_id=challenge.event_id,
            winner_id=winner_id,
            loser_id=loser_id,
        )
    except DomainException as exc:
        warning = InconsistentState(
            f"result saved but ladder not updated: {exc.message}"
        )
        logger.error(
            "Ladder update for challenge %s failed after settlement: %s",
            challenge_id,
            exc.message,
        )
        outcome.warnings.append(warning.message)
    except SQLAlchemyError:
        logger.exception(
            "Store error during ladder update for challenge %s", challenge_id
        )
        outcome.warnings.append(
            f"result saved but ladder not updated for challenge '{challenge_id}'"
        )
    return outcome
