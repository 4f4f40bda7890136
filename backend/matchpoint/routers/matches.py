from fastapi import APIRouter, Depends, Request

from ..context import AppContext, get_context
from ..exceptions import MatchNotFound
from ..models import Match
from ..schemas import MatchOut, MatchResultIn, SettlementResult
from ..services import settle_match
from .auth import Identity, get_current_identity, limiter, require_admin, settlement_rate_limit

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


@router.post("/result", response_model=SettlementResult)
@limiter.limit(settlement_rate_limit)
async def record_match_result(
    request: Request,
    body: MatchResultIn,
    context: AppContext = Depends(get_context),
    admin: Identity = Depends(require_admin),
):
    outcome = await settle_match(
        context,
        body.matchId,
        body.winnerId,
        body.score,
        is_retirement=body.isRetirement,
    )
    return outcome.to_result()


@router.get("/{match_id}", response_model=MatchOut)
async def get_match(
    match_id: str,
    context: AppContext = Depends(get_context),
    identity: Identity = Depends(get_current_identity),
):
    async with context.database.session() as session:
        match = await session.get(Match, match_id)
    if match is None:
        raise MatchNotFound(match_id)
    return MatchOut(
        id=match.id,
        tournamentId=match.tournament_id,
        player1Id=match.player1_id,
        player2Id=match.player2_id,
        challengeId=match.challenge_id,
        status=match.status,
        winnerId=match.winner_id,
        score=match.score,
        isRetirement=bool(match.is_retirement),
        completedAt=match.completed_at,
        rankingsProcessed=bool(match.rankings_processed),
    )
