from fastapi import APIRouter, Depends

from ..context import AppContext, get_context
from ..exceptions import TournamentNotFound
from ..models import Tournament
from ..schemas import LadderEntryOut, LadderSwapIn, LadderSwapOut
from ..services import get_ladder, swap_ladder_positions
from .auth import Identity, get_current_identity, require_admin

router = APIRouter(prefix="/tournaments", tags=["ladders"])


@router.get(
    "/{tournament_id}/events/{event_id}/ladder",
    response_model=list[LadderEntryOut],
)
async def read_ladder(
    tournament_id: str,
    event_id: str,
    context: AppContext = Depends(get_context),
    identity: Identity = Depends(get_current_identity),
):
    async with context.database.session() as session:
        if await session.get(Tournament, tournament_id) is None:
            raise TournamentNotFound(tournament_id)
        rows = await get_ladder(session, tournament_id, event_id)
    return [
        LadderEntryOut(
            inscriptionId=r.id,
            playerId=r.player_id,
            position=r.current_position,
            status=r.status,
        )
        for r in rows
    ]


@router.post(
    "/{tournament_id}/events/{event_id}/ladder/swap",
    response_model=LadderSwapOut,
)
async def swap_positions(
    tournament_id: str,
    event_id: str,
    body: LadderSwapIn,
    context: AppContext = Depends(get_context),
    admin: Identity = Depends(require_admin),
):
    # Manual correction: swaps unconditionally, unlike the post-settlement path.
    swap = await swap_ladder_positions(
        context,
        tournament_id=tournament_id,
        event_id=event_id,
        winner_id=body.winnerId,
        loser_id=body.loserId,
        require_climb=False,
    )
    return LadderSwapOut(
        message="Ladder positions updated.",
        positions=swap.as_positions(),
    )
