import logging
import secrets

from fastapi import APIRouter, Depends, Header, Query

from ..context import AppContext, get_context
from ..exceptions import Unauthorized
from ..schemas import ReconciliationOut
from ..services import reconcile_rankings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rankings", tags=["rankings"])


def _require_job_secret(
    x_function_secret: str | None = Header(None, alias="X-Function-Secret"),
    key: str | None = Query(None),
    context: AppContext = Depends(get_context),
) -> None:
    expected = context.settings.rankings_job_secret
    provided = x_function_secret or key
    if not expected:
        logger.warning("RANKINGS_JOB_SECRET is not configured; rejecting reconciliation request")
        raise Unauthorized("reconciliation is not enabled", code="job_secret_unset")
    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Unauthorized attempt to run ranking reconciliation")
        raise Unauthorized("invalid job secret", code="job_secret_invalid")


@router.api_route(
    "/reconcile",
    methods=["GET", "POST"],
    response_model=ReconciliationOut,
    dependencies=[Depends(_require_job_secret)],
)
async def run_reconciliation(context: AppContext = Depends(get_context)):
    report = await reconcile_rankings(context)
    return ReconciliationOut(
        message=report.message,
        matchesProcessed=report.matches_processed,
        playersUpdated=report.players_updated,
        skippedMatchIds=report.skipped_match_ids,
    )
