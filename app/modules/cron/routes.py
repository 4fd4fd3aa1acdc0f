from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from app.core.dependencies import get_sweeper, verify_cron_secret
from app.modules.automation.sweeper import SuspensionSweeper
from app.modules.cron.schemas import CronSweepResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


@router.api_route(
    "/process-suspensions",
    methods=["GET", "POST"],
    response_model=CronSweepResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_secret)],
)
async def process_suspensions(sweeper: SuspensionSweeper = Depends(get_sweeper)):
    """
    Restore every expired suspension across all groups.
    Safe to call alongside the in-process scheduler: overlapping sweeps are skipped.
    """
    result = await sweeper.run_once()
    if result.errors:
        logger.warning(f"Suspension sweep finished with {len(result.errors)} error(s)")
    return CronSweepResponse(
        success=not result.errors,
        processed_count=result.processed,
        restored_count=result.restored,
        errors=result.errors or None,
        skipped=result.skipped,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
