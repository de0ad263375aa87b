import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.deps import get_daily_service
from app.core.security import require_cron_secret, require_external_cron_token
from app.domain.schemas import CronResponse
from app.services.daily import DailyMessageService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _run(service: DailyMessageService) -> CronResponse:
    sent = await service.run_schedules()
    logger.info(f"Cron run finished, {sent} daily notification(s) sent")
    return CronResponse(sent=sent, timestamp=datetime.now(timezone.utc))


@router.get(
    "/cron/notifications",
    response_model=CronResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def cron_notifications(service: DailyMessageService = Depends(get_daily_service)):
    """Platform cron: Authorization: Bearer <CRON_SECRET>."""
    return await _run(service)


@router.get(
    "/external-cron/notifications",
    response_model=CronResponse,
    dependencies=[Depends(require_external_cron_token)],
)
async def external_cron_notifications(service: DailyMessageService = Depends(get_daily_service)):
    """Third-party pinger: ?token=<EXTERNAL_CRON_TOKEN> or x-cron-token header."""
    return await _run(service)
