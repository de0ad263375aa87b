from fastapi import APIRouter, Depends

from app.api.deps import get_daily_service
from app.domain.schemas import ScheduleCreate, ScheduleResponse, ScheduleUpdate
from app.services.daily import DailyMessageService

router = APIRouter()


@router.get("", response_model=list[ScheduleResponse])
def list_schedules(service: DailyMessageService = Depends(get_daily_service)):
    return [ScheduleResponse(**s) for s in service.list_schedules()]


@router.post("", response_model=ScheduleResponse, status_code=201)
def create_schedule(
    data: ScheduleCreate,
    service: DailyMessageService = Depends(get_daily_service),
):
    return ScheduleResponse(**service.create_schedule(data.time, data.is_active))


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    schedule_id: str,
    data: ScheduleUpdate,
    service: DailyMessageService = Depends(get_daily_service),
):
    """Change the time or toggle a schedule on/off."""
    return ScheduleResponse(**service.update_schedule(schedule_id, **data.model_dump(exclude_unset=True)))


@router.delete("/{schedule_id}")
def delete_schedule(
    schedule_id: str,
    service: DailyMessageService = Depends(get_daily_service),
):
    service.delete_schedule(schedule_id)
    return {"success": True}
