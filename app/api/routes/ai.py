from fastapi import APIRouter, Depends

from app.api.deps import get_daily_service, get_db, get_message_generator
from app.domain.schemas import (
    DailyNotificationResponse,
    GenerateMessageRequest,
    GenerateMessageResponse,
    QuickRepliesRequest,
    QuickRepliesResponse,
)
from app.repositories.interaction import MessageRepository
from app.services.ai import MessageGenerator
from app.services.daily import DailyMessageService

router = APIRouter()


@router.post("/generate-message", response_model=GenerateMessageResponse)
async def generate_message(
    data: GenerateMessageRequest,
    service: DailyMessageService = Depends(get_daily_service),
):
    """Today's message for the user; generated on the first call of the day."""
    notification = await service.get_or_create_today(data.user_id)
    return GenerateMessageResponse(notification=DailyNotificationResponse(**notification))


@router.post("/quick-replies", response_model=QuickRepliesResponse)
async def quick_replies(
    data: QuickRepliesRequest,
    generator: MessageGenerator = Depends(get_message_generator),
    db=Depends(get_db),
):
    context = {}
    if data.user_id:
        context["messages"] = MessageRepository(db).recent(data.user_id, 5)
    replies = await generator.generate_quick_replies(data.message, context)
    return QuickRepliesResponse(replies=replies)
