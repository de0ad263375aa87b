from fastapi import APIRouter, Depends

from app.api.deps import get_alert_relay
from app.core.errors import BadRequestError
from app.domain.schemas import AlertType, TelegramAlertRequest
from app.services.telegram import AlertRelay

router = APIRouter()


@router.post("/alert")
async def send_alert(
    data: TelegramAlertRequest,
    alerts: AlertRelay = Depends(get_alert_relay),
):
    """Relay a client event to the admin's Telegram chat (in the background)."""
    if data.type == AlertType.REACTION:
        if not data.emoji:
            raise BadRequestError("Thiếu emoji")
        alerts.reaction(data.emoji, data.timestamp)
    elif data.type == AlertType.MESSAGE:
        if not data.content:
            raise BadRequestError("Thiếu nội dung tin nhắn")
        alerts.message(data.content, data.timestamp)
    else:
        alerts.memory(data.timestamp)
    return {"success": True}
