from fastapi import APIRouter, Depends

from app.api.deps import get_notification_dispatcher
from app.domain.schemas import (
    PushSendRequest,
    PushSendResponse,
    SubscribeRequest,
    UnsubscribeRequest,
)
from app.services.push import NotificationDispatcher, build_payload

router = APIRouter()


@router.post("/subscribe")
def subscribe(
    data: SubscribeRequest,
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    notifier.subscribe(
        user_id=data.user_id,
        endpoint=data.subscription.endpoint,
        p256dh=data.subscription.keys.p256dh,
        auth=data.subscription.keys.auth,
        user_agent=data.user_agent,
    )
    return {"success": True}


@router.post("/unsubscribe")
def unsubscribe(
    data: UnsubscribeRequest,
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    notifier.unsubscribe(data.user_id, data.endpoint)
    return {"success": True}


@router.post("/send", response_model=PushSendResponse)
async def send(
    data: PushSendRequest,
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Send one of the canned notifications to every device of a user."""
    payload = build_payload(data.type, data.data)
    result = await notifier.send(data.user_id, payload)
    return PushSendResponse(sent=result.sent, failed=result.failed)
