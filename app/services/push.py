import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from pywebpush import webpush, WebPushException

from app.core.errors import BadRequestError
from app.domain.schemas import NotificationCategory, PushPayload
from app.repositories.notification_log import NotificationLogRepository
from app.repositories.preferences import NotificationPreferenceRepository
from app.repositories.push_subscription import PushSubscriptionRepository
from app.services.rate_limit import NotificationRateLimiter

logger = logging.getLogger(__name__)

GONE_STATUSES = (404, 410)


@dataclass
class SendResult:
    sent: int = 0
    failed: int = 0


def in_silent_hours(start: int | None, end: int | None, hour: int) -> bool:
    """Whether hour falls in [start, end), wrapping past midnight when start > end."""
    if start is None or end is None or start == end:
        return False
    if start > end:
        return hour >= start or hour < end
    return start <= hour < end


class NotificationDispatcher:
    """Web Push delivery to every active subscription of a user.

    send() never raises: preference or rate-limit rejections and delivery
    failures all come back as counts.
    """

    def __init__(
        self,
        subscriptions: PushSubscriptionRepository,
        preferences: NotificationPreferenceRepository,
        logs: NotificationLogRepository,
        rate_limiter: NotificationRateLimiter,
        vapid_private_key: str,
        vapid_subject: str,
        timezone: str = "Asia/Ho_Chi_Minh",
        now: Callable[[], datetime] | None = None,
    ):
        self.subscriptions = subscriptions
        self.preferences = preferences
        self.logs = logs
        self.rate_limiter = rate_limiter
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.tz = ZoneInfo(timezone)
        self._now = now or (lambda: datetime.now(self.tz))

    # ===== Subscriptions =====

    def subscribe(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: str | None = None,
    ) -> None:
        self.subscriptions.upsert(user_id, endpoint, p256dh, auth, user_agent)
        logger.info(f"Push subscription saved for {user_id}: {endpoint[:50]}...")

    def unsubscribe(self, user_id: str, endpoint: str) -> None:
        self.subscriptions.deactivate(user_id, endpoint)

    # ===== Gates =====

    def is_allowed(self, user_id: str, category: NotificationCategory) -> bool:
        """Check the user's category switches and silent hours (no row = allow)."""
        try:
            prefs = self.preferences.get(user_id)
        except Exception as e:
            logger.warning(f"Could not load notification preferences for {user_id}: {e}")
            return True
        if not prefs:
            return True

        flag = category.preference_flag
        if flag and prefs.get(flag) is False:
            return False

        hour = self._now().hour
        if in_silent_hours(prefs.get("silent_hours_start"), prefs.get("silent_hours_end"), hour):
            return False
        return True

    # ===== Delivery =====

    async def send(self, user_id: str, payload: PushPayload) -> SendResult:
        category = payload.category
        try:
            if not self.is_allowed(user_id, category):
                logger.info(f"Push '{payload.tag}' to {user_id} blocked by preferences")
                return SendResult()

            if not self.rate_limiter.try_acquire(user_id, category):
                logger.info(f"Rate limit hit for user {user_id}, notification type: {payload.tag}")
                return SendResult()

            result = await self._deliver_all(user_id, payload)
        except Exception as e:
            logger.exception(f"Error sending notification to {user_id}: {e}")
            self.rate_limiter.release(user_id, category)
            return SendResult()

        if result.sent:
            self.rate_limiter.commit(user_id, category)
            try:
                self.logs.record(user_id, payload.tag)
            except Exception as e:
                logger.warning(f"Error logging notification: {e}")
        else:
            self.rate_limiter.release(user_id, category)
        return result

    async def _deliver_all(self, user_id: str, payload: PushPayload) -> SendResult:
        subscriptions = self.subscriptions.list_active(user_id)
        if not subscriptions:
            return SendResult()

        data = json.dumps(payload.to_envelope(), ensure_ascii=False)
        outcomes = await asyncio.gather(
            *(self._deliver(user_id, sub, data) for sub in subscriptions),
            return_exceptions=True,
        )
        sent = sum(1 for outcome in outcomes if outcome is True)
        return SendResult(sent=sent, failed=len(outcomes) - sent)

    async def _deliver(self, user_id: str, subscription: dict, data: str) -> bool:
        endpoint = subscription["endpoint"]
        subscription_info = {
            "endpoint": endpoint,
            "keys": {
                "p256dh": subscription["p256dh"],
                "auth": subscription["auth"],
            },
        }
        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription_info,
                data=data,
                vapid_private_key=self.vapid_private_key,
                # pywebpush fills in aud/exp, so each call gets its own dict
                vapid_claims={"sub": self.vapid_subject},
            )
            return True
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in GONE_STATUSES:
                logger.warning(f"Push subscription gone ({status}), deactivating: {endpoint[:50]}...")
                try:
                    self.subscriptions.deactivate(user_id, endpoint)
                except Exception as db_error:
                    logger.warning(f"Could not deactivate subscription: {db_error}")
            else:
                logger.warning(f"WebPush error ({status}) for {endpoint[:50]}...: {e}")
            return False
        except Exception as e:
            logger.warning(f"Unexpected error sending push to {endpoint[:50]}...: {e}")
            return False


def _tag(category: NotificationCategory) -> str:
    return f"{category.value}-{int(time.time() * 1000)}"


def build_payload(type: str, data: dict | None = None) -> PushPayload:
    """Canned payloads for the /push/send route."""
    data = data or {}

    if type == "memory-from-admin":
        return PushPayload(
            title="✨ Cậu ấy đã nhớ đến bạn!",
            body="Cậu ấy vừa nhấn nút Nhớ. Hãy mở app để xem!",
            tag=_tag(NotificationCategory.MEMORY),
            data={"url": "/client", "type": "memory"},
        )
    if type == "memory-from-client":
        return PushPayload(
            title="✨ Cậu ấy đã nhấn Nhớ!",
            body="Cậu ấy vừa nhấn nút Nhớ cho bạn.",
            tag=_tag(NotificationCategory.MEMORY),
            data={"url": "/admin", "type": "memory"},
        )
    if type == "reaction":
        emoji = data.get("emoji") or "😊"
        return PushPayload(
            title=f"{emoji} Cậu ấy đã gửi emoji",
            body=f"{emoji} - Cậu ấy vừa gửi emoji phản hồi.",
            tag=_tag(NotificationCategory.REACTION),
            data={"url": "/admin", "type": "reaction", "emoji": emoji},
        )
    if type == "message":
        content = data.get("content")
        if content:
            preview = content[:50] + "..." if len(content) > 50 else content
        else:
            preview = "Có tin nhắn mới"
        return PushPayload(
            title="💬 Có tin nhắn mới",
            body=preview,
            tag=_tag(NotificationCategory.MESSAGE),
            data={"url": "/admin", "type": "message"},
        )
    raise BadRequestError("Invalid notification type")
