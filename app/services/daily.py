import logging
from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from app.core.errors import BadRequestError, NotFoundError
from app.core.timeutils import day_bounds
from app.domain.schemas import NotificationCategory, PushPayload, Role
from app.repositories.daily_notification import DailyNotificationRepository
from app.repositories.interaction import MemoryRepository, MessageRepository, ReactionRepository
from app.repositories.notification_log import NotificationLogRepository
from app.repositories.preferences import UserPreferenceRepository
from app.repositories.schedule import NotificationScheduleRepository
from app.repositories.user import UserRepository
from app.services.ai import MessageGenerator
from app.services.push import NotificationDispatcher, SendResult

logger = logging.getLogger(__name__)

DAILY_TITLE = "✨ Lời nhắn từ tớ"
BODY_PREVIEW_LENGTH = 100
SCHEDULE_WINDOW = timedelta(minutes=5)


def is_schedule_due(schedule_time: str, local_now: datetime, window: timedelta = SCHEDULE_WINDOW) -> bool:
    """Whether local_now falls 0-5 minutes after the schedule's HH:MM (same day)."""
    try:
        hour, minute = (int(part) for part in schedule_time.split(":"))
    except ValueError:
        logger.warning(f"Ignoring malformed schedule time: {schedule_time!r}")
        return False
    scheduled = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    delta = local_now - scheduled
    return timedelta(0) <= delta <= window


def daily_tag(local_now: datetime) -> str:
    return f"{NotificationCategory.DAILY.value}-{local_now.date().isoformat()}"


class DailyMessageService:
    """The once-a-day AI message: generation, storage, push and schedules."""

    def __init__(
        self,
        users: UserRepository,
        daily: DailyNotificationRepository,
        reactions: ReactionRepository,
        messages: MessageRepository,
        memories: MemoryRepository,
        preferences: UserPreferenceRepository,
        schedules: NotificationScheduleRepository,
        logs: NotificationLogRepository,
        generator: MessageGenerator,
        notifier: NotificationDispatcher,
        timezone: str = "Asia/Ho_Chi_Minh",
        now: Callable[[], datetime] | None = None,
    ):
        self.users = users
        self.daily = daily
        self.reactions = reactions
        self.messages = messages
        self.memories = memories
        self.preferences = preferences
        self.schedules = schedules
        self.logs = logs
        self.generator = generator
        self.notifier = notifier
        self.tz = ZoneInfo(timezone)
        self._now = now or (lambda: datetime.now(self.tz))

    def today(self, user_id: str) -> dict | None:
        start, end = day_bounds(self._now(), self.tz)
        return self.daily.get_between(user_id, start, end)

    async def get_or_create_today(self, user_id: str) -> dict:
        """Today's message for the user, generating and storing it on first call."""
        existing = self.today(user_id)
        if existing:
            return existing

        prefs = self.preferences.get(user_id) or {}
        generated = await self.generator.generate_daily_message(
            reactions=self.reactions.recent(user_id, 20),
            messages=self.messages.recent(user_id, 20),
            memories=self.memories.recent(user_id, 10),
            city=prefs.get("city"),
            horoscope=prefs.get("horoscope"),
        )

        notification = self.daily.create(user_id, generated.content, generated.emotion_level)
        if not notification:
            raise RuntimeError("Failed to save daily notification")
        logger.info(f"Daily message created for {user_id} (emotion={generated.emotion_level})")
        return notification

    def build_payload(self, notification: dict) -> PushPayload:
        content = notification.get("content") or ""
        if len(content) > BODY_PREVIEW_LENGTH:
            content = content[:BODY_PREVIEW_LENGTH] + "..."
        return PushPayload(
            title=DAILY_TITLE,
            body=content,
            tag=daily_tag(self._now().astimezone(self.tz)),
            data={"url": "/client", "type": "daily", "notificationId": notification.get("id")},
            require_interaction=False,
        )

    async def send_daily_notification(self, user_id: str) -> SendResult:
        notification = await self.get_or_create_today(user_id)
        return await self.notifier.send(user_id, self.build_payload(notification))

    async def run_schedules(self, now: datetime | None = None) -> int:
        """Cron entry point: push today's message to every client not yet reached today.

        A client counts as reached once a push tagged daily-<date> was logged,
        so a push held back by the rate limiter is retried by the next ping
        inside the window. Returns the number of clients pushed on this run.
        """
        local_now = (now or self._now()).astimezone(self.tz)
        due = [s for s in self.schedules.list_active() if is_schedule_due(s["time"], local_now)]
        if not due:
            logger.info(f"No schedule due at {local_now.strftime('%H:%M')}")
            return 0

        logger.info(f"Schedules due at {local_now.strftime('%H:%M')}: {[s['time'] for s in due]}")
        tag = daily_tag(local_now)
        sent = 0
        for user in self.users.list_by_role(Role.CLIENT):
            if self.logs.has_tag(user["id"], tag):
                continue
            try:
                result = await self.send_daily_notification(user["id"])
            except Exception as e:
                logger.exception(f"Daily notification failed for {user['id']}: {e}")
                continue
            logger.info(f"Daily notification for {user['id']}: sent={result.sent} failed={result.failed}")
            if result.sent:
                sent += 1
        return sent

    # ===== Schedules =====

    def list_schedules(self) -> list[dict]:
        return self.schedules.list_all()

    def create_schedule(self, time: str, is_active: bool = True) -> dict:
        schedule = self.schedules.create(time, is_active)
        if not schedule:
            raise RuntimeError("Failed to create schedule")
        return schedule

    def update_schedule(self, schedule_id: str, **changes) -> dict:
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise BadRequestError("Không có thay đổi nào")
        schedule = self.schedules.update(schedule_id, **changes)
        if not schedule:
            raise NotFoundError("Không tìm thấy lịch gửi")
        return schedule

    def delete_schedule(self, schedule_id: str) -> None:
        if not self.schedules.delete(schedule_id):
            raise NotFoundError("Không tìm thấy lịch gửi")
