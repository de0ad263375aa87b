import logging
import time
from datetime import timedelta
from typing import Callable

from app.core.timeutils import parse_timestamp
from app.domain.schemas import NotificationCategory
from app.repositories.notification_log import NotificationLogRepository

logger = logging.getLogger(__name__)

# Minimum spacing between two pushes of the same category to the same user
RATE_LIMIT_FLOORS: dict[NotificationCategory, timedelta] = {
    NotificationCategory.MEMORY: timedelta(seconds=30),
    NotificationCategory.MESSAGE: timedelta(seconds=10),
    NotificationCategory.REACTION: timedelta(seconds=5),
    NotificationCategory.DAILY: timedelta(hours=24),
    NotificationCategory.DEFAULT: timedelta(seconds=10),
}


class NotificationRateLimiter:
    """Fixed window per (user_id, category).

    A window opens when a push is reserved and lasts the category's floor.
    The first lookup for a key after a restart is seeded from the most recent
    notification_logs row, so windows survive process restarts.

    try_acquire() has no await between the check and the reservation, which
    makes it atomic for coroutines sharing the event loop.
    """

    def __init__(
        self,
        logs: NotificationLogRepository,
        floors: dict[NotificationCategory, timedelta] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.logs = logs
        self.floors = floors or RATE_LIMIT_FLOORS
        self.clock = clock
        self._window_start: dict[tuple[str, NotificationCategory], float | None] = {}
        self._previous: dict[tuple[str, NotificationCategory], float | None] = {}

    def floor(self, category: NotificationCategory) -> float:
        return self.floors.get(category, self.floors[NotificationCategory.DEFAULT]).total_seconds()

    def _last_sent(self, key: tuple[str, NotificationCategory]) -> float | None:
        if key not in self._window_start:
            user_id, category = key
            try:
                sent_at = parse_timestamp(self.logs.latest_sent_at(user_id, category))
            except Exception as e:
                logger.warning(f"Could not read notification log for {user_id}/{category.value}: {e}")
                sent_at = None
            self._window_start[key] = sent_at.timestamp() if sent_at else None
        return self._window_start[key]

    def try_acquire(self, user_id: str, category: NotificationCategory) -> bool:
        key = (user_id, category)
        last = self._last_sent(key)
        now = self.clock()
        if last is not None and now - last < self.floor(category):
            return False
        self._previous[key] = last
        self._window_start[key] = now
        return True

    def release(self, user_id: str, category: NotificationCategory) -> None:
        """Undo the last reservation (nothing was delivered)."""
        key = (user_id, category)
        if key in self._previous:
            self._window_start[key] = self._previous.pop(key)

    def commit(self, user_id: str, category: NotificationCategory) -> None:
        self._previous.pop((user_id, category), None)
