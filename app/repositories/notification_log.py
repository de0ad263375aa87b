from database.connection import with_retry

from app.domain.schemas import NotificationCategory
from app.repositories.base import BaseRepository


class NotificationLogRepository(BaseRepository):
    """Audit trail of delivered pushes; also seeds the rate limiter after a restart."""

    table_name = "notification_logs"

    @with_retry()
    def latest_sent_at(self, user_id: str, category: NotificationCategory) -> str | None:
        """sent_at of the newest log row whose tag starts with the category."""
        result = self.table().select("sent_at").eq(
            "user_id", user_id
        ).like("notification_type", f"{category.value}%").order(
            "sent_at", desc=True
        ).limit(1).execute()
        return result.data[0]["sent_at"] if result and result.data else None

    @with_retry()
    def record(self, user_id: str, tag: str) -> None:
        self.table().insert({
            "user_id": user_id,
            "notification_type": tag,
        }).execute()

    @with_retry()
    def has_tag(self, user_id: str, tag: str) -> bool:
        result = self.table().select("id").eq(
            "user_id", user_id
        ).eq("notification_type", tag).limit(1).execute()
        return bool(result and result.data)
