from database.connection import with_retry

from app.repositories.base import BaseRepository


class DailyNotificationRepository(BaseRepository):
    """AI daily messages; at most one per user and calendar day (checked before insert)."""

    table_name = "daily_notifications"

    @with_retry()
    def get_between(self, user_id: str, start: str, end: str) -> dict | None:
        """Latest notification with start <= sent_at < end."""
        result = self.table().select("*").eq(
            "user_id", user_id
        ).gte("sent_at", start).lt("sent_at", end).order(
            "sent_at", desc=True
        ).limit(1).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def create(self, user_id: str, content: str, emotion_level: int) -> dict | None:
        result = self.table().insert({
            "user_id": user_id,
            "content": content,
            "emotion_level": emotion_level,
        }).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def delete_for_user(self, user_id: str) -> None:
        self.table().delete().eq("user_id", user_id).execute()
