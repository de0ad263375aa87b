from database.connection import with_retry

from app.repositories.base import BaseRepository


class NotificationScheduleRepository(BaseRepository):
    """Times of day ("HH:MM", app timezone) at which daily messages go out."""

    table_name = "notification_schedules"

    @with_retry()
    def list_all(self) -> list[dict]:
        result = self.table().select("*").order("time").execute()
        return result.data if result and result.data else []

    @with_retry()
    def list_active(self) -> list[dict]:
        result = self.table().select("*").eq("is_active", True).order("time").execute()
        return result.data if result and result.data else []

    @with_retry()
    def create(self, time: str, is_active: bool = True) -> dict | None:
        result = self.table().insert({"time": time, "is_active": is_active}).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def update(self, schedule_id: str, **kwargs) -> dict | None:
        result = self.table().update(kwargs).eq("id", schedule_id).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def delete(self, schedule_id: str) -> bool:
        result = self.table().delete().eq("id", schedule_id).execute()
        return bool(result and result.data)
