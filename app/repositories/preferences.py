from database.connection import with_retry

from app.repositories.base import BaseRepository, utcnow_iso


class NotificationPreferenceRepository(BaseRepository):
    table_name = "notification_preferences"

    @with_retry()
    def get(self, user_id: str) -> dict | None:
        result = self.table().select("*").eq("user_id", user_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def upsert(self, user_id: str, **prefs) -> dict | None:
        result = self.table().upsert({
            "user_id": user_id,
            **prefs,
            "updated_at": utcnow_iso(),
        }, on_conflict="user_id").execute()
        return result.data[0] if result and result.data else None


class UserPreferenceRepository(BaseRepository):
    """City and horoscope used to personalise the daily message."""

    table_name = "user_preferences"

    @with_retry()
    def get(self, user_id: str) -> dict | None:
        result = self.table().select("city, horoscope").eq("user_id", user_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def upsert(self, user_id: str, city: str | None, horoscope: str | None) -> dict | None:
        result = self.table().upsert({
            "user_id": user_id,
            "city": city.strip() if city and city.strip() else None,
            "horoscope": horoscope or None,
            "updated_at": utcnow_iso(),
        }, on_conflict="user_id").execute()
        return result.data[0] if result and result.data else None
