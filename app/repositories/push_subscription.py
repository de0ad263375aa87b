from database.connection import with_retry

from app.repositories.base import BaseRepository, utcnow_iso


class PushSubscriptionRepository(BaseRepository):
    """Web Push subscriptions, unique on (user_id, endpoint)."""

    table_name = "push_subscriptions"

    @with_retry()
    def upsert(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: str | None = None,
    ) -> dict | None:
        """Save a subscription; re-subscribing reactivates it."""
        result = self.table().upsert({
            "user_id": user_id,
            "endpoint": endpoint,
            "p256dh": p256dh,
            "auth": auth,
            "user_agent": user_agent,
            "is_active": True,
            "updated_at": utcnow_iso(),
        }, on_conflict="user_id,endpoint").execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def list_active(self, user_id: str) -> list[dict]:
        result = self.table().select("endpoint, p256dh, auth").eq(
            "user_id", user_id
        ).eq("is_active", True).execute()
        return result.data if result and result.data else []

    @with_retry()
    def deactivate(self, user_id: str, endpoint: str) -> None:
        self.table().update({
            "is_active": False,
            "updated_at": utcnow_iso(),
        }).eq("user_id", user_id).eq("endpoint", endpoint).execute()
