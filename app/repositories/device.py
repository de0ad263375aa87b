from database.connection import with_retry

from app.repositories.base import BaseRepository, utcnow_iso


class DeviceRepository(BaseRepository):
    """Repository for login devices, one row per (user_id, fingerprint)."""

    table_name = "devices"

    @with_retry()
    def get_by_id(self, device_id: str) -> dict | None:
        result = self.table().select("*").eq("id", device_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def list_for_fingerprint(self, user_id: str, fingerprint: str) -> list[dict]:
        """All rows for a (user, fingerprint), oldest first."""
        result = self.table().select("*").eq(
            "user_id", user_id
        ).eq("fingerprint", fingerprint).order("created_at").execute()
        return result.data if result and result.data else []

    @with_retry()
    def has_unrevoked_device(self, user_id: str) -> bool:
        """Whether the user ever had a device that was not revoked, any fingerprint."""
        result = self.table().select("id").eq(
            "user_id", user_id
        ).is_("revoked_at", "null").limit(1).execute()
        return bool(result and result.data)

    @with_retry()
    def list_active(self, user_id: str) -> list[dict]:
        result = self.table().select("*").eq(
            "user_id", user_id
        ).eq("is_active", True).order("created_at").execute()
        return result.data if result and result.data else []

    @with_retry()
    def list_all(self, user_id: str | None = None) -> list[dict]:
        """Devices for the admin dashboard, newest first."""
        query = self.table().select("*")
        if user_id:
            query = query.eq("user_id", user_id)
        result = query.order("created_at", desc=True).execute()
        return result.data if result and result.data else []

    @with_retry()
    def insert_if_absent(
        self,
        user_id: str,
        fingerprint: str,
        user_agent: str,
        ip_hash: str,
        is_active: bool,
    ) -> None:
        """Insert a device unless the (user, fingerprint) row already exists."""
        now = utcnow_iso()
        self.table().upsert({
            "user_id": user_id,
            "fingerprint": fingerprint,
            "user_agent": user_agent,
            "ip_hash": ip_hash,
            "is_active": is_active,
            "last_seen": now,
        }, on_conflict="user_id,fingerprint", ignore_duplicates=True).execute()

    @with_retry()
    def touch(self, device_id: str, user_agent: str, ip_hash: str) -> None:
        """Refresh what we know about a returning device. Approval state is untouched."""
        self.table().update({
            "user_agent": user_agent,
            "ip_hash": ip_hash,
            "last_seen": utcnow_iso(),
        }).eq("id", device_id).execute()

    @with_retry()
    def activate(self, device_id: str) -> dict | None:
        result = self.table().update({
            "is_active": True,
            "revoked_at": None,
        }).eq("id", device_id).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def deactivate(self, device_id: str) -> None:
        """Back to pending (revoked_at left as is)."""
        self.table().update({"is_active": False}).eq("id", device_id).execute()

    @with_retry()
    def revoke(self, device_id: str) -> dict | None:
        result = self.table().update({
            "is_active": False,
            "revoked_at": utcnow_iso(),
        }).eq("id", device_id).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def delete(self, device_id: str) -> bool:
        result = self.table().delete().eq("id", device_id).execute()
        return bool(result and result.data)
