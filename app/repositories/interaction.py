"""Append-only interaction rows: memories, reactions and messages."""

from database.connection import with_retry

from app.domain.schemas import MessageType, Role
from app.repositories.base import BaseRepository


class _InteractionRepository(BaseRepository):
    """Shared reads for the per-user, append-only tables."""

    recent_columns = "*"

    @with_retry()
    def recent(self, user_id: str, limit: int = 20) -> list[dict]:
        """Latest rows for a user, newest first."""
        result = self.table().select(self.recent_columns).eq(
            "user_id", user_id
        ).order("created_at", desc=True).limit(limit).execute()
        return result.data if result and result.data else []

    @with_retry()
    def delete_for_user(self, user_id: str) -> None:
        self.table().delete().eq("user_id", user_id).execute()


class MemoryRepository(_InteractionRepository):
    table_name = "memories"
    recent_columns = "id, sender_role, created_at"

    @with_retry()
    def create(self, user_id: str, sender_role: Role) -> dict | None:
        result = self.table().insert({
            "user_id": user_id,
            "sender_role": sender_role.value,
        }).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def count_between(self, user_id: str, sender_role: Role, start: str, end: str) -> int:
        """Memories sent by sender_role to user_id with start <= created_at < end."""
        result = self.table().select("id", count="exact").eq(
            "user_id", user_id
        ).eq("sender_role", sender_role.value).gte(
            "created_at", start
        ).lt("created_at", end).execute()
        return result.count or 0

    @with_retry()
    def count_from(self, user_id: str, sender_role: Role) -> int:
        result = self.table().select("id", count="exact").eq(
            "user_id", user_id
        ).eq("sender_role", sender_role.value).execute()
        return result.count or 0


class ReactionRepository(_InteractionRepository):
    table_name = "reactions"
    recent_columns = "id, emoji, created_at"

    @with_retry()
    def create(self, user_id: str, emoji: str) -> dict | None:
        result = self.table().insert({
            "user_id": user_id,
            "emoji": emoji,
        }).execute()
        return result.data[0] if result and result.data else None


class MessageRepository(_InteractionRepository):
    table_name = "messages"
    recent_columns = "id, content, type, emoji, created_at"

    @with_retry()
    def create(
        self,
        user_id: str,
        content: str,
        type: MessageType = MessageType.QUICK_REPLY,
        emoji: str | None = None,
    ) -> dict | None:
        result = self.table().insert({
            "user_id": user_id,
            "content": content,
            "type": type.value,
            "emoji": emoji,
        }).execute()
        return result.data[0] if result and result.data else None
