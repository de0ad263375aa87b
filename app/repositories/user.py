from database.connection import with_retry

from app.domain.schemas import Role
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    table_name = "users"

    @with_retry()
    def get_by_id(self, user_id: str) -> dict | None:
        """Get a user by ID."""
        result = self.table().select("*").eq("id", user_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @with_retry()
    def list_by_role(self, role: Role) -> list[dict]:
        """All rows for a role, oldest first."""
        result = self.table().select("*").eq("role", role.value).order("created_at").execute()
        return result.data if result and result.data else []

    def get_by_role(self, role: Role) -> dict | None:
        """The canonical (oldest) user for a role, without creating one."""
        rows = self.list_by_role(role)
        return rows[0] if rows else None

    @with_retry()
    def insert_if_absent(self, role: Role) -> None:
        """Insert the role's user unless it already exists (ON CONFLICT DO NOTHING)."""
        self.table().upsert(
            {"role": role.value},
            on_conflict="role",
            ignore_duplicates=True,
        ).execute()

    def resolve_for_role(self, role: Role) -> dict:
        """Get or create the single user row for a role.

        Two first logins racing each other both end up on the same row: the
        insert ignores the conflict and the re-read picks the oldest.
        """
        rows = self.list_by_role(role)
        if not rows:
            self.insert_if_absent(role)
            rows = self.list_by_role(role)
        user = self.collapse_to_oldest(rows)
        if not user:
            raise RuntimeError(f"Failed to create user for role {role.value}")
        return user
