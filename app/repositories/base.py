from datetime import datetime, timezone

from supabase import Client


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseRepository:
    """Holds the Supabase client handed in by the application."""

    table_name: str = ""

    def __init__(self, db: Client):
        self.db = db

    def table(self):
        return self.db.table(self.table_name)

    def collapse_to_oldest(self, rows: list[dict]) -> dict | None:
        """Keep the oldest row and delete the rest.

        rows must already be ordered by created_at ascending. Duplicates can
        only come from data written before the unique constraints existed or
        from a concurrent insert; either way the oldest row is canonical.
        """
        if not rows:
            return None
        canonical, extras = rows[0], rows[1:]
        if extras:
            self.table().delete().in_("id", [r["id"] for r in extras]).execute()
        return canonical
