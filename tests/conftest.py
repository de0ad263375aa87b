import re
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from app.core.config import load_settings
from app.core.tasks import BackgroundDispatcher
from app.services.telegram import AlertRelay

TABLE_DEFAULTS = {
    "devices": {"is_active": False, "revoked_at": None, "user_agent": "", "ip_hash": ""},
    "memories": {"sender_role": "client"},
    "messages": {"emoji": None},
    "daily_notifications": {"emotion_level": 50},
    "notification_schedules": {"is_active": True},
    "push_subscriptions": {"is_active": True, "user_agent": None},
}

# Tables whose timestamp column is sent_at rather than created_at
SENT_AT_TABLES = {"daily_notifications", "notification_logs"}


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class FakeResult:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Just enough of the PostgREST builder for the repositories."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.orders = []
        self.row_limit = None
        self.count = None
        self.on_conflict = ""
        self.ignore_duplicates = False

    # ----- operations -----

    def select(self, columns="*", count=None):
        self.op = "select"
        self.count = count
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict="", ignore_duplicates=False):
        self.op = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    # ----- filters -----

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def like(self, column, pattern):
        regex = re.compile("^" + ".*".join(re.escape(p) for p in pattern.split("%")) + "$")
        self.filters.append(lambda row: row.get(column) is not None and bool(regex.match(row[column])))
        return self

    def gte(self, column, value):
        bound = _as_datetime(value)
        self.filters.append(lambda row: row.get(column) is not None and _as_datetime(row[column]) >= bound)
        return self

    def lt(self, column, value):
        bound = _as_datetime(value)
        self.filters.append(lambda row: row.get(column) is not None and _as_datetime(row[column]) < bound)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    # ----- execution -----

    def _matching(self):
        return [row for row in self.db.tables[self.table_name] if all(f(row) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table_name, self.op))
        if self.table_name in self.db.fail_tables:
            raise self.db.fail_tables[self.table_name]

        if self.op == "select":
            rows = self._matching()
            for column, desc in reversed(self.orders):
                rows.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
            total = len(rows)
            if self.row_limit is not None:
                rows = rows[: self.row_limit]
            return FakeResult([dict(r) for r in rows], total if self.count else None)

        if self.op == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResult([dict(self.db.insert_row(self.table_name, p)) for p in payloads])

        if self.op == "upsert":
            keys = [k.strip() for k in self.on_conflict.split(",") if k.strip()] or ["id"]
            existing = next(
                (
                    row for row in self.db.tables[self.table_name]
                    if all(row.get(k) == self.payload.get(k) for k in keys)
                ),
                None,
            )
            if existing is not None:
                if self.ignore_duplicates:
                    return FakeResult([])
                existing.update(self.payload)
                return FakeResult([dict(existing)])
            return FakeResult([dict(self.db.insert_row(self.table_name, self.payload))])

        if self.op == "update":
            rows = self._matching()
            for row in rows:
                row.update(self.payload)
            return FakeResult([dict(r) for r in rows])

        if self.op == "delete":
            rows = self._matching()
            self.db.tables[self.table_name] = [
                r for r in self.db.tables[self.table_name] if r not in rows
            ]
            return FakeResult([dict(r) for r in rows])

        raise AssertionError(f"unknown op {self.op}")


class FakeSupabase:
    """In-memory stand-in for supabase.Client.

    Rows get an id and a timestamp (created_at, or sent_at for log tables)
    from `clock`, one microsecond apart so ordering by time is stable.
    """

    def __init__(self, clock=None):
        self.tables = defaultdict(list)
        self.calls = []
        self.fail_tables = {}
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._seq = 0

    def table(self, name):
        return FakeQuery(self, name)

    def next_timestamp(self) -> str:
        self._seq += 1
        ts = self.clock().astimezone(timezone.utc) + timedelta(microseconds=self._seq)
        return ts.isoformat()

    def insert_row(self, table, payload):
        row = {**TABLE_DEFAULTS.get(table, {}), **payload}
        row.setdefault("id", str(uuid.uuid4()))
        stamp_column = "sent_at" if table in SENT_AT_TABLES else "created_at"
        row.setdefault(stamp_column, self.next_timestamp())
        self.tables[table].append(row)
        return row

    def seed(self, table, **row):
        return dict(self.insert_row(table, row))


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def settings():
    return load_settings(
        _env_file=None,
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon-key",
        supabase_service_key="service-key",
        google_ai_api_key="ai-key",
        telegram_bot_token="bot-token",
        telegram_admin_chat_id="42",
        admin_token="admin-secret",
        client_token="client-secret",
        cron_secret="cron-secret",
        external_cron_token="external-secret",
        vapid_public_key="vapid-public",
        vapid_private_key="vapid-private",
        vapid_subject="mailto:test@example.com",
    )


@pytest.fixture
def background():
    return BackgroundDispatcher()


@pytest.fixture
def alerts():
    return MagicMock(spec=AlertRelay)
