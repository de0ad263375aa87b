from datetime import datetime, timedelta, timezone

import pytest

from app.domain.schemas import NotificationCategory
from app.repositories.notification_log import NotificationLogRepository
from app.services.rate_limit import NotificationRateLimiter


class Clock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def limiter(db, clock):
    return NotificationRateLimiter(NotificationLogRepository(db), clock=clock)


@pytest.mark.parametrize("category, floor", [
    (NotificationCategory.MEMORY, 30),
    (NotificationCategory.MESSAGE, 10),
    (NotificationCategory.REACTION, 5),
    (NotificationCategory.DAILY, 24 * 3600),
    (NotificationCategory.DEFAULT, 10),
])
def test_window_lasts_the_category_floor(limiter, clock, category, floor):
    assert limiter.try_acquire("u1", category) is True
    clock.advance(floor - 1)
    assert limiter.try_acquire("u1", category) is False
    clock.advance(1)
    assert limiter.try_acquire("u1", category) is True


def test_windows_are_per_user_and_category(limiter):
    assert limiter.try_acquire("u1", NotificationCategory.MEMORY)
    assert limiter.try_acquire("u2", NotificationCategory.MEMORY)
    assert limiter.try_acquire("u1", NotificationCategory.MESSAGE)
    assert not limiter.try_acquire("u1", NotificationCategory.MEMORY)


def test_release_gives_the_window_back(limiter):
    assert limiter.try_acquire("u1", NotificationCategory.MEMORY)
    limiter.release("u1", NotificationCategory.MEMORY)
    assert limiter.try_acquire("u1", NotificationCategory.MEMORY)


def test_commit_makes_the_window_stick(limiter):
    assert limiter.try_acquire("u1", NotificationCategory.MEMORY)
    limiter.commit("u1", NotificationCategory.MEMORY)
    limiter.release("u1", NotificationCategory.MEMORY)
    assert not limiter.try_acquire("u1", NotificationCategory.MEMORY)


def test_seeds_from_notification_log(db, clock):
    sent_at = datetime.fromtimestamp(clock.now - 10, tz=timezone.utc)
    db.seed("notification_logs", user_id="u1", notification_type="memory-123", sent_at=sent_at.isoformat())
    limiter = NotificationRateLimiter(NotificationLogRepository(db), clock=clock)

    assert limiter.try_acquire("u1", NotificationCategory.MEMORY) is False
    assert limiter.try_acquire("u1", NotificationCategory.MESSAGE) is True
    clock.advance(20)
    assert limiter.try_acquire("u1", NotificationCategory.MEMORY) is True


def test_old_log_rows_do_not_block(db, clock):
    sent_at = datetime.fromtimestamp(clock.now, tz=timezone.utc) - timedelta(hours=25)
    db.seed("notification_logs", user_id="u1", notification_type="daily-2024-05-01", sent_at=sent_at.isoformat())
    limiter = NotificationRateLimiter(NotificationLogRepository(db), clock=clock)

    assert limiter.try_acquire("u1", NotificationCategory.DAILY) is True


def test_unreadable_log_allows_the_send(db, clock):
    db.fail_tables["notification_logs"] = RuntimeError("boom")
    limiter = NotificationRateLimiter(NotificationLogRepository(db), clock=clock)

    assert limiter.try_acquire("u1", NotificationCategory.MEMORY) is True
