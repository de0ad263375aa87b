from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_alert_relay, get_message_generator
from app.core.security import hash_ip
from app.main import create_app
from app.services.ai import GeneratedMessage


@pytest.fixture
def generator():
    generator = MagicMock()
    generator.generate_daily_message = AsyncMock(return_value=GeneratedMessage("Chúc cậu ngày mới vui!", 65))
    generator.generate_quick_replies = AsyncMock(return_value=["Tớ ổn", "Cảm ơn cậu"])
    return generator


@pytest.fixture
def app(settings, db, alerts, generator, monkeypatch):
    monkeypatch.setattr("app.services.push.webpush", MagicMock())
    app = create_app(settings=settings, db=db)
    app.dependency_overrides[get_alert_relay] = lambda: alerts
    app.dependency_overrides[get_message_generator] = lambda: generator
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def login(client, token, fingerprint, **extra):
    return client.post("/auth/login", json={
        "token": token,
        "fingerprint": fingerprint,
        "userAgent": "Mozilla/5.0",
        **extra,
    })


def user_id_for(db, role):
    return next(u["id"] for u in db.tables["users"] if u["role"] == role)


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_admin_and_client_first_logins(client, db):
    admin = login(client, "admin-secret", "admin-fp")
    assert admin.status_code == 200
    assert admin.json()["success"] is True
    assert admin.json()["role"] == "admin"
    assert admin.json()["userId"] == user_id_for(db, "admin")

    first_client = login(client, "client-secret", "client-fp-1")
    assert first_client.status_code == 200
    assert first_client.json()["role"] == "client"

    second = login(client, "client-secret", "client-fp-2")
    assert second.status_code == 403
    body = second.json()
    assert body["success"] is False
    assert "xác nhận" in body["error"]
    assert body["needsApproval"] is True

    client_id = user_id_for(db, "client")
    devices = client.get("/devices", params={"userId": client_id}).json()
    assert [d["fingerprint"] for d in devices["pending"]] == ["client-fp-2"]
    assert devices["pending"][0]["isActive"] is False
    assert [d["fingerprint"] for d in devices["active"]] == ["client-fp-1"]


def test_approve_then_check_status(client, db, alerts):
    login(client, "client-secret", "fp-1")
    login(client, "client-secret", "fp-2")
    pending = next(d for d in db.tables["devices"] if d["fingerprint"] == "fp-2")

    status = client.post("/devices/check-status", json={"token": "client-secret", "fingerprint": "fp-2"})
    assert status.json() == {"success": True, "isApproved": False, "needsApproval": True}

    response = client.post("/devices/approve", json={"deviceId": pending["id"], "action": "approve"})
    assert response.status_code == 200
    assert response.json()["device"]["isActive"] is True
    alerts.device_approved.assert_called_once()

    status = client.post("/devices/check-status", json={"token": "client-secret", "fingerprint": "fp-2"})
    assert status.json()["isApproved"] is True
    assert login(client, "client-secret", "fp-2").status_code == 200


def test_revoke_and_deny(client, db):
    login(client, "client-secret", "fp-1")
    login(client, "client-secret", "fp-2")
    active = next(d for d in db.tables["devices"] if d["fingerprint"] == "fp-1")
    pending = next(d for d in db.tables["devices"] if d["fingerprint"] == "fp-2")

    assert client.post("/devices/approve", json={"deviceId": active["id"], "action": "revoke"}).status_code == 200
    revoked = login(client, "client-secret", "fp-1")
    assert revoked.status_code == 403
    assert revoked.json()["revoked"] is True

    assert client.post("/devices/approve", json={"deviceId": pending["id"], "action": "deny"}).json() == {"success": True}
    assert all(d["fingerprint"] != "fp-2" for d in db.tables["devices"])


def test_unknown_device_action(client):
    response = client.post("/devices/approve", json={"deviceId": "nope", "action": "approve"})
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_invalid_token(client):
    response = login(client, "wrong", "fp-1")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Token không hợp lệ"}


def test_ip_hash_defaults_to_client_address(client, db):
    login(client, "client-secret", "fp-1")
    assert db.tables["devices"][0]["ip_hash"] == hash_ip("testclient")

    login(client, "client-secret", "fp-1", ipHash="from-browser")
    assert db.tables["devices"][0]["ip_hash"] == "from-browser"


def test_push_subscription_lifecycle(client, db):
    subscription = {"endpoint": "https://push.example/1", "keys": {"p256dh": "p", "auth": "a"}}
    response = client.post("/push/subscribe", json={"userId": "u1", "subscription": subscription, "userAgent": "UA"})
    assert response.json() == {"success": True}
    assert db.tables["push_subscriptions"][0]["is_active"] is True

    sent = client.post("/push/send", json={"userId": "u1", "type": "reaction", "data": {"emoji": "🔥"}})
    assert sent.json() == {"success": True, "sent": 1, "failed": 0}

    client.post("/push/unsubscribe", json={"userId": "u1", "endpoint": "https://push.example/1"})
    assert db.tables["push_subscriptions"][0]["is_active"] is False


def test_push_send_unknown_type(client):
    response = client.post("/push/send", json={"userId": "u1", "type": "bogus"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_telegram_alert(client, alerts):
    assert client.post("/telegram/alert", json={"type": "reaction", "emoji": "❤️"}).json() == {"success": True}
    alerts.reaction.assert_called_once_with("❤️", None)

    assert client.post("/telegram/alert", json={"type": "message"}).status_code == 400
    assert client.post("/telegram/alert", json={"type": "unknown"}).status_code == 422


class TestCron:

    def test_requires_bearer_secret(self, client):
        assert client.get("/cron/notifications").status_code == 401
        assert client.get("/cron/notifications", headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_runs_schedules(self, client):
        response = client.get("/cron/notifications", headers={"Authorization": "Bearer cron-secret"})
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["sent"] == 0

    def test_external_token(self, client):
        assert client.get("/external-cron/notifications").status_code == 401
        assert client.get("/external-cron/notifications", params={"token": "wrong"}).status_code == 401
        assert client.get("/external-cron/notifications", params={"token": "external-secret"}).status_code == 200
        assert client.get(
            "/external-cron/notifications", headers={"x-cron-token": "external-secret"}
        ).status_code == 200

    def test_external_route_closed_without_token(self, settings, client):
        client.app.state.settings = settings.model_copy(update={"external_cron_token": None})
        assert client.get("/external-cron/notifications", params={"token": ""}).status_code == 401


def test_generate_message_is_idempotent_per_day(client, db, generator):
    login(client, "client-secret", "fp-1")
    client_id = user_id_for(db, "client")

    first = client.post("/ai/generate-message", json={"userId": client_id})
    second = client.post("/ai/generate-message", json={"userId": client_id})

    assert first.status_code == 200
    notification = first.json()["notification"]
    assert notification["content"] == "Chúc cậu ngày mới vui!"
    assert notification["emotionLevel"] == 65
    assert second.json()["notification"]["id"] == notification["id"]
    generator.generate_daily_message.assert_awaited_once()


def test_quick_replies(client, generator):
    response = client.post("/ai/quick-replies", json={"message": "Cậu khỏe không?", "seed": 3})
    assert response.json() == {"success": True, "replies": ["Tớ ổn", "Cảm ơn cậu"]}


def test_user_preferences(client):
    empty = client.get("/user/preferences", params={"userId": "u1"}).json()
    assert empty["preferences"] == {"city": None, "horoscope": None}

    client.post("/user/preferences", json={"userId": "u1", "city": "  Huế ", "horoscope": "Bạch Dương"})

    saved = client.get("/user/preferences", params={"userId": "u1"}).json()
    assert saved["preferences"] == {"city": "Huế", "horoscope": "Bạch Dương"}


def test_notification_preferences(client, db):
    defaults = client.get("/user/notification-preferences", params={"userId": "u1"}).json()["preferences"]
    assert defaults["enableMemory"] is True
    assert defaults["silentHoursStart"] is None

    response = client.post("/user/notification-preferences", json={
        "userId": "u1",
        "enableReaction": False,
        "silentHoursStart": 22,
        "silentHoursEnd": 7,
    })
    assert response.status_code == 200

    saved = client.get("/user/notification-preferences", params={"userId": "u1"}).json()["preferences"]
    assert saved["enableReaction"] is False
    assert saved["silentHoursStart"] == 22
    assert db.tables["notification_preferences"][0]["enable_reaction"] is False

    bad = client.post("/user/notification-preferences", json={"userId": "u1", "silentHoursStart": 24})
    assert bad.status_code == 422


def test_reactions_and_messages(client, db, alerts):
    login(client, "client-secret", "fp-1")
    client_id = user_id_for(db, "client")

    reaction = client.post("/reactions", json={"userId": client_id, "emoji": "😊"})
    message = client.post("/messages", json={"userId": client_id, "content": "Tớ ổn"})

    assert reaction.json()["success"] is True
    assert reaction.json()["id"] == db.tables["reactions"][0]["id"]
    assert message.json()["id"] == db.tables["messages"][0]["id"]
    alerts.reaction.assert_called_once_with("😊")
    alerts.message.assert_called_once_with("Tớ ổn")


def test_memories(client, db):
    login(client, "client-secret", "fp-1")
    client_id = user_id_for(db, "client")

    assert client.post("/memories/admin").status_code == 200
    limited = client.post("/memories/admin")
    assert limited.status_code == 429
    assert limited.json()["limitReached"] is True

    assert client.post("/memories/client", json={"userId": client_id}).status_code == 200
    count = client.get("/memories/admin-count", params={"userId": client_id}).json()
    assert count == {"success": True, "count": 1}


def test_schedules_crud(client):
    assert client.post("/schedules", json={"time": "25:00"}).status_code == 422

    created = client.post("/schedules", json={"time": "08:00"})
    assert created.status_code == 201
    schedule_id = created.json()["id"]
    assert created.json()["isActive"] is True

    updated = client.patch(f"/schedules/{schedule_id}", json={"isActive": False})
    assert updated.json()["isActive"] is False

    assert [s["time"] for s in client.get("/schedules").json()] == ["08:00"]
    assert client.delete(f"/schedules/{schedule_id}").json() == {"success": True}
    assert client.delete(f"/schedules/{schedule_id}").status_code == 404


def test_unexpected_errors_are_generic(app, db):
    db.fail_tables["reactions"] = RuntimeError("database exploded")
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/reactions", json={"userId": "u1", "emoji": "😊"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Đã có lỗi xảy ra, vui lòng thử lại sau"}
    assert "exploded" not in response.text


def test_cors_in_development(client):
    response = client.get("/health", headers={"Origin": "https://anything.example"})
    assert response.headers["Access-Control-Allow-Origin"] == "https://anything.example"
