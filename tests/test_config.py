from types import SimpleNamespace

import pytest

from app.core.config import get_app_settings, load_settings
from app.core.errors import ConfigurationError

REQUIRED = [
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_KEY",
    "GOOGLE_AI_API_KEY",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_ADMIN_CHAT_ID",
    "ADMIN_TOKEN",
    "CLIENT_TOKEN",
    "CRON_SECRET",
    "VAPID_PUBLIC_KEY",
    "VAPID_PRIVATE_KEY",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in REQUIRED + ["EXTERNAL_CRON_TOKEN", "APP_TIMEZONE", "ALLOWED_ORIGINS"]:
        monkeypatch.delenv(name, raising=False)


def test_missing_variables_are_reported_together(clean_env):
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(_env_file=None)

    assert exc_info.value.missing == sorted(REQUIRED)
    for name in REQUIRED:
        assert name in str(exc_info.value)


def test_single_missing_variable(clean_env, monkeypatch):
    for name in REQUIRED:
        if name != "CRON_SECRET":
            monkeypatch.setenv(name, "x")

    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(_env_file=None)

    assert exc_info.value.missing == ["CRON_SECRET"]


def test_loads_from_environment(clean_env, monkeypatch):
    for name in REQUIRED:
        monkeypatch.setenv(name, f"value-{name.lower()}")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")

    settings = load_settings(_env_file=None)

    assert settings.admin_token == "value-admin_token"
    assert settings.app_timezone == "Asia/Ho_Chi_Minh"
    assert settings.external_cron_token is None
    assert settings.origins == ["https://a.example", "https://b.example"]


def test_app_settings_come_from_app_state(settings):
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(settings=settings)))
    assert get_app_settings(request) is settings
