"""
Request-scoped wiring.

The long-lived pieces (settings, Supabase client, background dispatcher,
rate limiter) are created once in create_app and kept on app.state; the
repositories and services built here are thin wrappers around them.
"""
from fastapi import Depends, Request
from supabase import Client

from app.core.config import Settings, get_app_settings
from app.core.tasks import BackgroundDispatcher
from app.repositories.daily_notification import DailyNotificationRepository
from app.repositories.device import DeviceRepository
from app.repositories.interaction import MemoryRepository, MessageRepository, ReactionRepository
from app.repositories.notification_log import NotificationLogRepository
from app.repositories.preferences import NotificationPreferenceRepository, UserPreferenceRepository
from app.repositories.push_subscription import PushSubscriptionRepository
from app.repositories.schedule import NotificationScheduleRepository
from app.repositories.user import UserRepository
from app.services.ai import MessageGenerator
from app.services.auth import AuthGate
from app.services.daily import DailyMessageService
from app.services.devices import DeviceRegistry
from app.services.interactions import InteractionService
from app.services.push import NotificationDispatcher
from app.services.rate_limit import NotificationRateLimiter
from app.services.telegram import AlertRelay


def get_db(request: Request) -> Client:
    return request.app.state.db


def get_background(request: Request) -> BackgroundDispatcher:
    return request.app.state.background


def get_rate_limiter(request: Request) -> NotificationRateLimiter:
    return request.app.state.rate_limiter


def get_alert_relay(
    settings: Settings = Depends(get_app_settings),
    background: BackgroundDispatcher = Depends(get_background),
) -> AlertRelay:
    return AlertRelay(
        bot_token=settings.telegram_bot_token,
        chat_id=settings.telegram_admin_chat_id,
        dispatcher=background,
        timezone=settings.app_timezone,
    )


def get_device_registry(
    db: Client = Depends(get_db),
    alerts: AlertRelay = Depends(get_alert_relay),
) -> DeviceRegistry:
    return DeviceRegistry(
        DeviceRepository(db),
        alerts,
        user_data=(
            ReactionRepository(db),
            MessageRepository(db),
            MemoryRepository(db),
            DailyNotificationRepository(db),
        ),
    )


def get_auth_gate(
    settings: Settings = Depends(get_app_settings),
    db: Client = Depends(get_db),
    registry: DeviceRegistry = Depends(get_device_registry),
) -> AuthGate:
    return AuthGate(settings, UserRepository(db), registry)


def get_notification_dispatcher(
    settings: Settings = Depends(get_app_settings),
    db: Client = Depends(get_db),
    rate_limiter: NotificationRateLimiter = Depends(get_rate_limiter),
) -> NotificationDispatcher:
    return NotificationDispatcher(
        subscriptions=PushSubscriptionRepository(db),
        preferences=NotificationPreferenceRepository(db),
        logs=NotificationLogRepository(db),
        rate_limiter=rate_limiter,
        vapid_private_key=settings.vapid_private_key,
        vapid_subject=settings.vapid_subject,
        timezone=settings.app_timezone,
    )


def get_message_generator(settings: Settings = Depends(get_app_settings)) -> MessageGenerator:
    return MessageGenerator(
        api_key=settings.google_ai_api_key,
        model=settings.gemini_model,
        timezone=settings.app_timezone,
    )


def get_daily_service(
    settings: Settings = Depends(get_app_settings),
    db: Client = Depends(get_db),
    generator: MessageGenerator = Depends(get_message_generator),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> DailyMessageService:
    return DailyMessageService(
        users=UserRepository(db),
        daily=DailyNotificationRepository(db),
        reactions=ReactionRepository(db),
        messages=MessageRepository(db),
        memories=MemoryRepository(db),
        preferences=UserPreferenceRepository(db),
        schedules=NotificationScheduleRepository(db),
        logs=NotificationLogRepository(db),
        generator=generator,
        notifier=notifier,
        timezone=settings.app_timezone,
    )


def get_interaction_service(
    settings: Settings = Depends(get_app_settings),
    db: Client = Depends(get_db),
    alerts: AlertRelay = Depends(get_alert_relay),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
    background: BackgroundDispatcher = Depends(get_background),
) -> InteractionService:
    return InteractionService(
        users=UserRepository(db),
        reactions=ReactionRepository(db),
        messages=MessageRepository(db),
        memories=MemoryRepository(db),
        alerts=alerts,
        notifier=notifier,
        dispatcher=background,
        timezone=settings.app_timezone,
    )
