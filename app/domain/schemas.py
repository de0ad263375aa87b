from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============================================
# Enums
# ============================================

class Role(str, Enum):
    ADMIN = "admin"
    CLIENT = "client"


class MessageType(str, Enum):
    AI = "ai"
    QUICK_REPLY = "quick_reply"
    REACTION = "reaction"


class DeviceAction(str, Enum):
    APPROVE = "approve"
    DENY = "deny"
    REVOKE = "revoke"


class AlertType(str, Enum):
    REACTION = "reaction"
    MESSAGE = "message"
    MEMORY = "memory"


class NotificationCategory(str, Enum):
    """Push categories; each has its own preference flag and rate-limit floor."""
    MEMORY = "memory"
    MESSAGE = "message"
    REACTION = "reaction"
    DAILY = "daily"
    DEFAULT = "default"

    @classmethod
    def from_tag(cls, tag: str | None) -> "NotificationCategory":
        """Category of a push tag such as "memory-1712345678" or "daily-2024-05-01"."""
        base = (tag or "").split("-", 1)[0]
        try:
            return cls(base)
        except ValueError:
            return cls.DEFAULT

    @property
    def preference_flag(self) -> str | None:
        if self is NotificationCategory.DEFAULT:
            return None
        return f"enable_{self.value}"


class CamelModel(BaseModel):
    """Wire models use camelCase; Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================
# Auth / Device Schemas
# ============================================

class LoginRequest(CamelModel):
    token: str = ""
    fingerprint: str = Field(..., min_length=1)
    user_agent: str = ""
    ip_hash: Optional[str] = None


class LoginResponse(CamelModel):
    success: bool = True
    user_id: str
    role: Role


class DeviceActionRequest(CamelModel):
    device_id: str
    action: DeviceAction


class CheckStatusRequest(CamelModel):
    token: str = ""
    fingerprint: str = Field(..., min_length=1)


class CheckStatusResponse(CamelModel):
    success: bool = True
    is_approved: bool
    needs_approval: bool


class DeviceResponse(CamelModel):
    id: str
    user_id: str
    fingerprint: str
    user_agent: Optional[str] = None
    is_active: bool
    revoked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None


class DeviceListResponse(CamelModel):
    pending: List[DeviceResponse] = []
    active: List[DeviceResponse] = []


# ============================================
# Push Schemas
# ============================================

class SubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscriptionIn(BaseModel):
    endpoint: str = Field(..., min_length=1)
    keys: SubscriptionKeys


class SubscribeRequest(CamelModel):
    user_id: str
    subscription: PushSubscriptionIn
    user_agent: Optional[str] = None


class UnsubscribeRequest(CamelModel):
    user_id: str
    endpoint: str


class PushSendRequest(CamelModel):
    user_id: str
    type: str
    data: dict = {}


class PushSendResponse(CamelModel):
    success: bool = True
    sent: int
    failed: int


class PushPayload(CamelModel):
    title: str
    body: str
    icon: str = "/icon-192x192.png"
    badge: str = "/icon-192x192.png"
    tag: str = "default"
    data: dict = {}
    require_interaction: bool = False
    silent: bool = False
    vibrate: Optional[List[int]] = None
    actions: List[dict] = []

    @property
    def category(self) -> NotificationCategory:
        return NotificationCategory.from_tag(self.tag)

    def to_envelope(self) -> dict:
        """The JSON the service worker's push handler reads."""
        vibrate = self.vibrate
        if vibrate is None:
            vibrate = [] if self.silent else [200, 100, 200]
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "tag": self.tag,
            "data": {**self.data, "url": self.data.get("url") or "/"},
            "requireInteraction": self.require_interaction,
            "vibrate": vibrate,
            "silent": self.silent,
            "actions": self.actions,
        }


# ============================================
# Telegram Schemas
# ============================================

class TelegramAlertRequest(CamelModel):
    type: AlertType
    emoji: Optional[str] = None
    content: Optional[str] = None
    timestamp: Optional[str] = None
    user_id: Optional[str] = None


# ============================================
# AI / Daily Schemas
# ============================================

class GenerateMessageRequest(CamelModel):
    user_id: str


class DailyNotificationResponse(CamelModel):
    id: str
    user_id: str
    content: str
    type: MessageType = MessageType.AI
    emotion_level: Optional[int] = None
    sent_at: Optional[datetime] = None


class GenerateMessageResponse(CamelModel):
    success: bool = True
    notification: DailyNotificationResponse


class QuickRepliesRequest(CamelModel):
    message: str = Field(..., min_length=1)
    seed: Optional[Any] = None
    user_id: Optional[str] = None


class QuickRepliesResponse(CamelModel):
    success: bool = True
    replies: List[str]


# ============================================
# Preferences Schemas
# ============================================

class UserPreferencesIn(CamelModel):
    user_id: str
    city: Optional[str] = None
    horoscope: Optional[str] = None


class UserPreferences(CamelModel):
    city: Optional[str] = None
    horoscope: Optional[str] = None


class UserPreferencesResponse(CamelModel):
    success: bool = True
    preferences: UserPreferences


class NotificationPreferences(CamelModel):
    enable_memory: bool = True
    enable_message: bool = True
    enable_reaction: bool = True
    enable_daily: bool = True
    silent_hours_start: Optional[int] = Field(default=None, ge=0, le=23)
    silent_hours_end: Optional[int] = Field(default=None, ge=0, le=23)


class NotificationPreferencesIn(NotificationPreferences):
    user_id: str


class NotificationPreferencesResponse(CamelModel):
    success: bool = True
    preferences: NotificationPreferences


# ============================================
# Interaction Schemas
# ============================================

class ReactionCreate(CamelModel):
    user_id: str
    emoji: str = Field(..., min_length=1)


class MessageCreate(CamelModel):
    user_id: str
    content: str = Field(..., min_length=1)
    type: MessageType = MessageType.QUICK_REPLY
    emoji: Optional[str] = None


class ClientMemoryCreate(CamelModel):
    user_id: str


class InteractionResponse(CamelModel):
    success: bool = True
    id: Optional[str] = None
    message: Optional[str] = None


class MemoryCountResponse(CamelModel):
    success: bool = True
    count: int


# ============================================
# Schedule Schemas
# ============================================

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ScheduleCreate(CamelModel):
    time: str = Field(..., pattern=HHMM_PATTERN)
    is_active: bool = True


class ScheduleUpdate(CamelModel):
    time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    is_active: Optional[bool] = None


class ScheduleResponse(CamelModel):
    id: str
    time: str
    is_active: bool
    created_at: Optional[datetime] = None


class CronResponse(CamelModel):
    success: bool = True
    message: str = "Notifications processed"
    sent: int = 0
    timestamp: datetime
