import logging
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from app.core.errors import DailyLimitReached, NotFoundError
from app.core.tasks import BackgroundDispatcher
from app.core.timeutils import day_bounds
from app.domain.schemas import MessageType, PushPayload, Role
from app.repositories.interaction import MemoryRepository, MessageRepository, ReactionRepository
from app.repositories.user import UserRepository
from app.services.push import NotificationDispatcher, build_payload
from app.services.telegram import AlertRelay

logger = logging.getLogger(__name__)

ADMIN_MEMORIES_PER_DAY = 1


class InteractionService:
    """Reactions, messages and the "Nhớ" memory signal.

    The row is written first and returned; the Telegram alert and the push
    to the other side run in the background and cannot fail the write.
    """

    def __init__(
        self,
        users: UserRepository,
        reactions: ReactionRepository,
        messages: MessageRepository,
        memories: MemoryRepository,
        alerts: AlertRelay,
        notifier: NotificationDispatcher,
        dispatcher: BackgroundDispatcher,
        timezone: str = "Asia/Ho_Chi_Minh",
        now: Callable[[], datetime] | None = None,
    ):
        self.users = users
        self.reactions = reactions
        self.messages = messages
        self.memories = memories
        self.alerts = alerts
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.tz = ZoneInfo(timezone)
        self._now = now or (lambda: datetime.now(self.tz))

    async def _push_to_role(self, role: Role, payload: PushPayload) -> None:
        user = self.users.get_by_role(role)
        if not user:
            logger.info(f"No {role.value} user yet, skipping push '{payload.tag}'")
            return
        await self.notifier.send(user["id"], payload)

    def _push_in_background(self, role: Role, payload: PushPayload) -> None:
        self.dispatcher.spawn(self._push_to_role(role, payload), name=f"push-{payload.tag}")

    def record_reaction(self, user_id: str, emoji: str) -> dict:
        reaction = self.reactions.create(user_id, emoji)
        if not reaction:
            raise RuntimeError("Failed to save reaction")
        self.alerts.reaction(emoji)
        self._push_in_background(Role.ADMIN, build_payload("reaction", {"emoji": emoji}))
        return reaction

    def record_message(
        self,
        user_id: str,
        content: str,
        type: MessageType = MessageType.QUICK_REPLY,
        emoji: str | None = None,
    ) -> dict:
        message = self.messages.create(user_id, content, type, emoji)
        if not message:
            raise RuntimeError("Failed to save message")
        self.alerts.message(content)
        self._push_in_background(Role.ADMIN, build_payload("message", {"content": content}))
        return message

    def send_admin_memory(self) -> dict:
        """Admin taps "Nhớ": at most once per calendar day, silent push to the client."""
        client = self.users.get_by_role(Role.CLIENT)
        if not client:
            raise NotFoundError("Chưa có người dùng nào để gửi")

        start, end = day_bounds(self._now(), self.tz)
        if self.memories.count_between(client["id"], Role.ADMIN, start, end) >= ADMIN_MEMORIES_PER_DAY:
            raise DailyLimitReached()

        memory = self.memories.create(client["id"], Role.ADMIN)
        if not memory:
            raise RuntimeError("Failed to save memory")
        logger.info(f"Admin memory sent to {client['id']}")

        payload = build_payload("memory-from-admin").model_copy(update={"silent": True})
        self._push_in_background(Role.CLIENT, payload)
        return memory

    def send_client_memory(self, user_id: str) -> dict:
        memory = self.memories.create(user_id, Role.CLIENT)
        if not memory:
            raise RuntimeError("Failed to save memory")
        self.alerts.memory()
        self._push_in_background(Role.ADMIN, build_payload("memory-from-client"))
        return memory

    def count_admin_memories(self, user_id: str) -> int:
        return self.memories.count_from(user_id, Role.ADMIN)
