import html
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx

from app.core.tasks import BackgroundDispatcher

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class AlertRelay:
    """Forwards key events to the admin's Telegram chat.

    Alerts are best-effort: send_alert logs and swallows every failure, and
    notify() hands the send to the background dispatcher so the database
    write that triggered it is never held up.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        dispatcher: BackgroundDispatcher,
        timezone: str = "Asia/Ho_Chi_Minh",
        timeout: float = 10.0,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.dispatcher = dispatcher
        self.tz = ZoneInfo(timezone)
        self.timeout = timeout

    @property
    def send_url(self) -> str:
        return f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage"

    def now_label(self) -> str:
        return datetime.now(self.tz).strftime("%H:%M:%S %d/%m/%Y")

    def time_label(self, timestamp: str | None) -> str:
        """Client-supplied time, escaped for HTML, or the current local time."""
        return html.escape(timestamp) if timestamp else self.now_label()

    async def send_alert(self, text: str) -> bool:
        """Send one message. Returns False instead of raising on any failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.send_url, json={
                    "chat_id": self.chat_id,
                    "text": text,
                    "parse_mode": "HTML",
                })
            if response.status_code != 200:
                logger.warning(f"Telegram returned {response.status_code}: {response.text[:200]}")
                return False
            return True
        except Exception as e:
            logger.warning(f"Telegram send error: {e}")
            return False

    def notify(self, text: str) -> None:
        """Fire-and-forget send_alert."""
        self.dispatcher.spawn(self.send_alert(text), name="telegram-alert")

    # ===== Formatted alerts =====

    def reaction(self, emoji: str, timestamp: str | None = None) -> None:
        self.notify(f"❤️ Cậu ấy đã phản hồi: {html.escape(emoji)}\n⏰ {self.time_label(timestamp)}")

    def message(self, content: str, timestamp: str | None = None) -> None:
        self.notify(f"💬 Tin nhắn mới:\n\"{html.escape(content)}\"\n⏰ {self.time_label(timestamp)}")

    def memory(self, timestamp: str | None = None) -> None:
        self.notify(f"✨ Cậu ấy đã nhấn \"Nhớ\" lúc {self.time_label(timestamp)}")

    def new_device(self, device: dict, role: str, revoked: bool = False) -> None:
        header = "🔁 Thiết bị đã bị thu hồi đang xin xác nhận lại!" if revoked else "⚠️ Thiết bị mới được phát hiện!"
        self.notify(
            f"{header}\n\n"
            f"Vai trò: {role}\n"
            f"{_describe(device)}\n"
            f"⏰ {self.now_label()}"
        )

    def device_approved(self, device: dict) -> None:
        self.notify(f"✅ Thiết bị đã được xác nhận!\n\n{_describe(device)}\n⏰ {self.now_label()}")

    def device_revoked(self, device: dict) -> None:
        self.notify(f"🔒 Thiết bị đã bị thu hồi quyền truy cập!\n\n{_describe(device)}\n⏰ {self.now_label()}")


def _describe(device: dict) -> str:
    fingerprint = (device.get("fingerprint") or "")[:24]
    user_agent = (device.get("user_agent") or "")[:50]
    return f"Fingerprint: {fingerprint}...\nUser Agent: {html.escape(user_agent)}..."
