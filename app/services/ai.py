import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

import httpx

from app.core.timeutils import parse_timestamp

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

FALLBACK_MESSAGE = "Hôm nay tớ nghĩ về cậu nhiều lắm. Mong cậu có một ngày tốt lành."
FALLBACK_EMOTION_LEVEL = 50
FALLBACK_QUICK_REPLIES = [
    "Tớ cũng nhớ cậu",
    "Cảm ơn cậu",
    "Tớ ổn, cậu thế nào?",
]
MAX_QUICK_REPLIES = 6

POSITIVE_EMOJIS = {"❤️", "😊", "👍", "🔥"}
NEGATIVE_EMOJIS = {"🥺", "😢", "😔"}

WEATHER_TOPIC = "thời tiết hôm nay và một lời nhắc nhỏ (mang ô, mặc ấm, uống nước)"
CONTENT_TOPICS = [
    "một món ăn hoặc đồ uống hợp với hôm nay",
    "một bài hát hoặc bộ phim nhẹ nhàng",
    "một mẹo nhỏ giúp làm việc hoặc học tập hiệu quả hơn",
    "một sự thật thú vị ít người biết",
    "một lời nhắc nghỉ ngơi, giữ sức khỏe",
    "một câu hỏi vui để bắt chuyện",
    "một điều nhỏ đáng để biết ơn hôm nay",
    "một hoạt động thư giãn cho buổi tối",
    "một cuốn sách hoặc podcast đáng thử",
]

BANNED_WORDS = ["yêu", "thương nhớ", "người yêu", "em yêu", "anh yêu", "hôn", "trái tim tớ", "mãi mãi"]

SYSTEM_PROMPT = """Bạn là một người bạn tinh tế, nhẹ nhàng, viết lời nhắn mỗi ngày.

QUY TẮC:
1. Luôn xưng "tớ - cậu", KHÔNG BAO GIỜ dùng "anh/em"
2. Giọng văn ấm áp, gần gũi nhưng không sở hữu, không dồn dập
3. TUYỆT ĐỐI KHÔNG dùng từ ngữ lãng mạn hay tỏ tình. Không dùng các từ: {banned}
4. Nếu đối phương im lặng → hỏi han êm, không trách móc
5. Nếu có nhiều tương tác tích cực → ấm hơn một chút nhưng vẫn tinh tế
6. Nếu có "Nhớ" được gửi → thể hiện sự đồng điệu
7. Chỉ trả về nội dung lời nhắn, không tiêu đề, không giải thích"""

QUICK_REPLY_SYSTEM_PROMPT = """Bạn là một AI hỗ trợ tạo câu trả lời nhanh.
Tạo 4-6 câu trả lời ngắn gọn, tự nhiên, sử dụng ngôn xưng "tớ - cậu".
Mỗi câu không quá 15 từ.
Hãy tạo các câu trả lời đa dạng, không lặp lại.
Chỉ trả về danh sách các câu trả lời, mỗi câu một dòng, không đánh số."""

QUICK_REPLY_STYLES = [
    "Tạo các câu trả lời phù hợp, ấm áp, không quá thân mật.",
    "Hãy tạo những câu trả lời tự nhiên, chân thành, sử dụng ngôn ngữ gần gũi.",
    "Tạo các câu trả lời ngắn gọn, thể hiện sự quan tâm nhẹ nhàng.",
    "Hãy tạo những câu trả lời ấm áp, thể hiện sự đồng cảm.",
]

_NUMBERING = re.compile(r"^\d+[.)]\s*")


@dataclass
class GeneratedMessage:
    content: str
    emotion_level: int


def calculate_emotion_level(reactions: list[dict], messages: list[dict], now: datetime) -> int:
    """Cosmetic 0-100 warmth score from the last 24h of interactions."""
    level = 50
    since = now - timedelta(hours=24)

    positive = sum(
        1 for r in reactions
        if r.get("emoji") in POSITIVE_EMOJIS and _at_or_after(r.get("created_at"), since)
    )
    if positive:
        level += min(positive * 10, 30)

    if any(_at_or_after(m.get("created_at"), since) for m in messages):
        level += 15

    return min(level, 100)


def _at_or_after(value, since: datetime) -> bool:
    ts = parse_timestamp(value)
    return ts is not None and ts >= since


def clean_quick_replies(text: str) -> list[str]:
    """One reply per line: numbering stripped, bullets and blanks dropped, no repeats."""
    replies: list[str] = []
    for line in text.splitlines():
        line = _NUMBERING.sub("", line).strip()
        if not line or line.startswith("*") or line.startswith("-"):
            continue
        if line not in replies:
            replies.append(line)
    return replies[:MAX_QUICK_REPLIES]


class MessageGenerator:
    """Daily message and quick replies from Gemini, with fixed fallbacks.

    Generation never raises: the daily flow and the reply box must keep
    working when the model is down, slow or returns nothing.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timezone: str = "Asia/Ho_Chi_Minh",
        timeout: float = 30.0,
        rng: random.Random | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.tz = ZoneInfo(timezone)
        self.timeout = timeout
        self.rng = rng or random.Random()
        self._now = now or (lambda: datetime.now(self.tz))

    async def _generate(self, prompt: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                GEMINI_API_URL.format(model=self.model),
                headers={"x-goog-api-key": self.api_key},
                json={
                    "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "temperature": 0.9,
                        "topK": 40,
                        "topP": 0.95,
                    },
                },
            )
        response.raise_for_status()
        data = response.json()
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts).strip()

    # ===== Daily message =====

    def pick_topics(self) -> list[str]:
        """Weather plus 3-4 other topics, so 4-5 in total."""
        extra = self.rng.randint(3, 4)
        return [WEATHER_TOPIC] + self.rng.sample(CONTENT_TOPICS, extra)

    def build_system_prompt(self) -> str:
        return SYSTEM_PROMPT.format(banned=", ".join(f'"{w}"' for w in BANNED_WORDS))

    def build_context_prompt(
        self,
        reactions: list[dict],
        messages: list[dict],
        memories: list[dict],
        city: str | None = None,
        horoscope: str | None = None,
    ) -> str:
        now = self._now().astimezone(self.tz)
        yesterday = (now - timedelta(days=1)).date()

        def on_yesterday(row: dict) -> bool:
            ts = parse_timestamp(row.get("created_at"))
            return ts is not None and ts.astimezone(self.tz).date() == yesterday

        yesterday_reactions = [r for r in reactions if on_yesterday(r)]
        yesterday_messages = [m for m in messages if on_yesterday(m)]
        recent_memories = [m for m in memories if _at_or_after(m.get("created_at"), now - timedelta(days=1))]

        lines = [f"Bây giờ là {now.strftime('%H:%M')} ngày {now.strftime('%d/%m/%Y')}."]
        if city:
            lines.append(f"Cậu ấy đang ở {city}.")
        if horoscope:
            lines.append(f"Cung hoàng đạo của cậu ấy: {horoscope} (có thể nhắc nhẹ một chút).")

        lines.append("Hãy lồng ghép tự nhiên các chủ đề sau:")
        lines.extend(f"- {topic}" for topic in self.pick_topics())

        if recent_memories:
            lines.append(f'Có {len(recent_memories)} lượt "Nhớ" gần đây → thể hiện sự đồng điệu.')
        if yesterday_reactions:
            emojis = {r.get("emoji") for r in yesterday_reactions}
            if emojis & POSITIVE_EMOJIS:
                lines.append("Hôm qua có phản hồi tích cực → ấm hơn một chút.")
            elif emojis & NEGATIVE_EMOJIS:
                lines.append("Hôm qua có phản hồi buồn → dịu lại, an ủi nhẹ.")
        if yesterday_messages:
            last = yesterday_messages[0].get("content") or ""
            lines.append(f'Hôm qua cậu ấy đã nhắn: "{last[:100]}".')
        if not yesterday_messages and not yesterday_reactions:
            lines.append("Hôm qua không có phản hồi → nhắc nhẹ, không trách móc, hỏi han êm.")

        lines.append("")
        lines.append("Viết một lời nhắn ngắn gọn (50-100 từ), ấm áp, tự nhiên.")
        return "\n".join(lines)

    async def generate_daily_message(
        self,
        reactions: list[dict],
        messages: list[dict],
        memories: list[dict],
        city: str | None = None,
        horoscope: str | None = None,
    ) -> GeneratedMessage:
        prompt = (
            f"{self.build_system_prompt()}\n\n"
            f"{self.build_context_prompt(reactions, messages, memories, city, horoscope)}"
        )
        try:
            content = await self._generate(prompt)
            if not content:
                raise ValueError("Empty response from AI")
        except Exception as e:
            logger.error(f"AI generation error: {e}")
            return GeneratedMessage(content=FALLBACK_MESSAGE, emotion_level=FALLBACK_EMOTION_LEVEL)

        return GeneratedMessage(
            content=content,
            emotion_level=calculate_emotion_level(reactions, messages, self._now()),
        )

    # ===== Quick replies =====

    async def generate_quick_replies(self, message: str, context: dict | None = None) -> list[str]:
        style = self.rng.choice(QUICK_REPLY_STYLES)
        prompt_lines = [QUICK_REPLY_SYSTEM_PROMPT, "", f'Tin nhắn: "{message}"', style]

        recent = (context or {}).get("messages") or []
        if recent:
            prompt_lines.append("Các tin nhắn gần đây của cậu ấy:")
            prompt_lines.extend(f"- {m.get('content', '')[:80]}" for m in recent[:5])
        prompt_lines.append("Hãy tạo các câu trả lời khác nhau, đa dạng về cách diễn đạt.")

        try:
            replies = clean_quick_replies(await self._generate("\n".join(prompt_lines)))
        except Exception as e:
            logger.error(f"Quick replies error: {e}")
            return list(FALLBACK_QUICK_REPLIES)

        return replies or list(FALLBACK_QUICK_REPLIES)
