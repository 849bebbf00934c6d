"""SmartSentry — Safety chat with offline fallback"""

import logging
from typing import Optional

from smartsentry.api import ChatAPI
from smartsentry.config import OFFLINE_REPLIES, OFFLINE_REPLY_KEYWORDS
from smartsentry.errors import ApiError
from smartsentry.models import ChatReply

logger = logging.getLogger("smartsentry.chat")


def offline_category(message: str) -> str:
    lower = (message or "").lower()
    for category, keywords in OFFLINE_REPLY_KEYWORDS:
        if any(k in lower for k in keywords):
            return category
    return "default"


def get_offline_reply(message: str) -> str:
    """Canned reply for ``message`` by case-insensitive keyword match; first category wins."""
    return OFFLINE_REPLIES[offline_category(message)]


class ChatService:
    """Best-effort chat: never raises, never retries, never blocks an unauthenticated user."""

    def __init__(self, chat_api: ChatAPI):
        self.chat_api = chat_api

    def _fallback(self, message: str) -> ChatReply:
        return ChatReply(response=get_offline_reply(message), offline=True, model="fallback")

    async def send(self, message: str, context: Optional[dict] = None) -> ChatReply:
        token = await self.chat_api.http.token_store.load()
        if not token:
            return self._fallback(message)

        try:
            data = await self.chat_api.send_message(message, context)
        except ApiError as e:
            logger.info(f"Chat unavailable, using offline reply: {e}")
            return self._fallback(message)

        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            logger.warning("Chat response missing 'response' text; using offline reply")
            return self._fallback(message)
        return ChatReply(
            response=data["response"],
            offline=bool(data.get("offline", False)),
            model=str(data.get("model") or "unknown"),
        )
