from typing import Any, Dict, List, Optional

import httpx

from giftbot.chat.base import ChatClient, Choices
from giftbot.core.errors import ChatDeliveryError
from giftbot.observability.logging import log
from giftbot.settings import settings


def _inline_keyboard(choices: Choices) -> Dict[str, Any]:
    return {
        "inline_keyboard": [
            [{"text": b.label, "callback_data": b.data} for b in row]
            for row in choices
        ]
    }


class TelegramClient(ChatClient):
    """Bot API over plain HTTPS. Every call is bounded by `timeout`."""

    def __init__(self, token: str = None, api_url: str = None, timeout: float = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.token = token if token is not None else settings.BOT_TOKEN
        self.api_url = (api_url or settings.TELEGRAM_API_URL).rstrip("/")
        self.timeout = float(timeout or settings.CHAT_TIMEOUT_SEC)
        self._transport = transport

    def _call(self, method: str, payload: Dict[str, Any], timeout: float = None) -> Any:
        if not self.token:
            raise ChatDeliveryError("BOT_TOKEN is not set")
        url = f"{self.api_url}/bot{self.token}/{method}"
        try:
            with httpx.Client(timeout=timeout or self.timeout, transport=self._transport) as client:
                resp = client.post(url, json=payload)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ChatDeliveryError(f"{method} failed: {type(e).__name__}: {str(e)[:200]}") from e

        if not data.get("ok"):
            # e.g. 403 "bot was blocked by the user"
            raise ChatDeliveryError(f"{method} rejected: {data.get('error_code')} {data.get('description')}")
        return data.get("result")

    def send_message(self, user_id: str, text: str, choices: Optional[Choices] = None) -> None:
        payload: Dict[str, Any] = {"chat_id": user_id, "text": text}
        if choices:
            payload["reply_markup"] = _inline_keyboard(choices)
        self._call("sendMessage", payload)

    def answer_callback(self, callback_id: str, text: str = "") -> None:
        payload: Dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        try:
            self._call("answerCallbackQuery", payload)
        except ChatDeliveryError as e:
            # Callback answers expire quickly; losing one only leaves a spinner
            log("callback_answer_failed", error=str(e)[:200])

    def get_updates(self, offset: Optional[int] = None, poll_timeout: int = 30) -> List[dict]:
        """Long-poll for updates (local development without a webhook)."""
        payload: Dict[str, Any] = {"timeout": poll_timeout, "allowed_updates": ["message", "callback_query"]}
        if offset is not None:
            payload["offset"] = offset
        return self._call("getUpdates", payload, timeout=poll_timeout + self.timeout) or []
