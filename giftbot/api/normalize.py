from typing import Optional

from giftbot.chat.base import CALLBACK, COMMAND, TEXT, ChatEvent


def _display_name(user: dict) -> str:
    return " ".join(x for x in (user.get("first_name") or "", user.get("last_name") or "") if x).strip()


def normalize_telegram_update(update: dict) -> Optional[ChatEvent]:
    """
    Convert a Telegram Update into the transport-neutral ChatEvent:

    - message starting with '/'   -> command
    - other message text          -> text
    - callback_query              -> callback (payload = callback_data)

    Anything else (edits, stickers, channel posts) returns None.
    """
    if not isinstance(update, dict):
        return None

    cq = update.get("callback_query")
    if isinstance(cq, dict):
        user = cq.get("from") or {}
        if not user.get("id"):
            return None
        return ChatEvent(
            eventType=CALLBACK,
            userId=str(user["id"]),
            payload=cq.get("data") or "",
            username=user.get("username"),
            displayName=_display_name(user),
            callbackId=str(cq.get("id") or "") or None,
        )

    msg = update.get("message")
    if not isinstance(msg, dict):
        return None
    user = msg.get("from") or {}
    text = (msg.get("text") or "").strip()
    if not user.get("id") or not text:
        return None

    return ChatEvent(
        eventType=COMMAND if text.startswith("/") else TEXT,
        userId=str(user["id"]),
        payload=text,
        username=user.get("username"),
        displayName=_display_name(user),
    )
