"""
Long-polling runner for local development, where no public webhook URL
exists. Feeds Telegram updates through the same normalizer and bot as the
/telegram/webhook route.

Telegram refuses getUpdates while a webhook is set; call deleteWebhook first.
"""
import time

from giftbot.api.normalize import normalize_telegram_update
from giftbot.observability.logging import log
from giftbot.wiring import get_container


def main() -> None:
    c = get_container()
    offset = None
    log("polling_started")
    while True:
        try:
            updates = c.chat.get_updates(offset=offset, poll_timeout=30)
        except Exception as e:
            log("polling_failed", errorType=type(e).__name__, error=str(e)[:300])
            time.sleep(5)
            continue

        for update in updates:
            offset = int(update.get("update_id", 0)) + 1
            event = normalize_telegram_update(update)
            if event is None:
                continue
            try:
                c.bot.handle_event(event)
            except Exception as e:
                log("chat_event_failed", userId=event.userId, eventType=event.eventType,
                    errorType=type(e).__name__, error=str(e)[:300])


if __name__ == "__main__":
    main()
