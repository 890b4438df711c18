from giftbot.api.normalize import normalize_telegram_update
from giftbot.chat.base import CALLBACK, COMMAND, TEXT


def _msg(text, **user):
    return {"update_id": 1, "message": {"message_id": 5, "text": text,
                                        "from": {"id": 100, "first_name": "Alice", **user}}}


def test_command_message():
    ev = normalize_telegram_update(_msg("/start", username="alice", last_name="Smith"))
    assert ev.eventType == COMMAND
    assert ev.userId == "100"
    assert ev.payload == "/start"
    assert ev.username == "alice"
    assert ev.displayName == "Alice Smith"


def test_plain_text_message():
    ev = normalize_telegram_update(_msg("  us "))
    assert ev.eventType == TEXT
    assert ev.payload == "us"
    assert ev.username is None


def test_callback_query():
    ev = normalize_telegram_update({
        "update_id": 2,
        "callback_query": {"id": "cbq1", "data": "denom_50",
                           "from": {"id": 100, "first_name": "Alice", "username": "alice"}},
    })
    assert ev.eventType == CALLBACK
    assert ev.payload == "denom_50"
    assert ev.callbackId == "cbq1"


def test_unsupported_updates_are_ignored():
    assert normalize_telegram_update({"update_id": 3, "edited_message": {"text": "x"}}) is None
    assert normalize_telegram_update({"update_id": 4, "message": {"from": {"id": 1}, "sticker": {}}}) is None
    assert normalize_telegram_update({"update_id": 5, "message": {"text": "hi"}}) is None
    assert normalize_telegram_update(None) is None
