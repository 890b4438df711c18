import json
from unittest.mock import MagicMock, patch

from giftbot.observability import metrics as mx
from giftbot.observability.logging import log
from giftbot.settings import settings


def _last_line(capsys):
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


def test_log_masks_codes_and_redacts_chat_text(capsys):
    with patch.object(settings, "ENABLE_LOG_REDACTION", True):
        log("order_delivered", orderId="o1", codes=["GIFT-AAAA-1111", "AB"], text="hello there")

    line = _last_line(capsys)
    assert line["event"] == "order_delivered"
    assert line["orderId"] == "o1"
    assert line["codes"] == ["****1111", "****"]
    assert line["text"] == "[REDACTED:11chars]"


def test_log_redacts_nested_sensitive_values(capsys):
    with patch.object(settings, "ENABLE_LOG_REDACTION", True):
        log("x", order={"id": "o1", "ipnRaw": "custom=o1&status=100"}, payload={"chat_id": "100"})

    line = _last_line(capsys)
    assert line["order"] == {"id": "o1", "ipnRaw": "[REDACTED:20chars]"}
    assert line["payload"] == {"chat_id": "[REDACTED:3chars]"}


def test_log_without_redaction(capsys):
    with patch.object(settings, "ENABLE_LOG_REDACTION", False):
        log("x", codes=["GIFT-AAAA-1111"])
    assert "GIFT-AAAA-1111" in capsys.readouterr().out


def test_counters_roundtrip(r):
    metrics = mx.Metrics(r)
    metrics.increment(mx.ORDERS_CREATED)
    metrics.increment(mx.ORDERS_CREATED)
    snap = metrics.snapshot()
    assert snap[mx.ORDERS_CREATED] == 2
    assert snap[mx.ORDERS_DELIVERED] == 0
    assert "snapshot_at" in snap


def test_increment_never_raises():
    broken = MagicMock()
    broken.incr.side_effect = ConnectionError("redis down")
    mx.Metrics(broken).increment(mx.IPN_RECEIVED)
