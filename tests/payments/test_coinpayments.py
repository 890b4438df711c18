from urllib.parse import parse_qs

import httpx
import pytest

from giftbot.core.errors import GatewayError
from giftbot.payments import coinpayments as cp


def test_verify_notification():
    raw = b"custom=abc&status=100"
    sig = cp.sign_payload(raw, "s3cret")

    assert cp.verify_notification(raw, sig, "s3cret")
    assert cp.verify_notification(raw, sig.upper(), "s3cret")
    assert not cp.verify_notification(raw, sig, "other")
    assert not cp.verify_notification(raw + b"0", sig, "s3cret")
    assert not cp.verify_notification(raw, None, "s3cret")
    assert not cp.verify_notification(raw, sig, "")


def test_parse_notification_form_and_json():
    assert cp.parse_notification(b"custom=abc&status=100&status_text=Complete") == {
        "custom": "abc", "status": "100", "status_text": "Complete",
    }
    assert cp.parse_notification(b'{"custom": "abc", "status": 2}', "application/json") == {
        "custom": "abc", "status": 2,
    }
    assert cp.parse_notification(b"{not json", "application/json") == {}


@pytest.mark.parametrize("status,complete", [
    ("100", True), ("101", True), ("2", True), ("1", False), ("0", False), ("-1", False), ("", False),
])
def test_completion_statuses(status, complete):
    assert cp.is_payment_complete(cp.status_code({"status": status})) is complete


def _client(handler, **kw):
    return cp.CoinPaymentsClient(
        public_key=kw.get("public_key", "pub"),
        private_key=kw.get("private_key", "priv"),
        api_url="https://gateway.example/api.php",
        timeout=2,
        transport=httpx.MockTransport(handler),
    )


def test_create_transaction_signs_form_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["hmac"] = request.headers["HMAC"]
        seen["body"] = request.content
        return httpx.Response(200, json={"error": "ok", "result": {"txn_id": "T1", "amount": "100"}})

    result = _client(handler).create_transaction(
        amount=100, currency1="USD", currency2="USDT.TRC20",
        correlation_id="order123", callback_url="https://shop.example/ipn",
    )

    assert result == {"txn_id": "T1", "amount": "100"}
    assert seen["hmac"] == cp.sign_payload(seen["body"], "priv")
    form = {k: v[0] for k, v in parse_qs(seen["body"].decode()).items()}
    assert form["cmd"] == "create_transaction"
    assert form["key"] == "pub"
    assert form["amount"] == "100"
    assert form["custom"] == "order123"
    assert form["ipn_url"] == "https://shop.example/ipn"
    assert "buyer_email" not in form


def test_gateway_rejection_raises():
    def handler(request):
        return httpx.Response(200, json={"error": "Invalid API key"})

    with pytest.raises(GatewayError, match="Invalid API key"):
        _client(handler).create_transaction(10, "USD", "BTC", "o1", "https://x/ipn")


def test_http_failure_raises():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(GatewayError):
        _client(handler).create_transaction(10, "USD", "BTC", "o1", "https://x/ipn")


def test_timeout_raises():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(GatewayError, match="timed out"):
        _client(handler).create_transaction(10, "USD", "BTC", "o1", "https://x/ipn")


def test_missing_keys_raise_before_any_request():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(GatewayError):
        _client(handler, public_key="").create_transaction(10, "USD", "BTC", "o1", "https://x/ipn")
