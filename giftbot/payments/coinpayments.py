"""
CoinPayments adapter
--------------------
Outbound: `create_transaction` against API v1 (form POST, HMAC header).
Inbound: IPN authenticity check and parsing.

Both directions sign with HMAC-SHA512 over the exact request body bytes.
IPNs are verified on the raw body as received; parsing happens only after
the signature matched.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode

import httpx

from giftbot.core.errors import GatewayError
from giftbot.observability.logging import log
from giftbot.settings import settings

# IPN status codes: <0 failed/cancelled, 0-99 waiting, 100 complete,
# 2 = queued for nightly payout (funds already confirmed)
STATUS_COMPLETE = 100
STATUS_QUEUED_PAYOUT = 2


def sign_payload(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_notification(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    if not secret or not signature:
        return False
    expected = sign_payload(raw_body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


def parse_notification(raw_body: bytes, content_type: str = "") -> Dict[str, Any]:
    """IPNs are form-encoded by default; JSON is accepted for relays/tests."""
    text = raw_body.decode("utf-8", errors="replace")
    if "json" in (content_type or "").lower() or text.lstrip().startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    return dict(parse_qsl(text, keep_blank_values=True))


def status_code(data: Dict[str, Any]) -> int:
    try:
        return int(str(data.get("status", "")).strip())
    except ValueError:
        return 0


def is_payment_complete(code: int) -> bool:
    return code >= STATUS_COMPLETE or code == STATUS_QUEUED_PAYOUT


class CoinPaymentsClient:
    def __init__(self, public_key: str = None, private_key: str = None, api_url: str = None,
                 timeout: float = None, transport: Optional[httpx.BaseTransport] = None):
        self.public_key = public_key if public_key is not None else settings.COINPAYMENTS_KEY
        self.private_key = private_key if private_key is not None else settings.COINPAYMENTS_SECRET
        self.api_url = api_url or settings.COINPAYMENTS_API_URL
        self.timeout = float(timeout or settings.GATEWAY_TIMEOUT_SEC)
        self._transport = transport

    def _call(self, cmd: str, **fields) -> Dict[str, Any]:
        if not self.public_key or not self.private_key:
            raise GatewayError("COINPAYMENTS_KEY / COINPAYMENTS_SECRET are not set")

        params = {"version": "1", "cmd": cmd, "key": self.public_key, "format": "json"}
        params.update({k: v for k, v in fields.items() if v is not None})
        body = urlencode(params).encode("utf-8")
        headers = {
            "HMAC": sign_payload(body, self.private_key),
            "Content-Type": "application/x-www-form-urlencoded",
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(self.api_url, content=body, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise GatewayError(f"{cmd} timed out after {self.timeout}s") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GatewayError(f"{cmd} failed: {type(e).__name__}: {str(e)[:200]}") from e

        if not isinstance(data, dict) or data.get("error") != "ok":
            err = data.get("error") if isinstance(data, dict) else "malformed response"
            raise GatewayError(f"{cmd} rejected: {err}")
        return data.get("result") or {}

    def create_transaction(self, amount, currency1: str, currency2: str, correlation_id: str,
                           callback_url: str, buyer_email: Optional[str] = None) -> Dict[str, Any]:
        """
        Returns the gateway `result`: amount, address, txn_id,
        confirms_needed, checkout_url, status_url, qrcode_url.
        """
        result = self._call(
            "create_transaction",
            amount=str(amount),
            currency1=currency1,
            currency2=currency2,
            custom=correlation_id,
            ipn_url=callback_url,
            buyer_email=buyer_email or None,
        )
        log("gateway_transaction_created", orderId=correlation_id,
            txnId=result.get("txn_id"), amount=result.get("amount"), currency=currency2)
        return result
