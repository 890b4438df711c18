from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from giftbot.api.auth import require_webhook_secret
from giftbot.api.normalize import normalize_telegram_update
from giftbot.core.errors import GatewayConfigError, InvalidSignature
from giftbot.observability.logging import log
from giftbot.wiring import Container, get_container

router = APIRouter()


@router.post("/ipn", response_class=PlainTextResponse)
async def coinpayments_ipn(
    request: Request,
    hmac_header: Optional[str] = Header(default=None, alias="hmac"),
    c: Container = Depends(get_container),
):
    """
    CoinPayments IPN. The signature covers the exact bytes sent, so the body
    is read raw and parsed only after verification. Unknown orders and
    repeated notifications are acknowledged with 200 so the gateway stops
    retrying them; a contended order lock surfaces as 503 (see main.py) so
    it retries.
    """
    raw = await request.body()
    content_type = request.headers.get("content-type", "")
    try:
        outcome = await run_in_threadpool(
            c.controller.handle_payment_notification, raw, hmac_header, content_type
        )
    except GatewayConfigError:
        raise HTTPException(status_code=500, detail="IPN secret not configured")
    except InvalidSignature:
        raise HTTPException(status_code=403, detail="Invalid HMAC")

    log("ipn_handled", orderId=outcome.orderId, status=outcome.gatewayStatus,
        result=outcome.result, orderStatus=outcome.orderStatus)
    return "OK"


@router.post("/telegram/webhook", dependencies=[Depends(require_webhook_secret)])
async def telegram_webhook(update: Any = Body(None), c: Container = Depends(get_container)):
    """
    Telegram retries any non-2xx answer, replaying the same update. Handler
    failures are logged and the update is still acknowledged.
    """
    event = normalize_telegram_update(update if isinstance(update, dict) else {})
    if event is None:
        return {"ok": True, "handled": False}
    try:
        await run_in_threadpool(c.bot.handle_event, event)
    except Exception as e:
        log("chat_event_failed", userId=event.userId, eventType=event.eventType,
            errorType=type(e).__name__, error=str(e)[:300])
        return {"ok": True, "handled": False}
    return {"ok": True, "handled": True}
