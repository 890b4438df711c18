"""
Order lifecycle controller.

pending -> paid -> delivered, never backwards. Every status write for an
order happens under that order's lock; code dispensing additionally takes
the inventory bucket lock (always order lock first, then bucket lock).

Payment notifications may arrive duplicated, out of order, or for orders we
never created. They are verified on the raw body, recorded on the order,
and only ever move the status forward.
"""
import secrets
import string
from dataclasses import dataclass
from typing import Callable, Optional

from giftbot.chat.base import ChatClient
from giftbot.core.errors import (
    GatewayConfigError,
    GatewayError,
    InsufficientStock,
    InvalidOrderState,
    InvalidSignature,
    OrderNotFound,
)
from giftbot.observability import metrics as mx
from giftbot.observability.logging import log
from giftbot.payments import coinpayments as cp
from giftbot.settings import settings
from giftbot.store import models as m
from giftbot.store.inventory_repo import InventoryRepo
from giftbot.store.order_repo import OrderRepo
from giftbot.utils.time import now_iso

_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
_ID_LEN = 10

# Most recent gateway statuses kept on the order
IPN_HISTORY_LIMIT = 20

# Outcomes reported by handle_payment_notification
UNKNOWN_ORDER = "unknown_order"
RECORDED = "recorded"
DELIVERED = "delivered"
ALREADY_DELIVERED = "already_delivered"
AWAITING_STOCK = "awaiting_stock"


def new_order_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LEN))


@dataclass
class NotificationOutcome:
    orderId: str
    gatewayStatus: int
    result: str
    orderStatus: Optional[str] = None


def delivery_message(order: m.Order) -> str:
    codes = "\n".join(order.codes or [])
    return (
        f"Payment received for order {order.id}. Here are your codes:\n\n"
        f"{codes}\n\nThanks for buying!"
    )


class OrderController:
    def __init__(
        self,
        orders: OrderRepo,
        inventory: InventoryRepo,
        gateway: cp.CoinPaymentsClient,
        chat: ChatClient,
        metrics: mx.Metrics,
        alert_admins: Optional[Callable[[str], None]] = None,
        ipn_secret: str = None,
        merchant_id: str = None,
        base_url: str = None,
    ):
        self.orders = orders
        self.inventory = inventory
        self.gateway = gateway
        self.chat = chat
        self.metrics = metrics
        self.alert_admins = alert_admins
        self.ipn_secret = settings.COINPAYMENTS_IPN_SECRET if ipn_secret is None else ipn_secret
        self.merchant_id = settings.COINPAYMENTS_MERCHANT_ID if merchant_id is None else merchant_id
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")

    # ------------------------------------------------------------------
    # Creation / lookup
    # ------------------------------------------------------------------
    def create_order(self, selection: m.Selection, buyer: m.Buyer) -> m.Order:
        """
        Persist a pending order, then ask the gateway for a transaction.
        On GatewayError the pending order stays stored without a transaction
        (kept for retry/inspection) and the error propagates.
        """
        order = None
        for _ in range(5):
            candidate = m.Order(
                id=new_order_id(),
                buyerId=str(buyer.id),
                buyerUsername=buyer.username,
                buyerDisplayName=buyer.displayName or "",
                card=selection.card,
                region=selection.region,
                denom=selection.denom,
                quantity=selection.quantity,
                totalAmount=selection.total,
                currency=settings.PRICE_CURRENCY,
                status=m.PENDING,
                createdAt=now_iso(),
            )
            try:
                order = self.orders.create(candidate)
                break
            except ValueError:
                continue
        if order is None:
            raise RuntimeError("Could not allocate a unique order id")

        self.metrics.increment(mx.ORDERS_CREATED)
        log("order_created", orderId=order.id, buyerId=order.buyerId, card=order.card,
            region=order.region, denom=order.denom, quantity=order.quantity, total=order.totalAmount)

        try:
            txn = self.gateway.create_transaction(
                amount=order.totalAmount,
                currency1=order.currency,
                currency2=settings.PAY_CURRENCY,
                correlation_id=order.id,
                callback_url=f"{self.base_url}/ipn",
                buyer_email=settings.GATEWAY_BUYER_EMAIL or None,
            )
        except GatewayError as e:
            self.metrics.increment(mx.GATEWAY_ERRORS)
            log("gateway_create_failed", orderId=order.id, error=str(e)[:300])
            raise

        def _attach(o: m.Order) -> None:
            # An IPN may already have been recorded; keep it
            existing = o.transaction or {}
            o.transaction = dict(txn)
            for k in ("ipn", "ipnRaw", "ipnHistory"):
                if k in existing:
                    o.transaction[k] = existing[k]

        return self.orders.update(order.id, _attach)

    def get_status(self, order_id: str) -> m.Order:
        return self.orders.find_by_id(order_id)

    def list_orders(self, status: Optional[str] = None, limit: int = 100):
        return self.orders.list_orders(status=status, limit=limit)

    # ------------------------------------------------------------------
    # Payment + fulfilment
    # ------------------------------------------------------------------
    def mark_paid_manually(self, order_id: str) -> m.Order:
        """Idempotent: an order already paid keeps its first paidAt and is not counted again."""
        transitioned = []

        def _mark(o: m.Order) -> None:
            if o.status == m.DELIVERED:
                raise InvalidOrderState(f"Order {o.id} is already delivered")
            if o.status == m.PENDING:
                o.status = m.PAID
                o.paidAt = now_iso()
                transitioned.append(True)

        order = self.orders.update(order_id, _mark)
        if transitioned:
            self.metrics.increment(mx.ORDERS_PAID)
            log("order_marked_paid", orderId=order_id, source="admin")
        return order

    def deliver(self, order_id: str, notify: bool = True) -> m.Order:
        """
        Move a paid order to delivered with codes taken from inventory.
        Raises OrderNotFound, InvalidOrderState (not paid) or
        InsufficientStock (order stays paid). Buyer notification afterwards
        is best-effort.
        """
        with self.orders.lock(order_id):
            order = self.orders.find_by_id(order_id)
            if order.status != m.PAID:
                raise InvalidOrderState(f"Order {order.id} is {order.status}, not paid")

            try:
                codes = self.inventory.take_codes(order.card, order.region, order.denom, order.quantity)
            except InsufficientStock:
                self.metrics.increment(mx.STOCK_SHORTAGES)
                log("delivery_out_of_stock", orderId=order.id, card=order.card,
                    region=order.region, denom=order.denom, quantity=order.quantity)
                raise

            order.codes = codes
            order.status = m.DELIVERED
            order.deliveredAt = now_iso()
            self.orders.put(order)

        self.metrics.increment(mx.ORDERS_DELIVERED)
        log("order_delivered", orderId=order.id, quantity=len(codes), codes=codes)
        if notify:
            self.notify_buyer(order)
        return order

    def notify_buyer(self, order: m.Order) -> bool:
        """Send the codes to the buyer. Failure is logged, never retried or rolled back."""
        try:
            self.chat.send_message(order.buyerId, delivery_message(order))
            return True
        except Exception as e:
            log("delivery_notify_failed", orderId=order.id, buyerId=order.buyerId,
                errorType=type(e).__name__, error=str(e)[:300])
            return False

    def _raise_alert(self, order: m.Order) -> None:
        if not self.alert_admins:
            log("admin_alert_skipped", orderId=order.id, reason="no_alert_channel")
            return
        try:
            self.alert_admins(order.id)
        except Exception as e:
            log("admin_alert_failed", orderId=order.id, error=str(e)[:300])

    # ------------------------------------------------------------------
    # IPN
    # ------------------------------------------------------------------
    def handle_payment_notification(self, raw_body: bytes, signature: Optional[str],
                                    content_type: str = "") -> NotificationOutcome:
        if not self.ipn_secret:
            log("ipn_rejected", reason="ipn_secret_missing")
            raise GatewayConfigError("COINPAYMENTS_IPN_SECRET is not set")

        self.metrics.increment(mx.IPN_RECEIVED)
        if not cp.verify_notification(raw_body, signature, self.ipn_secret):
            self.metrics.increment(mx.IPN_REJECTED)
            log("ipn_rejected", reason="bad_hmac", bodyBytes=len(raw_body or b""),
                signaturePresent=bool(signature))
            raise InvalidSignature("Invalid HMAC")

        data = cp.parse_notification(raw_body, content_type)
        if self.merchant_id and str(data.get("merchant", "")) != self.merchant_id:
            self.metrics.increment(mx.IPN_REJECTED)
            log("ipn_rejected", reason="merchant_mismatch")
            raise InvalidSignature("Merchant mismatch")

        order_id = str(data.get("custom") or "")
        code = cp.status_code(data)
        complete = cp.is_payment_complete(code)
        log("ipn_received", orderId=order_id, status=code, statusText=data.get("status_text"))

        try:
            with self.orders.lock(order_id):
                order = self.orders.find_by_id(order_id)
                previous = order.status

                txn = dict(order.transaction or {})
                txn["ipn"] = data
                txn["ipnRaw"] = (raw_body or b"").decode("utf-8", errors="replace")
                history = list(txn.get("ipnHistory") or [])
                history.append({"status": code, "receivedAt": now_iso()})
                txn["ipnHistory"] = history[-IPN_HISTORY_LIMIT:]
                order.transaction = txn

                if complete and order.status == m.PENDING:
                    order.status = m.PAID
                    order.paidAt = now_iso()
                # Not complete: pending stays pending; paid/delivered never go back
                self.orders.put(order)
        except OrderNotFound:
            # Gateway retries IPNs for foreign/unknown transactions; acknowledge them
            log("ipn_unknown_order", orderId=order_id, status=code)
            return NotificationOutcome(order_id, code, UNKNOWN_ORDER)

        became_paid = previous == m.PENDING and order.status == m.PAID
        if became_paid:
            self.metrics.increment(mx.ORDERS_PAID)
            log("order_marked_paid", orderId=order.id, source="ipn", status=code)

        if not complete or order.status == m.DELIVERED:
            result = ALREADY_DELIVERED if order.status == m.DELIVERED else RECORDED
            return NotificationOutcome(order.id, code, result, order.status)

        try:
            delivered = self.deliver(order.id)
            return NotificationOutcome(order.id, code, DELIVERED, delivered.status)
        except InsufficientStock:
            # Gateway resends completion as confirmations arrive; alert once per order
            if became_paid:
                self._raise_alert(order)
            return NotificationOutcome(order.id, code, AWAITING_STOCK, m.PAID)
        except InvalidOrderState:
            # A concurrent notification or admin /deliver got there first
            return NotificationOutcome(order.id, code, ALREADY_DELIVERED, m.DELIVERED)
