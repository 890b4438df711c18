import json
from typing import Callable, List, Optional

from redis.exceptions import RedisError

from giftbot.chat.base import CALLBACK, COMMAND, TEXT, Button, ChatClient, ChatEvent, Reply
from giftbot.core.conversation import ConversationManager
from giftbot.core.errors import (
    GatewayError,
    GiftbotError,
    InsufficientStock,
    InvalidOrderState,
    NoActiveSession,
    OrderNotFound,
    ValidationError,
)
from giftbot.core.orders import OrderController
from giftbot.observability.logging import log
from giftbot.store import models as m
from giftbot.store.admin_repo import AdminDirectory

NO_ACTIVE_ORDER = "No active order. Use /start."
ORDER_CREATE_FAILED = "Could not place your order right now. Please try again later."
ACCESS_DENIED = "Access denied. Admins only."


def payment_instructions(order: m.Order) -> str:
    txn = order.transaction or {}
    amount = txn.get("amount", order.totalAmount)
    coin = txn.get("coin") or txn.get("currency2") or ""
    target = txn.get("address") or txn.get("checkout_url") or json.dumps(txn)
    lines = [
        f"Order created (ID: {order.id})",
        "",
        f"Please pay {amount} {coin}".rstrip() + " to the address below via your wallet:",
        "",
        target,
    ]
    if txn.get("checkout_url") and txn.get("address"):
        lines += ["", f"Checkout page: {txn['checkout_url']}"]
    lines += [
        "",
        "After payment and confirmations, you will receive your gift card codes automatically.",
        "If you want to cancel, contact admin.",
    ]
    return "\n".join(lines)


def status_text(order: m.Order) -> str:
    txn = order.transaction or {}
    summary = f"txn_id={txn.get('txn_id')} amount={txn.get('amount')}" if txn.get("txn_id") else "N/A"
    return f"Order {order.id} status: {order.status}\nTransaction: {summary}"


def pending_orders_text(orders: List[m.Order]) -> str:
    if not orders:
        return "No pending orders."
    lines = ["Pending orders:"]
    for o in orders:
        lines.append(
            f"ID:{o.id} {o.card} {o.region} {o.denom}x{o.quantity} "
            f"{o.currency}:{o.totalAmount} by @{o.buyerUsername or 'unknown'}"
        )
    lines.append("")
    lines.append("Use /deliver ORDER_ID to deliver codes or /markpaid ORDER_ID to mark paid manually.")
    return "\n".join(lines)


class ChatBot:
    """
    Routes normalized chat events to the conversation manager and the order
    controller, and turns domain errors into chat replies.
    """

    def __init__(self, conversation: ConversationManager, controller: OrderController,
                 chat: ChatClient, admins: AdminDirectory, admin_allowlist: List[str],
                 card_types: Callable[[], List[str]]):
        self.conversation = conversation
        self.controller = controller
        self.chat = chat
        self.admins = admins
        self.admin_allowlist = {a.lstrip("@").lower() for a in admin_allowlist}
        self.card_types = card_types

    def is_admin(self, event: ChatEvent) -> bool:
        username = (event.username or "").lstrip("@").lower()
        return bool(
            (username and username in self.admin_allowlist)
            or str(event.userId) in self.admin_allowlist
        )

    def _reply(self, event: ChatEvent, reply: Reply) -> None:
        self.chat.send_reply(event.userId, reply)

    def _say(self, event: ChatEvent, text: str) -> None:
        self.chat.send_message(event.userId, text)

    def handle_event(self, event: ChatEvent) -> None:
        log("chat_event", eventType=event.eventType, userId=event.userId, payload=event.payload)
        if event.eventType == COMMAND:
            self._on_command(event)
        elif event.eventType == CALLBACK:
            self._on_callback(event)
        elif event.eventType == TEXT:
            self._on_text(event)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def _on_command(self, event: ChatEvent) -> None:
        parts = (event.payload or "").split()
        command = parts[0].split("@")[0].lower() if parts else ""
        arg = parts[1] if len(parts) > 1 else ""

        if command == "/start":
            self._start(event)
        elif command == "/cancel":
            self.conversation.cancel(event.userId)
            self._say(event, "Order canceled. Use /start to begin again.")
        elif command in ("/admin", "/markpaid", "/deliver"):
            if not self.is_admin(event):
                log("admin_denied", userId=event.userId, username=event.username, command=command)
                self._say(event, ACCESS_DENIED)
                return
            self.admins.remember(event.userId)
            if command == "/admin":
                self._say(event, pending_orders_text(self.controller.list_orders(status=m.PENDING)))
            elif command == "/markpaid":
                self._admin_mark_paid(event, arg)
            else:
                self._admin_deliver(event, arg)
        else:
            self._say(event, "Unknown command. Use /start to buy a gift card.")

    def _start(self, event: ChatEvent) -> None:
        name = event.displayName or "there"
        choices = [[Button(t, f"card_{t}")] for t in self.card_types()]
        self._reply(event, Reply(
            f"Hello {name}! Welcome to the GiftCard Store.\nChoose a gift card type:",
            choices,
        ))

    def _admin_mark_paid(self, event: ChatEvent, order_id: str) -> None:
        if not order_id:
            self._say(event, "Usage: /markpaid ORDER_ID")
            return
        try:
            self.controller.mark_paid_manually(order_id)
        except OrderNotFound:
            self._say(event, "Order not found.")
            return
        except InvalidOrderState:
            self._say(event, "Order is already delivered.")
            return
        self._say(event, f"Order marked paid. Use /deliver {order_id} to deliver codes.")

    def _admin_deliver(self, event: ChatEvent, order_id: str) -> None:
        if not order_id:
            self._say(event, "Usage: /deliver ORDER_ID")
            return
        try:
            order = self.controller.deliver(order_id, notify=False)
        except OrderNotFound:
            self._say(event, "Order not found.")
            return
        except InvalidOrderState as e:
            self._say(event, f"Order not paid yet. ({e})")
            return
        except InsufficientStock:
            self._say(event, "No stock for that card/region/denomination.")
            return

        notified = self.controller.notify_buyer(order)
        if notified:
            self._say(event, "Codes delivered to user.")
        else:
            self._say(event, "Failed to send codes to user (maybe user blocked the bot). Codes added to order record.")

    # ------------------------------------------------------------------
    # Button callbacks
    # ------------------------------------------------------------------
    def _on_callback(self, event: ChatEvent) -> None:
        data = event.payload or ""
        cb = event.callbackId
        try:
            if data.startswith("card_"):
                reply = self.conversation.select_card(event.userId, data[len("card_"):])
                self._answer(cb)
                self._reply(event, reply)
            elif data.startswith("denom_"):
                reply = self.conversation.select_denom(event.userId, data[len("denom_"):])
                self._answer(cb)
                self._reply(event, reply)
            elif data == "cancel_order":
                self.conversation.cancel(event.userId)
                self._answer(cb, "Order canceled.")
                self._say(event, "Order canceled. Use /start to begin again.")
            elif data == "pay_now":
                self._answer(cb)
                self._pay(event)
            elif data.startswith("check_"):
                self._check(event, data[len("check_"):])
            else:
                self._answer(cb)
        except NoActiveSession as e:
            self._answer(cb, str(e))
        except ValidationError as e:
            self._answer(cb, str(e))

    def _answer(self, callback_id: Optional[str], text: str = "") -> None:
        if callback_id:
            self.chat.answer_callback(callback_id, text)

    def _pay(self, event: ChatEvent) -> None:
        try:
            selection = self.conversation.finalize(event.userId)
        except NoActiveSession:
            self._say(event, NO_ACTIVE_ORDER)
            return

        buyer = m.Buyer(id=str(event.userId), username=event.username, displayName=event.displayName)
        try:
            order = self.controller.create_order(selection, buyer)
        except GatewayError:
            self._say(event, "Failed to create CoinPayments transaction. Try again later.")
            return
        except (GiftbotError, RedisError) as e:
            log("order_create_failed", userId=event.userId, errorType=type(e).__name__, error=str(e)[:300])
            self._say(event, ORDER_CREATE_FAILED)
            return

        self._reply(event, Reply(
            payment_instructions(order),
            [[Button("Refresh status", f"check_{order.id}")]],
        ))

    def _check(self, event: ChatEvent, order_id: str) -> None:
        try:
            order = self.controller.get_status(order_id)
        except OrderNotFound:
            self._answer(event.callbackId, "Order not found.")
            return
        if order.buyerId != str(event.userId) and not self.is_admin(event):
            self._answer(event.callbackId, "Order not found.")
            return
        self._answer(event.callbackId)
        self._say(event, status_text(order))

    # ------------------------------------------------------------------
    # Free text
    # ------------------------------------------------------------------
    def _on_text(self, event: ChatEvent) -> None:
        step = self.conversation.current_step(event.userId)
        try:
            if step == m.CARD_CHOSEN:
                self._reply(event, self.conversation.set_region(event.userId, event.payload))
            elif step == m.DENOM_SET:
                self._reply(event, self.conversation.set_quantity(event.userId, event.payload))
            elif step == m.REGION_SET:
                self._say(event, "Please choose a denomination from the buttons above.")
            elif step == m.QUANTITY_CONFIRMED:
                self._say(event, "Press Pay to continue or Cancel to start over.")
            else:
                self._say(event, "Use /start to buy a gift card.")
        except ValidationError as e:
            self._say(event, str(e))
        except NoActiveSession as e:
            self._say(event, str(e))
