"""
Conversation session manager.

Walks one buyer through card -> region -> denomination -> quantity, one
stored session per user id:

    (none) -> CARD_CHOSEN -> REGION_SET -> DENOM_SET -> QUANTITY_CONFIRMED -> (finalized | cancelled)

Every operation runs under the user's lock. A rejected input never mutates
the session.
"""
import re
from typing import Callable, List, Optional

from giftbot.chat.base import Button, Reply
from giftbot.core.errors import NoActiveSession, ValidationError
from giftbot.observability.logging import log
from giftbot.settings import settings
from giftbot.store import models as m
from giftbot.store.session_repo import SessionRepo

REGION_RE = re.compile(r"^[A-Z0-9_-]{2,16}$")

RESTART_HINT = "Please start with /start and select a card."


def order_summary(card: str, region: str, denom: int, quantity: int, currency: str) -> str:
    return (
        "Order summary:\n"
        f"Card: {card}\n"
        f"Region: {region}\n"
        f"Denom: {denom} {currency}\n"
        f"Quantity: {quantity}\n"
        f"Total: {denom * quantity} {currency}\n\n"
        "Press Pay to create a crypto payment (CoinPayments)."
    )


class ConversationManager:
    def __init__(self, sessions: SessionRepo, card_types: Callable[[], List[str]],
                 denoms: Optional[List[int]] = None, max_quantity: int = None, currency: str = None):
        self.sessions = sessions
        self.card_types = card_types
        self.denoms = list(denoms or settings.DENOMS)
        self.max_quantity = int(max_quantity or settings.MAX_QUANTITY)
        self.currency = currency or settings.PRICE_CURRENCY

    def _require(self, user_id: str, step: str) -> m.ChatSession:
        session = self.sessions.load(user_id)
        if session is None or session.step != step:
            raise NoActiveSession(RESTART_HINT)
        return session

    def select_card(self, user_id: str, card: str) -> Reply:
        card = (card or "").strip()
        if card not in self.card_types():
            raise ValidationError(f"Unknown card type: {card}")

        with self.sessions.lock(user_id):
            # Always overwrite: a stale session must not leak into a new order
            self.sessions.save(m.ChatSession(userId=str(user_id), step=m.CARD_CHOSEN, card=card))

        log("session_card_chosen", userId=user_id, card=card)
        return Reply(f"Selected: {card}\nPlease type region (e.g. US, UK, AU, GLOBAL)")

    def set_region(self, user_id: str, text: str) -> Reply:
        region = (text or "").strip().upper()
        with self.sessions.lock(user_id):
            session = self._require(user_id, m.CARD_CHOSEN)
            if not REGION_RE.match(region):
                raise ValidationError("Please type a region code such as US, UK, AU or GLOBAL.")
            session.region = region
            session.step = m.REGION_SET
            self.sessions.save(session)

        choices = [[Button(f"{d} {self.currency}", f"denom_{d}")] for d in self.denoms]
        return Reply(f"Region set: {region}\nChoose denomination:", choices)

    def select_denom(self, user_id: str, value) -> Reply:
        with self.sessions.lock(user_id):
            session = self._require(user_id, m.REGION_SET)
            if not session.card or not session.region:
                raise NoActiveSession(RESTART_HINT)
            try:
                denom = int(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Unknown denomination: {value}")
            if denom not in self.denoms:
                raise ValidationError(f"Unknown denomination: {value}")

            session.denom = denom
            session.quantity = 1
            session.step = m.DENOM_SET
            self.sessions.save(session)

        return Reply(
            f"You chose {session.card} - {denom} {self.currency} - Region {session.region}\n"
            f"How many do you want? (send a number, max {self.max_quantity})"
        )

    def set_quantity(self, user_id: str, text: str) -> Reply:
        with self.sessions.lock(user_id):
            session = self._require(user_id, m.DENOM_SET)
            raw = (text or "").strip()
            if not raw.isdecimal():
                raise ValidationError(f"Please send a valid quantity number (1-{self.max_quantity}).")
            quantity = int(raw)
            if quantity < 1 or quantity > self.max_quantity:
                raise ValidationError(f"Please send a valid quantity number (1-{self.max_quantity}).")

            session.quantity = quantity
            session.quantityConfirmed = True
            session.step = m.QUANTITY_CONFIRMED
            self.sessions.save(session)

        summary = order_summary(session.card, session.region, session.denom, quantity, self.currency)
        return Reply(summary, [[
            Button("Pay with CoinPayments", "pay_now"),
            Button("Cancel", "cancel_order"),
        ]])

    def cancel(self, user_id: str) -> bool:
        with self.sessions.lock(user_id):
            removed = self.sessions.delete(user_id)
        if removed:
            log("session_cancelled", userId=user_id)
        return removed

    def finalize(self, user_id: str) -> m.Selection:
        """
        Consume a confirmed session. The session is gone afterwards, so a
        second Pay tap raises NoActiveSession instead of creating a second order.
        """
        with self.sessions.lock(user_id):
            session = self._require(user_id, m.QUANTITY_CONFIRMED)
            self.sessions.delete(user_id)

        return m.Selection(
            card=session.card,
            region=session.region,
            denom=int(session.denom),
            quantity=int(session.quantity),
        )

    def current_step(self, user_id: str) -> Optional[str]:
        session = self.sessions.load(user_id)
        return session.step if session else None
