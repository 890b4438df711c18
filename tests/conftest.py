"""Shared fixtures: an isolated in-memory Redis and recording test doubles."""
from typing import List, Optional
from unittest.mock import MagicMock

import fakeredis
import pytest

from giftbot.chat.base import ChatClient, Choices
from giftbot.core.errors import ChatDeliveryError
from giftbot.payments.coinpayments import CoinPaymentsClient
from giftbot.wiring import build_container

IPN_SECRET = "ipn-test-secret"
BASE_URL = "https://shop.example"

TXN_RESULT = {
    "amount": "100.00000000",
    "address": "TXyTestAddress",
    "txn_id": "CPTEST123",
    "confirms_needed": "10",
    "checkout_url": "https://pay.example/checkout/CPTEST123",
    "status_url": "https://pay.example/status/CPTEST123",
}


class RecordingChat(ChatClient):
    """Records outbound messages; user ids in `unreachable` raise like a blocked bot."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.answers: List[tuple] = []
        self.unreachable = set()

    def send_message(self, user_id: str, text: str, choices: Optional[Choices] = None) -> None:
        if str(user_id) in self.unreachable:
            raise ChatDeliveryError("Forbidden: bot was blocked by the user")
        self.sent.append((str(user_id), text, choices))

    def answer_callback(self, callback_id: str, text: str = "") -> None:
        self.answers.append((callback_id, text))

    def texts_for(self, user_id: str) -> List[str]:
        return [t for u, t, _ in self.sent if u == str(user_id)]

    def last_for(self, user_id: str):
        mine = [(t, c) for u, t, c in self.sent if u == str(user_id)]
        return mine[-1] if mine else (None, None)


@pytest.fixture
def r():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def chat():
    return RecordingChat()


@pytest.fixture
def gateway():
    gw = MagicMock(spec=CoinPaymentsClient)
    gw.create_transaction.return_value = dict(TXN_RESULT)
    return gw


@pytest.fixture
def alerts():
    return MagicMock()


@pytest.fixture
def container(r, chat, gateway, alerts):
    return build_container(
        r, chat, gateway,
        alert_admins=alerts,
        admin_allowlist=["boss", "4242"],
        ipn_secret=IPN_SECRET,
        merchant_id="",
        base_url=BASE_URL,
    )


@pytest.fixture
def controller(container):
    return container.controller


@pytest.fixture
def inventory(container):
    return container.inventory


@pytest.fixture
def conversation(container):
    return container.conversation
