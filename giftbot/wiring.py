from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from redis import Redis

from giftbot.chat.base import ChatClient
from giftbot.chat.telegram import TelegramClient
from giftbot.core.bot import ChatBot
from giftbot.core.conversation import ConversationManager
from giftbot.core.orders import OrderController
from giftbot.observability.metrics import Metrics
from giftbot.payments.coinpayments import CoinPaymentsClient
from giftbot.queue.alerts import enqueue_admin_alert
from giftbot.settings import settings
from giftbot.store.admin_repo import AdminDirectory
from giftbot.store.inventory_repo import InventoryRepo
from giftbot.store.order_repo import OrderRepo
from giftbot.store.redis_conn import get_redis
from giftbot.store.session_repo import SessionRepo


@dataclass
class Container:
    redis: Redis
    sessions: SessionRepo
    orders: OrderRepo
    inventory: InventoryRepo
    admins: AdminDirectory
    metrics: Metrics
    chat: ChatClient
    gateway: CoinPaymentsClient
    conversation: ConversationManager
    controller: OrderController
    bot: ChatBot


def build_container(r: Redis, chat: ChatClient, gateway: CoinPaymentsClient,
                    alert_admins=enqueue_admin_alert, admin_allowlist: Optional[List[str]] = None,
                    **controller_kwargs) -> Container:
    sessions = SessionRepo(r)
    orders = OrderRepo(r)
    inventory = InventoryRepo(r)
    admins = AdminDirectory(r)
    metrics = Metrics(r)

    def card_types() -> List[str]:
        return inventory.card_types() or list(settings.DEFAULT_CARD_TYPES)

    conversation = ConversationManager(sessions, card_types)
    controller = OrderController(orders, inventory, gateway, chat, metrics,
                                 alert_admins=alert_admins, **controller_kwargs)
    allowlist = settings.ADMINS if admin_allowlist is None else admin_allowlist
    bot = ChatBot(conversation, controller, chat, admins, allowlist, card_types)
    return Container(
        redis=r,
        sessions=sessions,
        orders=orders,
        inventory=inventory,
        admins=admins,
        metrics=metrics,
        chat=chat,
        gateway=gateway,
        conversation=conversation,
        controller=controller,
        bot=bot,
    )


@lru_cache(maxsize=1)
def get_container() -> Container:
    """Process-wide stores and services, built from settings on first use."""
    return build_container(get_redis(), TelegramClient(), CoinPaymentsClient())
