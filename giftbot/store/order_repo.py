import json
import time
from dataclasses import asdict, fields as dc_fields
from typing import Callable, List, Optional

from redis import Redis

from giftbot.core.errors import OrderNotFound
from giftbot.store.models import Order
from giftbot.utils.lock import key_lock

PREFIX = "order:"
INDEX_KEY = "orders:index"  # ZSET order id -> created epoch


def _key(order_id: str) -> str:
    return f"{PREFIX}{order_id}"


def _to_order(raw: str) -> Order:
    data = json.loads(raw)
    allowed = {f.name for f in dc_fields(Order)}
    return Order(**{k: v for k, v in data.items() if k in allowed})


class OrderRepo:
    """
    Durable order ledger. One JSON record per order id plus a creation-time
    index used for admin listings.

    Writers that need read-modify-write go through `update()` (or hold
    `lock()` themselves) so two writers never interleave on one order.
    """

    def __init__(self, r: Redis):
        self.r = r

    def lock(self, order_id: str):
        return key_lock(self.r, f"order:{order_id}")

    def create(self, order: Order) -> Order:
        """Insert a new order. Raises ValueError if the id is already taken."""
        if not self.r.set(_key(order.id), json.dumps(asdict(order)), nx=True):
            raise ValueError(f"Order id already exists: {order.id}")
        self.r.zadd(INDEX_KEY, {order.id: time.time()})
        return order

    def find_by_id(self, order_id: str) -> Order:
        raw = self.r.get(_key(order_id)) if order_id else None
        if not raw:
            raise OrderNotFound(f"Order {order_id} not found")
        return _to_order(raw)

    def put(self, order: Order) -> None:
        """Overwrite an existing record. Callers must hold lock(order.id)."""
        self.r.set(_key(order.id), json.dumps(asdict(order)))

    def update(self, order_id: str, mutator: Callable[[Order], None]) -> Order:
        """
        Apply `mutator` to the stored order under the per-order lock.
        If the mutator raises, nothing is written.
        """
        with self.lock(order_id):
            order = self.find_by_id(order_id)
            mutator(order)
            self.put(order)
            return order

    def list_orders(self, status: Optional[str] = None, limit: int = 100) -> List[Order]:
        """Newest first, optionally filtered by status."""
        out: List[Order] = []
        ids = self.r.zrevrange(INDEX_KEY, 0, -1) or []
        for order_id in ids:
            raw = self.r.get(_key(order_id))
            if not raw:
                continue
            order = _to_order(raw)
            if status and order.status != status:
                continue
            out.append(order)
            if len(out) >= limit:
                break
        return out
