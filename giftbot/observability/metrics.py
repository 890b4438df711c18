"""
Order-flow counters
-------------------
Lightweight Redis counters consumed by /admin/stats. Counting is
best-effort: a Redis hiccup while incrementing is logged and never fails
the order operation that triggered it.
"""
from __future__ import annotations
import time
from typing import Dict

from redis import Redis

from giftbot.observability.logging import log

PREFIX = "metrics:"

ORDERS_CREATED = "orders_created"
ORDERS_PAID = "orders_paid"
ORDERS_DELIVERED = "orders_delivered"
IPN_RECEIVED = "ipn_received"
IPN_REJECTED = "ipn_rejected"
STOCK_SHORTAGES = "stock_shortages"
GATEWAY_ERRORS = "gateway_errors"

COUNTERS = (
    ORDERS_CREATED,
    ORDERS_PAID,
    ORDERS_DELIVERED,
    IPN_RECEIVED,
    IPN_REJECTED,
    STOCK_SHORTAGES,
    GATEWAY_ERRORS,
)


class Metrics:
    def __init__(self, r: Redis):
        self.r = r

    def increment(self, name: str, amount: int = 1) -> None:
        try:
            self.r.incr(f"{PREFIX}{name}", amount)
        except Exception as e:
            log("metrics_increment_failed", counter=name, error=str(e)[:200])

    def snapshot(self) -> Dict[str, int]:
        out = {name: int(self.r.get(f"{PREFIX}{name}") or 0) for name in COUNTERS}
        out["snapshot_at"] = int(time.time())
        return out
