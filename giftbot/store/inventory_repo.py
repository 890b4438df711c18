import json
from typing import Dict, Iterable, List

from redis import Redis

from giftbot.core.errors import InsufficientStock
from giftbot.observability.logging import log
from giftbot.utils.lock import key_lock

BUCKET_PREFIX = "inventory:bucket:"
BUCKETS_KEY = "inventory:buckets"   # SET of json [card, region, denom]
SEEN_CODES_KEY = "inventory:codes"  # SET of every code ever stocked


def _bucket_name(card: str, region: str, denom: int) -> str:
    return f"{card}:{region}:{int(denom)}"


def _bucket_key(card: str, region: str, denom: int) -> str:
    return f"{BUCKET_PREFIX}{_bucket_name(card, region, denom)}"


class InventoryRepo:
    """
    Gift card codes per (card, region, denomination), each bucket a Redis
    list consumed from the head (FIFO).

    A code is accepted into stock at most once: every stocked code is also
    recorded in a global set, so a dispensed code can never be restocked and
    handed out again.
    """

    def __init__(self, r: Redis):
        self.r = r

    def lock_bucket(self, card: str, region: str, denom: int):
        return key_lock(self.r, f"bucket:{_bucket_name(card, region, denom)}")

    def take_codes(self, card: str, region: str, denom: int, quantity: int) -> List[str]:
        """
        Remove and return the first `quantity` codes of the bucket.
        Raises InsufficientStock (with no mutation) when the bucket is absent
        or shorter than `quantity`.
        """
        quantity = int(quantity)
        if quantity < 1:
            raise ValueError("quantity must be >= 1")

        key = _bucket_key(card, region, denom)
        with self.lock_bucket(card, region, denom):
            available = int(self.r.llen(key) or 0)
            if available < quantity:
                raise InsufficientStock(
                    f"No stock for {card}/{region}/{denom}: have={available}, need={quantity}"
                )
            pipe = self.r.pipeline(transaction=True)
            pipe.lrange(key, 0, quantity - 1)
            pipe.ltrim(key, quantity, -1)
            codes, _ = pipe.execute()

        log("inventory_taken", card=card, region=region, denom=int(denom),
            quantity=quantity, remaining=available - quantity)
        return list(codes)

    def add_codes(self, card: str, region: str, denom: int, codes: Iterable[str]) -> int:
        """Append new codes to the tail of a bucket. Returns how many were accepted."""
        key = _bucket_key(card, region, denom)
        added = 0
        skipped = 0
        with self.lock_bucket(card, region, denom):
            for code in codes:
                code = (code or "").strip()
                if not code:
                    continue
                if not self.r.sadd(SEEN_CODES_KEY, code):
                    skipped += 1
                    continue
                self.r.rpush(key, code)
                added += 1
            if added:
                self.r.sadd(BUCKETS_KEY, json.dumps([card, region, int(denom)]))

        log("inventory_restocked", card=card, region=region, denom=int(denom),
            added=added, skippedDuplicates=skipped)
        return added

    def count(self, card: str, region: str, denom: int) -> int:
        return int(self.r.llen(_bucket_key(card, region, denom)) or 0)

    def _buckets(self) -> List[tuple]:
        out = []
        for member in self.r.smembers(BUCKETS_KEY) or []:
            card, region, denom = json.loads(member)
            out.append((card, region, int(denom)))
        return sorted(out)

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        """card -> region -> denom (as string) -> codes left."""
        out: Dict[str, Dict[str, Dict[str, int]]] = {}
        for card, region, denom in self._buckets():
            out.setdefault(card, {}).setdefault(region, {})[str(denom)] = self.count(card, region, denom)
        return out

    def card_types(self) -> List[str]:
        seen = []
        for card, _, _ in self._buckets():
            if card not in seen:
                seen.append(card)
        return seen

    def load_products(self, products: dict) -> int:
        """
        Import a products file shaped card -> region -> denom -> [codes].
        Returns the number of codes accepted.
        """
        total = 0
        for card, regions in (products or {}).items():
            for region, denoms in (regions or {}).items():
                for denom, codes in (denoms or {}).items():
                    total += self.add_codes(card, str(region).upper(), int(denom), codes or [])
        return total
