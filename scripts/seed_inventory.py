"""
Load gift card codes into Redis from a products file shaped

    {"AMAZON": {"US": {"25": ["CODE1", "CODE2"]}}}

Codes already stocked once (even if since dispensed) are skipped, so the
script is safe to re-run with the same file.

    python scripts/seed_inventory.py products.json
"""
import json
import sys

from giftbot.store.inventory_repo import InventoryRepo
from giftbot.store.redis_conn import get_redis


def main(path: str) -> int:
    with open(path, "r", encoding="utf-8") as fh:
        products = json.load(fh)
    repo = InventoryRepo(get_redis())
    added = repo.load_products(products)
    print(f"Seeded {added} codes from {path}")
    for card, regions in repo.snapshot().items():
        for region, denoms in regions.items():
            for denom, left in denoms.items():
                print(f"  {card} {region} {denom}: {left}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else "products.json"))
