#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import giftbot.main
    print("Import giftbot.main: OK")

    import giftbot.queue.jobs
    print("Import giftbot.queue.jobs: OK")

    from giftbot.settings import settings
    missing = [name for name in ("BOT_TOKEN", "COINPAYMENTS_KEY", "COINPAYMENTS_SECRET", "COINPAYMENTS_IPN_SECRET")
               if not getattr(settings, name)]
    if missing:
        print(f"[WARN] unset: {', '.join(missing)}")
    if not settings.ADMINS:
        print("[WARN] ADMINS is empty; nobody can use /admin, /markpaid or /deliver")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
