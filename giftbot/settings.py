import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


class Settings:
    BOT_TOKEN: str = os.getenv("BOT_TOKEN", "")
    TELEGRAM_API_URL: str = os.getenv("TELEGRAM_API_URL", "https://api.telegram.org").rstrip("/")
    # Optional: checked against X-Telegram-Bot-Api-Secret-Token on the webhook
    TELEGRAM_WEBHOOK_SECRET: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")
    CHAT_TIMEOUT_SEC: float = float(os.getenv("CHAT_TIMEOUT_SEC", "5"))

    # Usernames (without @) or numeric Telegram ids
    ADMINS: list = _csv(os.getenv("ADMINS", ""))

    PORT: int = int(os.getenv("PORT", "3000"))
    BASE_URL: str = os.getenv("BASE_URL", f"http://localhost:{os.getenv('PORT', '3000')}").rstrip("/")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "alerts")
    REDIS_SOCKET_TIMEOUT_SEC: float = float(os.getenv("REDIS_SOCKET_TIMEOUT_SEC", "5"))
    ALERT_JOB_TIMEOUT_SEC: int = int(os.getenv("ALERT_JOB_TIMEOUT_SEC", "60"))

    # CoinPayments
    COINPAYMENTS_KEY: str = os.getenv("COINPAYMENTS_KEY", "")
    COINPAYMENTS_SECRET: str = os.getenv("COINPAYMENTS_SECRET", "")
    COINPAYMENTS_IPN_SECRET: str = os.getenv("COINPAYMENTS_IPN_SECRET", "")
    COINPAYMENTS_MERCHANT_ID: str = os.getenv("COINPAYMENTS_MERCHANT_ID", "")
    COINPAYMENTS_API_URL: str = os.getenv("COINPAYMENTS_API_URL", "https://www.coinpayments.net/api.php")
    GATEWAY_TIMEOUT_SEC: float = float(os.getenv("GATEWAY_TIMEOUT_SEC", "10"))
    PRICE_CURRENCY: str = os.getenv("PRICE_CURRENCY", "USD")
    PAY_CURRENCY: str = os.getenv("PAY_CURRENCY", "USDT.TRC20")
    # CoinPayments wants a buyer e-mail for receipts; Telegram has none
    GATEWAY_BUYER_EMAIL: str = os.getenv("GATEWAY_BUYER_EMAIL", "")

    # Catalog
    DENOMS: list = [int(x) for x in _csv(os.getenv("DENOMS", "10,25,50,100,200,500"))]
    MAX_QUANTITY: int = int(os.getenv("MAX_QUANTITY", "10"))
    DEFAULT_CARD_TYPES: list = _csv(os.getenv(
        "DEFAULT_CARD_TYPES",
        "Amazon,iTunes,Google Play,Flexepin,Crypto Voucher,Razer Gold,Netflix,Visa",
    ))

    # Conversation sessions expire after this much inactivity (0 = never)
    SESSION_TTL_SEC: int = int(os.getenv("SESSION_TTL_SEC", "3600"))

    # Per-key locks (order, user, inventory bucket)
    LOCK_TTL_MS: int = int(os.getenv("LOCK_TTL_MS", "15000"))
    LOCK_WAIT_SEC: float = float(os.getenv("LOCK_WAIT_SEC", "5"))

    # HTTP admin surface
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

    ENABLE_LOG_REDACTION: bool = os.getenv("ENABLE_LOG_REDACTION", "true").lower() == "true"

settings = Settings()
