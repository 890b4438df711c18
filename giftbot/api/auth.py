import hmac

from fastapi import Header, HTTPException

from giftbot.settings import settings


def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Enabled but no key configured: reject all
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if not hmac.compare_digest(x_admin_key.encode(), settings.ADMIN_API_KEY.encode()):
        raise HTTPException(status_code=403, detail="Invalid admin key")


def require_webhook_secret(
    x_telegram_bot_api_secret_token: str = Header(default="", alias="x-telegram-bot-api-secret-token"),
):
    """
    Telegram echoes the secret_token given to setWebhook in this header.
    With TELEGRAM_WEBHOOK_SECRET empty, every request is accepted.
    """
    if not settings.TELEGRAM_WEBHOOK_SECRET:
        return
    if x_telegram_bot_api_secret_token != settings.TELEGRAM_WEBHOOK_SECRET:
        raise HTTPException(status_code=401, detail="Invalid webhook secret")
