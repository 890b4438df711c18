from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from giftbot.api.admin_routes import router as admin_router
from giftbot.api.routes import router
from giftbot.core.errors import LockTimeout
from giftbot.observability.logging import log
from giftbot.settings import settings

app = FastAPI(title="Gift Card Bot")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.exception_handler(LockTimeout)
async def lock_timeout_handler(request: Request, exc: LockTimeout):
    # Contended order/bucket: callers (and the gateway's IPN retry) try again
    log("request_busy", path=request.url.path, error=str(exc)[:200])
    return JSONResponse(status_code=503, content={"detail": "Busy, retry later"})


@app.get("/")
def root():
    return {"status": "ok", "message": "Gift card bot is running. Telegram updates go to /telegram/webhook."}


@app.get("/health")
def health():
    return {"status": "ok"}


log(
    "app_boot",
    admins=len(settings.ADMINS),
    webhookSecretSet=bool(settings.TELEGRAM_WEBHOOK_SECRET),
    ipnSecretSet=bool(settings.COINPAYMENTS_IPN_SECRET),
    gatewayKeysSet=bool(settings.COINPAYMENTS_KEY and settings.COINPAYMENTS_SECRET),
    baseUrl=settings.BASE_URL,
)
