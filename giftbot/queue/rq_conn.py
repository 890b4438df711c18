from redis import Redis
from rq import Queue

from giftbot.settings import settings


def get_queue() -> Queue:
    # RQ pickles job payloads, so this connection must not decode responses
    conn = Redis.from_url(
        settings.REDIS_URL,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
    )
    return Queue(settings.RQ_QUEUE_NAME, connection=conn, default_timeout=settings.ALERT_JOB_TIMEOUT_SEC)
