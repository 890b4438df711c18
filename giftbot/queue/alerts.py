from rq import Retry

from giftbot.observability.logging import log
from giftbot.queue.rq_conn import get_queue

# Referenced by path so the controller does not import the worker graph
ADMIN_ALERT_JOB = "giftbot.queue.jobs.send_admin_alert_job"


def enqueue_admin_alert(order_id: str) -> None:
    """Queue a 'paid but out of stock' alert to every known admin chat."""
    q = get_queue()
    job = q.enqueue(
        ADMIN_ALERT_JOB,
        order_id,
        retry=Retry(max=3, interval=[10, 30, 60]),
    )
    log("admin_alert_queued", orderId=order_id, jobId=getattr(job, "id", None))
