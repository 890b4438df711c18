from giftbot.observability.logging import log
from giftbot.store.models import PAID
from giftbot.wiring import get_container


def stock_alert_text(order) -> str:
    return (
        f"Order {order.id} is paid but stock is insufficient.\n"
        f"{order.card} / {order.region} / {order.denom} x{order.quantity} "
        f"(total {order.totalAmount} {order.currency}) for @{order.buyerUsername or 'unknown'}.\n"
        f"Restock, then run /deliver {order.id}"
    )


def send_admin_alert_job(order_id: str) -> int:
    """
    Background job: message every admin chat about a paid order waiting for
    stock. Returns how many admins were reached.
    """
    c = get_container()
    order = c.orders.find_by_id(order_id)
    if order.status != PAID:
        log("admin_alert_obsolete", orderId=order_id, status=order.status)
        return 0

    recipients = c.admins.chat_ids()
    if not recipients:
        log("admin_alert_no_recipients", orderId=order_id)
        return 0

    text = stock_alert_text(order)
    sent = 0
    for chat_id in recipients:
        try:
            c.chat.send_message(chat_id, text)
            sent += 1
        except Exception as e:
            log("admin_alert_send_failed", orderId=order_id, chatId=chat_id, error=str(e)[:200])

    log("admin_alert_sent", orderId=order_id, sent=sent, recipients=len(recipients))
    if sent == 0:
        # Let RQ's Retry policy try again later
        raise RuntimeError(f"Admin alert for {order_id} reached no admin")
    return sent
