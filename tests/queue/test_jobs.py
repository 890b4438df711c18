from unittest.mock import MagicMock, patch

import pytest

from giftbot.queue.alerts import ADMIN_ALERT_JOB, enqueue_admin_alert
from giftbot.queue.jobs import send_admin_alert_job, stock_alert_text
from giftbot.store import models as m


@pytest.fixture
def paid_order(container):
    order = container.controller.create_order(
        m.Selection("Amazon", "US", 50, 2), m.Buyer(id="100", username="alice"))
    return container.controller.mark_paid_manually(order.id)


@patch("giftbot.queue.alerts.get_queue")
def test_enqueue_admin_alert(mock_get_queue):
    mock_queue = MagicMock()
    mock_get_queue.return_value = mock_queue

    enqueue_admin_alert("order1")

    args, kwargs = mock_queue.enqueue.call_args
    assert args == (ADMIN_ALERT_JOB, "order1")
    assert kwargs["retry"].max == 3


def test_alert_text_names_the_order(paid_order):
    text = stock_alert_text(paid_order)
    assert paid_order.id in text
    assert "Amazon / US / 50 x2" in text
    assert f"/deliver {paid_order.id}" in text


def test_job_messages_every_known_admin(container, chat, paid_order):
    container.admins.remember("555")
    container.admins.remember("777")

    with patch("giftbot.queue.jobs.get_container", return_value=container):
        assert send_admin_alert_job(paid_order.id) == 2

    assert paid_order.id in chat.texts_for("555")[0]
    assert paid_order.id in chat.texts_for("777")[0]


def test_job_skips_orders_no_longer_paid(container, chat, inventory, paid_order):
    inventory.add_codes("Amazon", "US", 50, ["C1", "C2"])
    container.controller.deliver(paid_order.id)
    container.admins.remember("555")

    with patch("giftbot.queue.jobs.get_container", return_value=container):
        assert send_admin_alert_job(paid_order.id) == 0
    assert chat.texts_for("555") == []


def test_job_without_admins(container, paid_order):
    with patch("giftbot.queue.jobs.get_container", return_value=container):
        assert send_admin_alert_job(paid_order.id) == 0


def test_job_raises_when_no_admin_reachable(container, chat, paid_order):
    container.admins.remember("555")
    chat.unreachable.add("555")

    with patch("giftbot.queue.jobs.get_container", return_value=container):
        with pytest.raises(RuntimeError):
            send_admin_alert_job(paid_order.id)


def test_job_logs_event_names(container, chat, paid_order):
    container.admins.remember("555")

    with patch("giftbot.queue.jobs.get_container", return_value=container), \
            patch("giftbot.queue.jobs.log") as mock_log:
        send_admin_alert_job(paid_order.id)

    args, kwargs = mock_log.call_args
    assert args == ("admin_alert_sent",)
    assert kwargs == {"orderId": paid_order.id, "sent": 1, "recipients": 1}
