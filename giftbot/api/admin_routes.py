from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from giftbot.api.auth import require_admin
from giftbot.api.schemas import DeliverResponse, OrderView, RestockRequest, RestockResponse
from giftbot.core.errors import InsufficientStock, InvalidOrderState, OrderNotFound
from giftbot.observability.logging import log
from giftbot.store import models as m
from giftbot.wiring import Container, get_container

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _view(order: m.Order) -> OrderView:
    return OrderView(**asdict(order))


@router.get("/orders", response_model=List[OrderView])
def list_orders(
    status: Optional[str] = Query(default=None, pattern="^(pending|paid|delivered)$"),
    limit: int = Query(default=100, ge=1, le=1000),
    c: Container = Depends(get_container),
):
    """Newest first."""
    return [_view(o) for o in c.controller.list_orders(status=status, limit=limit)]


@router.get("/orders/{order_id}", response_model=OrderView)
def get_order(order_id: str, c: Container = Depends(get_container)):
    try:
        return _view(c.controller.get_status(order_id))
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")


@router.post("/orders/{order_id}/mark-paid", response_model=OrderView)
def mark_paid(order_id: str, c: Container = Depends(get_container)):
    try:
        order = c.controller.mark_paid_manually(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidOrderState as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _view(order)


@router.post("/orders/{order_id}/deliver", response_model=DeliverResponse)
def deliver(order_id: str, c: Container = Depends(get_container)):
    try:
        order = c.controller.deliver(order_id, notify=False)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidOrderState as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InsufficientStock as e:
        raise HTTPException(status_code=409, detail=str(e))
    notified = c.controller.notify_buyer(order)
    return DeliverResponse(order=_view(order), buyerNotified=notified)


@router.get("/inventory")
def inventory_snapshot(c: Container = Depends(get_container)):
    """card -> region -> denom -> codes left."""
    return c.inventory.snapshot()


@router.post("/inventory", response_model=RestockResponse)
def restock(req: RestockRequest, c: Container = Depends(get_container)):
    region = req.region.strip().upper()
    added = c.inventory.add_codes(req.card, region, req.denom, req.codes)
    log("admin_restock", card=req.card, region=region, denom=req.denom,
        submitted=len(req.codes), added=added)
    return RestockResponse(
        card=req.card,
        region=region,
        denom=req.denom,
        added=added,
        available=c.inventory.count(req.card, region, req.denom),
    )


@router.get("/stats")
def stats(c: Container = Depends(get_container)):
    """Order-flow counters plus a per-status count of the most recent orders."""
    recent = c.controller.list_orders(limit=1000)
    by_status = {s: 0 for s in m.STATUS_RANK}
    for o in recent:
        by_status[o.status] = by_status.get(o.status, 0) + 1
    return {"counters": c.metrics.snapshot(), "orders": by_status}
