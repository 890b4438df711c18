from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class RestockRequest(BaseModel):
    card: str = Field(min_length=1)
    region: str = Field(min_length=1)
    denom: int = Field(gt=0)
    codes: List[str] = Field(default_factory=list)


class RestockResponse(BaseModel):
    card: str
    region: str
    denom: int
    added: int
    available: int


class OrderView(BaseModel):
    id: str
    buyerId: str
    buyerUsername: Optional[str] = None
    buyerDisplayName: str = ""
    card: str
    region: str
    denom: int
    quantity: int
    totalAmount: int
    currency: str
    status: Literal["pending", "paid", "delivered"]
    createdAt: Optional[str] = None
    paidAt: Optional[str] = None
    deliveredAt: Optional[str] = None
    transaction: Optional[Dict[str, Any]] = None
    codes: Optional[List[str]] = None


class DeliverResponse(BaseModel):
    order: OrderView
    buyerNotified: bool
