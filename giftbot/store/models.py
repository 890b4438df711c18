from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Order statuses, in lifecycle order
PENDING = "pending"
PAID = "paid"
DELIVERED = "delivered"

STATUS_RANK = {PENDING: 0, PAID: 1, DELIVERED: 2}

# Conversation steps (no stored session == NoSession)
CARD_CHOSEN = "CARD_CHOSEN"
REGION_SET = "REGION_SET"
DENOM_SET = "DENOM_SET"
QUANTITY_CONFIRMED = "QUANTITY_CONFIRMED"


@dataclass
class ChatSession:
    userId: str = ""
    step: str = CARD_CHOSEN
    card: Optional[str] = None
    region: Optional[str] = None
    denom: Optional[int] = None
    quantity: int = 1
    quantityConfirmed: bool = False
    updatedAtEpoch: Optional[int] = None


@dataclass
class Selection:
    """A completed conversation: everything needed to price and place an order."""
    card: str
    region: str
    denom: int
    quantity: int

    @property
    def total(self) -> int:
        return self.denom * self.quantity


@dataclass
class Buyer:
    id: str
    username: Optional[str] = None
    displayName: str = ""


@dataclass
class Order:
    id: str
    buyerId: str
    card: str
    region: str
    denom: int
    quantity: int
    totalAmount: int
    currency: str = "USD"
    status: str = PENDING
    buyerUsername: Optional[str] = None
    buyerDisplayName: str = ""
    createdAt: str = ""
    paidAt: Optional[str] = None
    deliveredAt: Optional[str] = None

    # Gateway `result` payload plus the latest IPN ("ipn") and an
    # "ipnHistory" list of received status codes.
    transaction: Optional[Dict[str, Any]] = None

    # Set if and only if status == delivered
    codes: Optional[List[str]] = None

    def __post_init__(self):
        self.denom = int(self.denom)
        self.quantity = int(self.quantity)
        self.totalAmount = int(self.totalAmount)
        self.buyerId = str(self.buyerId)
