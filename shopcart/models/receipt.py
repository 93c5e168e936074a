from typing import List
from datetime import datetime
from pydantic import BaseModel, ConfigDict


class ReceiptItem(BaseModel):
    """Point-in-time copy of a cart line, detached from the live catalog."""
    model_config = ConfigDict(frozen=True)

    product: str
    qty: int
    price: float
    subtotal: float


class Receipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    receipt_id: str
    total: float
    timestamp: datetime
    name: str
    email: str
    items: List[ReceiptItem]
