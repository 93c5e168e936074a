from typing import List, Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

from shopcart.models.product import ProductOut


class CartItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Guest and account ids share this column
    user_id: str = Field(index=True)
    product_id: int = Field(foreign_key="product.id")

    # Cart Details
    quantity: int = Field(default=1, ge=1)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CartLineOut(SQLModel):
    id: int
    product_id: int
    product: ProductOut
    quantity: int
    subtotal: float


class CartOut(SQLModel):
    lines: List[CartLineOut]
    total: float
    count: int


class MergedCartOut(CartOut):
    merged: int
