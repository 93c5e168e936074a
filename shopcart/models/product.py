from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import datetime


class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(index=True)
    price: float = Field(ge=0)
    image: str

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ProductOut(SQLModel):
    id: int
    name: str
    price: float
    image: str
