# Import all models to register them with SQLModel
from shopcart.models.user import User, IdentitySummary
from shopcart.models.product import Product, ProductOut
from shopcart.models.cart import CartItem, CartLineOut, CartOut, MergedCartOut
from shopcart.models.token import RevokedToken
from shopcart.models.receipt import Receipt, ReceiptItem

__all__ = [
    "User",
    "IdentitySummary",
    "Product",
    "ProductOut",
    "CartItem",
    "CartLineOut",
    "CartOut",
    "MergedCartOut",
    "RevokedToken",
    "Receipt",
    "ReceiptItem",
]
