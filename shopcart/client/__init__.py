from shopcart.client.api import ShopClient, ShopClientError
from shopcart.client.local_cart import CART_STORAGE_KEY, LocalCart, LocalCartLine, LocalCartRepository

__all__ = [
    "ShopClient",
    "ShopClientError",
    "CART_STORAGE_KEY",
    "LocalCart",
    "LocalCartLine",
    "LocalCartRepository",
]
