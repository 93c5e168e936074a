from typing import List, Tuple
from datetime import datetime
from sqlmodel import Session, select

from shopcart.core.errors import NotFoundError, ValidationFailedError
from shopcart.core.logging import get_logger, hash_identifier
from shopcart.models.cart import CartItem, CartLineOut, CartOut
from shopcart.models.product import Product, ProductOut
from shopcart.services.catalog import CatalogService

logger = get_logger(__name__)


def line_out(item: CartItem, product: Product) -> CartLineOut:
    return CartLineOut(
        id=item.id,
        product_id=item.product_id,
        product=ProductOut(id=product.id, name=product.name, price=product.price, image=product.image),
        quantity=item.quantity,
        subtotal=round(product.price * item.quantity, 2),
    )


class CartService:
    """Cart lines scoped to one owning identity id.

    Writes are check-then-write; two concurrent adds of the same product may lose
    an increment.
    """

    def __init__(self, session: Session, catalog: CatalogService = None):
        self.session = session
        self.catalog = catalog or CatalogService(session)

    def get_items(self, owner_id: str) -> List[CartItem]:
        return self.session.exec(
            select(CartItem).where(CartItem.user_id == owner_id).order_by(CartItem.id)
        ).all()

    def get_cart(self, owner_id: str) -> CartOut:
        """Get all cart lines with current product details"""
        items = self.get_items(owner_id)
        products = self.catalog.get_products(item.product_id for item in items)

        lines = [line_out(item, products[item.product_id]) for item in items if item.product_id in products]
        total = sum(line.subtotal for line in lines)
        count = sum(line.quantity for line in lines)
        return CartOut(lines=lines, total=round(total, 2), count=count)

    def add_to_cart(self, owner_id: str, product_id: int, quantity: int = 1) -> Tuple[CartLineOut, bool]:
        """Add item to cart or increase its quantity. Returns the line and whether it was created."""
        if quantity < 1:
            raise ValidationFailedError("Quantity must be at least 1")

        product = self.catalog.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        existing_item = self.session.exec(
            select(CartItem).where(
                CartItem.user_id == owner_id,
                CartItem.product_id == product_id
            )
        ).first()

        if existing_item:
            existing_item.quantity += quantity
            existing_item.updated_at = datetime.utcnow()
            item = existing_item
            created = False
        else:
            item = CartItem(
                user_id=owner_id,
                product_id=product_id,
                quantity=quantity
            )
            created = True

        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return line_out(item, product), created

    def remove_from_cart(self, owner_id: str, line_id: int) -> None:
        """Remove a line; lines owned by someone else look the same as missing ones."""
        item = self.session.get(CartItem, line_id)
        if not item or item.user_id != owner_id:
            raise NotFoundError("Cart item not found")

        self.session.delete(item)
        self.session.commit()
        logger.info(f"Removed line {line_id} from cart {hash_identifier(owner_id)}")
