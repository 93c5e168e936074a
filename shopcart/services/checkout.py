"""
Checkout: turn the caller's cart into a receipt and empty the cart.

Read, price and delete are three steps, so the delete is conditional: it must
remove exactly the (line, quantity) pairs that were priced and leave nothing
behind, inside one transaction. If another request changed the cart in between,
the transaction is rolled back and the whole sequence runs again.
"""
import secrets
import time
from datetime import datetime, timezone
from typing import List, Tuple

from sqlalchemy import and_, or_
from sqlmodel import Session, select, delete, func

from shopcart.core.config import settings
from shopcart.core.errors import CheckoutConflictError, EmptyCartError
from shopcart.core.logging import get_logger, hash_identifier
from shopcart.models.cart import CartItem
from shopcart.models.product import Product
from shopcart.models.receipt import Receipt, ReceiptItem
from shopcart.services.catalog import CatalogService

logger = get_logger(__name__)

# (line id, product id, quantity)
LineSnapshot = Tuple[int, int, int]


def generate_receipt_id() -> str:
    return f"REC-{int(time.time() * 1000)}-{secrets.token_hex(6).upper()}"


def build_receipt(priced: List[Tuple[LineSnapshot, Product]], name: str, email: str) -> Receipt:
    items = [
        ReceiptItem(
            product=product.name,
            qty=qty,
            price=product.price,
            subtotal=round(product.price * qty, 2),
        )
        for (_, _, qty), product in priced
    ]
    return Receipt(
        receipt_id=generate_receipt_id(),
        total=round(sum(item.subtotal for item in items), 2),
        timestamp=datetime.now(timezone.utc),
        name=name,
        email=email,
        items=items,
    )


class CheckoutService:
    def __init__(self, session: Session, catalog: CatalogService = None):
        self.session = session
        self.catalog = catalog or CatalogService(session)

    def _snapshot_lines(self, owner_id: str) -> List[LineSnapshot]:
        # Plain rows, so a retry never sees quantities cached in the identity map
        rows = self.session.exec(
            select(CartItem.id, CartItem.product_id, CartItem.quantity)
            .where(CartItem.user_id == owner_id)
            .order_by(CartItem.id)
        ).all()
        return [tuple(row) for row in rows]

    def _delete_snapshot(self, owner_id: str, snapshot: List[LineSnapshot]) -> bool:
        unchanged = or_(*[and_(CartItem.id == line_id, CartItem.quantity == qty) for line_id, _, qty in snapshot])
        result = self.session.exec(
            delete(CartItem)
            .where(CartItem.user_id == owner_id, unchanged)
            .execution_options(synchronize_session=False)
        )
        remaining = self.session.exec(
            select(func.count()).select_from(CartItem).where(CartItem.user_id == owner_id)
        ).one()

        if result.rowcount != len(snapshot) or remaining:
            self.session.rollback()
            return False
        self.session.commit()
        return True

    def checkout(self, owner_id: str, name: str, email: str) -> Receipt:
        for attempt in range(1, settings.CHECKOUT_MAX_ATTEMPTS + 1):
            snapshot = self._snapshot_lines(owner_id)
            if not snapshot:
                raise EmptyCartError()

            # Current prices, not whatever was shown when the item was added
            products = self.catalog.get_products(product_id for _, product_id, _ in snapshot)
            priced = [(line, products[line[1]]) for line in snapshot if line[1] in products]
            if not priced:
                raise EmptyCartError("Cart has no available products")

            receipt = build_receipt(priced, name, email)
            if self._delete_snapshot(owner_id, snapshot):
                logger.info(
                    f"Checkout {receipt.receipt_id} for cart {hash_identifier(owner_id)}: "
                    f"{len(receipt.items)} items, total {receipt.total}"
                )
                return receipt

            logger.warning(f"Cart {hash_identifier(owner_id)} changed during checkout (attempt {attempt})")

        raise CheckoutConflictError()
