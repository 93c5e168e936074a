"""
Cart reconciliation.

``merge_lines`` is the one merge rule in the code base: quantities of matching
products are summed, nothing is ever decremented or dropped. The server uses it to
fold a guest cart or a client-local cart into an account cart, and the client uses
it for its own local cart (see ``shopcart.client.local_cart``).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, delete

from shopcart.core.logging import get_logger, hash_identifier
from shopcart.models.cart import CartItem
from shopcart.services.catalog import CatalogService

logger = get_logger(__name__)

SourceLine = Tuple[Hashable, int]


def merge_lines(source: Iterable[SourceLine], target: Mapping[Hashable, int]) -> Dict[Hashable, int]:
    """Merge (product, qty) pairs into a product -> qty mapping by summing quantities.

    Neither input is modified. Products absent from both sides are absent from the result.
    """
    merged = dict(target)
    for product_id, qty in source:
        merged[product_id] = merged.get(product_id, 0) + qty
    return merged


def _coerce_product_id(value: Any) -> Optional[int]:
    # Client carts may hold the whole product object instead of its id
    if isinstance(value, dict):
        value = value.get("id", value.get("_id"))
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def parse_local_cart(raw: Any) -> List[Tuple[int, int]]:
    """Turn a client-supplied cart payload into (product_id, qty) pairs.

    Malformed entries are dropped; a payload that is not a list yields nothing.
    """
    if not isinstance(raw, list):
        return []

    lines = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        product_id = _coerce_product_id(entry.get("productId", entry.get("product_id")))
        qty = entry.get("qty", entry.get("quantity"))
        if product_id is None or isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            continue
        lines.append((product_id, qty))
    return lines


@dataclass
class MergeReport:
    merged: int = 0
    skipped: int = 0
    failed: int = 0
    failed_products: Set[int] = field(default_factory=set)


class CartReconciler:
    """Applies ``merge_lines`` to the cart store.

    Best effort: a line that cannot be written is logged and skipped, lines already
    written stay written.
    """

    def __init__(self, session: Session, catalog: Optional[CatalogService] = None):
        self.session = session
        self.catalog = catalog or CatalogService(session)

    def _lines_for(self, owner_id: str) -> List[CartItem]:
        return self.session.exec(select(CartItem).where(CartItem.user_id == owner_id).order_by(CartItem.id)).all()

    def merge_into(self, owner_id: str, source: Iterable[Tuple[int, int]]) -> MergeReport:
        report = MergeReport()
        source = list(source)
        if not source:
            return report

        known = self.catalog.get_products(product_id for product_id, _ in source)
        valid = []
        for product_id, qty in source:
            if product_id in known:
                valid.append((product_id, qty))
            else:
                report.skipped += 1
                logger.info(f"Skipping unknown product {product_id} while merging into cart {hash_identifier(owner_id)}")

        existing = {line.product_id: line for line in self._lines_for(owner_id)}
        merged = merge_lines(valid, {product_id: line.quantity for product_id, line in existing.items()})

        entries_per_product: Dict[int, int] = {}
        for product_id, _ in valid:
            entries_per_product[product_id] = entries_per_product.get(product_id, 0) + 1

        for product_id, entries in entries_per_product.items():
            line = existing.get(product_id)
            try:
                if line:
                    line.quantity = merged[product_id]
                    line.updated_at = datetime.utcnow()
                else:
                    line = CartItem(user_id=owner_id, product_id=product_id, quantity=merged[product_id])
                self.session.add(line)
                self.session.commit()
                report.merged += entries
            except SQLAlchemyError:
                self.session.rollback()
                report.failed += entries
                report.failed_products.add(product_id)
                logger.exception(f"Failed to merge product {product_id} into cart {hash_identifier(owner_id)}")

        return report

    def absorb_cart(self, source_owner_id: str, target_owner_id: str) -> MergeReport:
        """Fold one identity's cart into another's, then delete the source lines.

        Lines that could not be written to the target stay in the source cart.
        """
        source_lines = self._lines_for(source_owner_id)
        if not source_lines:
            return MergeReport()

        report = self.merge_into(target_owner_id, [(line.product_id, line.quantity) for line in source_lines])

        absorbed = delete(CartItem).where(CartItem.user_id == source_owner_id)
        if report.failed_products:
            absorbed = absorbed.where(CartItem.product_id.not_in(sorted(report.failed_products)))
        self.session.exec(absorbed)
        self.session.commit()
        logger.info(
            f"Merged {report.merged} items from cart {hash_identifier(source_owner_id)} "
            f"into cart {hash_identifier(target_owner_id)}"
        )
        return report
