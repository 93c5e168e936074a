"""
The anonymous client's cart.

Before the client has a session there is no server cart, so lines are kept
locally under a fixed storage key. ``LocalCartRepository`` owns the storage
(load/save/clear); ``LocalCart`` is the in-memory state, hydrated from the
repository when created and written back after every mutation.
"""
import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional

from shopcart.core.logging import get_logger
from shopcart.services.reconciliation import merge_lines

logger = get_logger(__name__)

CART_STORAGE_KEY = "shopcart_local_cart"


@dataclass
class LocalCartLine:
    id: str
    product_id: int
    qty: int
    name: Optional[str] = None
    price: Optional[float] = None


class LocalCartRepository:
    def __init__(self, storage_dir: Path, key: str = CART_STORAGE_KEY):
        self.storage_dir = Path(storage_dir)
        self.key = key

    @property
    def path(self) -> Path:
        return self.storage_dir / f"{self.key}.json"

    def load(self) -> List[LocalCartLine]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [LocalCartLine(**entry) for entry in raw]
        except (ValueError, TypeError) as e:
            # A corrupt cart is treated as an empty one
            logger.warning(f"Error loading local cart: {e}")
            return []

    def save(self, lines: List[LocalCartLine]) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps([asdict(line) for line in lines]), encoding="utf-8")

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class LocalCart:
    def __init__(self, repository: LocalCartRepository):
        self.repository = repository
        self.lines: List[LocalCartLine] = repository.load()

    def _persist(self) -> None:
        self.repository.save(self.lines)

    def add(self, product_id: int, qty: int = 1, name: Optional[str] = None, price: Optional[float] = None) -> LocalCartLine:
        quantities = merge_lines([(product_id, qty)], {line.product_id: line.qty for line in self.lines})
        line = next((line for line in self.lines if line.product_id == product_id), None)
        if line:
            line.qty = quantities[product_id]
        else:
            line = LocalCartLine(id=f"local_{time.time_ns()}", product_id=product_id, qty=qty, name=name, price=price)
            self.lines.append(line)
        self._persist()
        return line

    def remove(self, line_id: str) -> bool:
        remaining = [line for line in self.lines if line.id != line_id]
        removed = len(remaining) != len(self.lines)
        self.lines = remaining
        self._persist()
        return removed

    def update_quantity(self, line_id: str, qty: int) -> None:
        if qty < 1:
            self.remove(line_id)
            return
        for line in self.lines:
            if line.id == line_id:
                line.qty = qty
        self._persist()

    def clear(self) -> None:
        self.lines = []
        self.repository.clear()

    @property
    def total(self) -> float:
        return round(sum((line.price or 0) * line.qty for line in self.lines), 2)

    @property
    def count(self) -> int:
        return sum(line.qty for line in self.lines)

    def to_merge_payload(self) -> List[dict]:
        return [{"productId": line.product_id, "qty": line.qty} for line in self.lines]
