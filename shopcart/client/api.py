"""
HTTP client for the shop API.

Mirrors what the browser does: while anonymous, cart operations go to the local
cart; once the client holds a session (guest or account) they go to the server,
and any local lines are merged into the server cart right after authenticating.
"""
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from shopcart.client.local_cart import LocalCart, LocalCartRepository
from shopcart.core.logging import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/v1"
DEFAULT_STORAGE_DIR = Path.home() / ".shopcart"


class ShopClientError(Exception):
    def __init__(self, status_code: int, kind: str, message: str):
        self.status_code = status_code
        self.kind = kind
        self.message = message
        super().__init__(f"{status_code} {kind}: {message}")


class ShopClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http: Any = None,
        repository: Optional[LocalCartRepository] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        # Anything with a requests-style request() works, e.g. a TestClient
        self.http = http or requests.Session()
        self.timeout = timeout
        self.local = LocalCart(repository or LocalCartRepository(DEFAULT_STORAGE_DIR))
        self.identity: Optional[Dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        response = self.http.request(method, f"{self.base_url}{API_PREFIX}{path}", json=json, timeout=self.timeout)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise ShopClientError(
                response.status_code,
                body.get("error", "unknown_error"),
                body.get("message", response.text),
            )
        return response.json()

    # Identity

    def continue_as_guest(self) -> Dict[str, Any]:
        self.identity = self._request("POST", "/auth/guest")
        self.sync_after_auth()
        return self.identity

    def signup(self, email: str, password: str, name: Optional[str] = None) -> Dict[str, Any]:
        payload = {"email": email, "password": password}
        if name:
            payload["name"] = name
        self.identity = self._request("POST", "/auth/signup", json=payload)
        self.sync_after_auth()
        return self.identity

    def login(self, email: str, password: str) -> Dict[str, Any]:
        self.identity = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.sync_after_auth()
        return self.identity

    def logout(self) -> None:
        self._request("POST", "/auth/logout")
        self.identity = None

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    def sync_after_auth(self) -> Dict[str, Any]:
        """Push local lines into the server cart; the local cart is cleared only once that succeeds."""
        if not self.local.lines:
            return self.get_cart()
        try:
            cart = self._request("POST", "/cart/merge", json={"localCart": self.local.to_merge_payload()})
        except ShopClientError as e:
            logger.warning(f"Failed to sync cart: {e}")
            return self.get_cart()
        self.local.clear()
        return cart

    # Cart

    def list_products(self) -> list:
        return self._request("GET", "/products/")

    def get_cart(self) -> Dict[str, Any]:
        if self.is_authenticated:
            return self._request("GET", "/cart/")
        return {
            "lines": [
                {"id": line.id, "product_id": line.product_id, "quantity": line.qty, "name": line.name, "price": line.price}
                for line in self.local.lines
            ],
            "total": self.local.total,
            "count": self.local.count,
        }

    def add_to_cart(self, product_id: int, qty: int = 1, product: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if self.is_authenticated:
            self._request("POST", "/cart/", json={"productId": product_id, "qty": qty})
        else:
            product = product or {}
            self.local.add(product_id, qty, name=product.get("name"), price=product.get("price"))
        return self.get_cart()

    def remove_from_cart(self, line_id) -> Dict[str, Any]:
        if self.is_authenticated:
            self._request("DELETE", f"/cart/{line_id}")
        else:
            self.local.remove(line_id)
        return self.get_cart()

    def update_quantity(self, line_id, product_id: int, qty: int) -> Dict[str, Any]:
        if qty < 1:
            return self.remove_from_cart(line_id)
        if self.is_authenticated:
            # No update endpoint: replace the line
            self._request("DELETE", f"/cart/{line_id}")
            self._request("POST", "/cart/", json={"productId": product_id, "qty": qty})
        else:
            self.local.update_quantity(line_id, qty)
        return self.get_cart()

    def checkout(self, name: str, email: str) -> Dict[str, Any]:
        receipt = self._request("POST", "/checkout/", json={"name": name, "email": email})
        self.local.clear()
        return receipt
