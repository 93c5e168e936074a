import re

import pytest
from sqlmodel import Session, select, delete

from shopcart.core.errors import CheckoutConflictError, EmptyCartError
from shopcart.models.cart import CartItem
from shopcart.models.product import Product
from shopcart.services.checkout import CheckoutService

BUYER = {"name": "Ana Lima", "email": "ana@example.com"}


@pytest.fixture()
def guest(client):
    client.post("/api/v1/auth/guest")
    return client


class TestCheckoutApi:
    def test_empty_cart_is_rejected(self, guest):
        response = guest.post("/api/v1/checkout/", json=BUYER)

        assert response.status_code == 400
        assert response.json()["error"] == "empty_cart"
        assert guest.get("/api/v1/cart/").json()["lines"] == []

    def test_receipt_and_cleared_cart(self, guest, products):
        guest.post("/api/v1/cart/", json={"productId": products["headphones"], "qty": 2})
        guest.post("/api/v1/cart/", json={"productId": products["mouse"], "qty": 1})

        response = guest.post("/api/v1/checkout/", json=BUYER)

        assert response.status_code == 200
        receipt = response.json()
        assert receipt["total"] == 250
        assert [item["subtotal"] for item in receipt["items"]] == [200, 50]
        assert receipt["items"][0] == {"product": "Wireless Headphones", "qty": 2, "price": 100, "subtotal": 200}
        assert receipt["name"] == "Ana Lima"
        assert receipt["email"] == "ana@example.com"
        assert re.fullmatch(r"REC-\d+-[0-9A-F]{12}", receipt["receipt_id"])
        assert guest.get("/api/v1/cart/").json() == {"lines": [], "total": 0, "count": 0}

    def test_cart_cannot_be_checked_out_twice(self, guest, products):
        guest.post("/api/v1/cart/", json={"productId": products["mouse"], "qty": 1})

        first = guest.post("/api/v1/checkout/", json=BUYER)
        second = guest.post("/api/v1/checkout/", json=BUYER)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error"] == "empty_cart"

    def test_uses_current_price(self, guest, engine, products):
        guest.post("/api/v1/cart/", json={"productId": products["mouse"], "qty": 2})
        with Session(engine) as session:
            mouse = session.get(Product, products["mouse"])
            mouse.price = 60
            session.add(mouse)
            session.commit()

        receipt = guest.post("/api/v1/checkout/", json=BUYER).json()

        assert receipt["total"] == 120
        assert receipt["items"][0]["price"] == 60

    def test_receipt_ids_are_unique(self, guest, products):
        ids = set()
        for _ in range(3):
            guest.post("/api/v1/cart/", json={"productId": products["lamp"], "qty": 1})
            ids.add(guest.post("/api/v1/checkout/", json=BUYER).json()["receipt_id"])

        assert len(ids) == 3

    @pytest.mark.parametrize("payload", [{"name": "A", "email": "ana@example.com"}, {"name": "Ana", "email": "nope"}, {}])
    def test_invalid_buyer_leaves_cart_alone(self, guest, products, payload):
        guest.post("/api/v1/cart/", json={"productId": products["mouse"], "qty": 1})

        response = guest.post("/api/v1/checkout/", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert len(guest.get("/api/v1/cart/").json()["lines"]) == 1

    def test_requires_a_session(self, client):
        assert client.post("/api/v1/checkout/", json=BUYER).status_code == 401


class TestCheckoutService:
    def fill_cart(self, session, owner_id, lines):
        session.add_all([CartItem(user_id=owner_id, product_id=pid, quantity=qty) for pid, qty in lines])
        session.commit()

    def remaining(self, session, owner_id):
        return session.exec(select(CartItem.product_id, CartItem.quantity).where(CartItem.user_id == owner_id)).all()

    def test_lines_of_deleted_products_are_dropped(self, session, products):
        self.fill_cart(session, "7", [(products["mouse"], 1), (9999, 4)])

        receipt = CheckoutService(session).checkout("7", "Ana", "ana@example.com")

        assert [item.product for item in receipt.items] == ["Gaming Mouse"]
        assert receipt.total == 50
        assert self.remaining(session, "7") == []

    def test_only_deleted_products_counts_as_empty(self, session, products):
        self.fill_cart(session, "7", [(9999, 4)])

        with pytest.raises(EmptyCartError):
            CheckoutService(session).checkout("7", "Ana", "ana@example.com")

        assert len(self.remaining(session, "7")) == 1

    def test_concurrent_clear_makes_checkout_reject(self, engine, session, products, monkeypatch):
        self.fill_cart(session, "7", [(products["mouse"], 1)])
        service = CheckoutService(session)
        original = service._snapshot_lines

        def snapshot_then_clear(owner_id):
            snapshot = original(owner_id)
            with Session(engine) as other:
                other.exec(delete(CartItem).where(CartItem.user_id == owner_id))
                other.commit()
            return snapshot

        monkeypatch.setattr(service, "_snapshot_lines", snapshot_then_clear)

        with pytest.raises(EmptyCartError):
            service.checkout("7", "Ana", "ana@example.com")
        assert self.remaining(session, "7") == []

    def test_concurrent_increment_is_priced_on_retry(self, engine, session, products, monkeypatch):
        self.fill_cart(session, "7", [(products["mouse"], 1)])
        service = CheckoutService(session)
        original = service._snapshot_lines
        calls = []

        def snapshot_then_increment(owner_id):
            snapshot = original(owner_id)
            if not calls:
                with Session(engine) as other:
                    line = other.exec(select(CartItem).where(CartItem.user_id == owner_id)).one()
                    line.quantity += 1
                    other.add(line)
                    other.commit()
            calls.append(snapshot)
            return snapshot

        monkeypatch.setattr(service, "_snapshot_lines", snapshot_then_increment)

        receipt = service.checkout("7", "Ana", "ana@example.com")

        assert len(calls) == 2
        assert receipt.items[0].qty == 2
        assert receipt.total == 100
        assert self.remaining(session, "7") == []

    def test_gives_up_when_cart_keeps_changing(self, engine, session, products, monkeypatch):
        self.fill_cart(session, "7", [(products["mouse"], 1)])
        service = CheckoutService(session)
        original = service._snapshot_lines

        def snapshot_then_add(owner_id):
            snapshot = original(owner_id)
            with Session(engine) as other:
                other.add(CartItem(user_id=owner_id, product_id=products["lamp"], quantity=1))
                other.commit()
            return snapshot

        monkeypatch.setattr(service, "_snapshot_lines", snapshot_then_add)

        with pytest.raises(CheckoutConflictError):
            service.checkout("7", "Ana", "ana@example.com")
        # Nothing was deleted by the failed attempts
        assert len(self.remaining(session, "7")) == 4
