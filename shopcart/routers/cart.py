from typing import Any
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from shopcart.db.session import get_session
from shopcart.models.cart import CartLineOut, CartOut, MergedCartOut
from shopcart.models.user import User
from shopcart.routers.auth import MessageOut, get_current_user
from shopcart.services.cart import CartService
from shopcart.services.reconciliation import CartReconciler, parse_local_cart

router = APIRouter()


class CartItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId", ge=1)
    qty: int = Field(default=1, ge=1)


class LocalCartIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Validated entry by entry in the service; bad entries are dropped, not rejected
    local_cart: Any = Field(default=None, alias="localCart")


def get_cart_service(session: Session = Depends(get_session)) -> CartService:
    return CartService(session)


def get_reconciler(session: Session = Depends(get_session)) -> CartReconciler:
    return CartReconciler(session)


@router.get("/", response_model=CartOut)
def get_cart(current_user: User = Depends(get_current_user), service: CartService = Depends(get_cart_service)):
    """Get the caller's cart with total and item count"""
    return service.get_cart(current_user.identity_id)


@router.post("/", response_model=CartLineOut)
def add_to_cart(
    cart_item: CartItemCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service)
):
    """Add item to cart"""
    line, created = service.add_to_cart(current_user.identity_id, cart_item.product_id, cart_item.qty)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return line


@router.delete("/{line_id}", response_model=MessageOut)
def remove_from_cart(
    line_id: int,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service)
):
    """Remove item from cart"""
    service.remove_from_cart(current_user.identity_id, line_id)
    return MessageOut(message="Item removed from cart")


@router.post("/merge", response_model=MergedCartOut)
def merge_local_cart(
    payload: LocalCartIn,
    current_user: User = Depends(get_current_user),
    reconciler: CartReconciler = Depends(get_reconciler),
    service: CartService = Depends(get_cart_service)
):
    """Merge a client-local cart into the caller's cart"""
    report = reconciler.merge_into(current_user.identity_id, parse_local_cart(payload.local_cart))
    cart = service.get_cart(current_user.identity_id)
    return MergedCartOut(lines=cart.lines, total=cart.total, count=cart.count, merged=report.merged)
