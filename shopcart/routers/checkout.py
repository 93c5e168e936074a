from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session

from shopcart.db.session import get_session
from shopcart.models.receipt import Receipt
from shopcart.models.user import User
from shopcart.routers.auth import EMAIL_PATTERN, get_current_user
from shopcart.services.checkout import CheckoutService

router = APIRouter()


class CheckoutIn(BaseModel):
    name: str = Field(min_length=2)
    email: str = Field(pattern=EMAIL_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


def get_checkout_service(session: Session = Depends(get_session)) -> CheckoutService:
    return CheckoutService(session)


@router.post("/", response_model=Receipt)
def checkout(
    data: CheckoutIn,
    current_user: User = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service)
):
    """
    Convert the caller's cart into a receipt. The cart is empty afterwards.
    """
    return service.checkout(current_user.identity_id, data.name, data.email)
