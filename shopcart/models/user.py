from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import datetime


class User(SQLModel, table=True):
    """
    An identity: either a durable account (email + password hash) or an
    ephemeral guest (guest_id + cart_expires_at). Never both.
    """
    id: Optional[int] = Field(default=None, primary_key=True)

    # Account
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, unique=True, index=True)
    password_hash: Optional[str] = None

    # Guest
    is_guest: bool = Field(default=False)
    guest_id: Optional[str] = Field(default=None, unique=True, index=True)
    cart_expires_at: Optional[datetime] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def identity_id(self) -> str:
        """Key used by cart lines, which are shared between guests and accounts."""
        return str(self.id)

    def is_well_formed(self) -> bool:
        has_account = bool(self.email) and bool(self.password_hash)
        has_guest = self.is_guest and bool(self.guest_id)
        return has_account != has_guest

    def is_cart_expired(self, now: Optional[datetime] = None) -> bool:
        if not self.is_guest or not self.cart_expires_at:
            return False
        return (now or datetime.utcnow()) > self.cart_expires_at


class IdentitySummary(SQLModel):
    id: int
    email: Optional[str] = None
    name: Optional[str] = None
    is_guest: bool
    guest_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "IdentitySummary":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            is_guest=user.is_guest,
            guest_id=user.guest_id,
            expires_at=user.cart_expires_at,
        )
