import uuid
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from shopcart.core.config import settings
from shopcart.core.errors import EmailTakenError, ValidationFailedError
from shopcart.core.logging import get_logger
from shopcart.core.security import get_password_hash, verify_password
from shopcart.models.user import User

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Identity store: durable accounts and ephemeral guests."""

    def __init__(self, session: Session):
        self.session = session

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == normalize_email(email))).first()

    def get_guest(self, guest_id: str) -> Optional[User]:
        return self.session.exec(
            select(User).where(User.guest_id == guest_id, User.is_guest == True)  # noqa: E712
        ).first()

    def save_identity(self, user: User) -> User:
        """Insert a new identity. It must be either an account or a guest, never both."""
        if not user.is_well_formed():
            raise ValidationFailedError("Identity must be either an account or a guest")

        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            if user.email:
                # Lost a race with another signup for the same email
                raise EmailTakenError()
            raise
        self.session.refresh(user)
        return user

    def register_user(self, email: str, password: str, name: Optional[str] = None) -> User:
        email = normalize_email(email)
        if self.get_user_by_email(email):
            raise EmailTakenError()

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name or email.split("@")[0],
            is_guest=False,
        )
        self.save_identity(user)
        logger.info(f"Registered account {user.id}")
        return user

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        user = self.get_user_by_email(email)
        # Guests have no credential to check against
        if not user or user.is_guest:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def create_guest(self) -> User:
        guest = User(
            is_guest=True,
            guest_id=f"guest_{uuid.uuid4()}",
            cart_expires_at=datetime.utcnow() + timedelta(days=settings.GUEST_CART_TTL_DAYS),
        )
        self.save_identity(guest)
        logger.info(f"Created guest identity {guest.id}")
        return guest
